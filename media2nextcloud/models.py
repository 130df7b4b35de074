import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set


def format_bucket(dt: datetime) -> str:
    """Buckets are "YYYY/MM", zero padded so year 1 stays "0001"."""
    return f"{dt.year:04d}/{dt.month:02d}"


@dataclass
class SidecarMetadata:
    """
    The fields we consume from an export sidecar.
    Missing or malformed fields stay at their zero value ("").
    """
    title: str = ""
    photo_taken_timestamp: str = ""
    creation_timestamp: str = ""


@dataclass(frozen=True)
class SkippedItem:
    path: Path
    reason: str


@dataclass(frozen=True)
class UploadJob:
    path: Path
    bucket: str


class UploadStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadOutcome:
    job: UploadJob
    status: UploadStatus
    attempts: int
    retries: int = 0
    http_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is UploadStatus.SUCCESS


@dataclass
class PipelineState:
    """
    Per-run state passed through the phases by reference.

    path_index maps absolute local media path -> "YYYY/MM" bucket. It is filled
    by the resolvers, rewritten once by normalization and read-only afterwards.
    The counters are only touched by the upload progress aggregator.
    """
    path_index: Dict[Path, str] = field(default_factory=dict)
    skipped: List[SkippedItem] = field(default_factory=list)
    # Media targets of sidecars that failed to resolve; never handed to the fallback
    claimed: Set[Path] = field(default_factory=set)
    uploaded: int = 0
    failed: int = 0

    def set_from_sidecar(self, media_path: Path, bucket: str):
        """Sidecar writes: most recent write wins."""
        previous = self.path_index.get(media_path)
        if previous is not None and previous != bucket:
            logging.debug(f"Sidecar overrides {media_path}: {previous} -> {bucket}")
        self.path_index[media_path] = bucket

    def set_from_fallback(self, media_path: Path, bucket: str) -> bool:
        """Fallback writes: first writer wins, conflicts are logged."""
        if media_path in self.path_index:
            logging.error(f"Media file already indexed, keeping {self.path_index[media_path]}: {media_path}")
            return False
        self.path_index[media_path] = bucket
        return True

    def skip(self, path: Path, reason: str):
        self.skipped.append(SkippedItem(path, reason))

    def claim(self, media_path: Path):
        self.claimed.add(media_path)

    def unresolved(self, media: Iterable[Path]) -> List[Path]:
        """Media not yet indexed and not claimed by a sidecar."""
        return [p for p in media if p not in self.path_index and p not in self.claimed]

    def distinct_buckets(self) -> List[str]:
        return sorted(set(self.path_index.values()))

    def jobs(self) -> List[UploadJob]:
        return [UploadJob(path, bucket) for path, bucket in self.path_index.items()]


@dataclass
class RunSummary:
    indexed: int
    skipped: List[SkippedItem]
    provisioned_buckets: List[str] = field(default_factory=list)
    failed_buckets: List[str] = field(default_factory=list)
    outcomes: List[UploadOutcome] = field(default_factory=list)
    uploaded: int = 0
    failed: int = 0
    dry_run: bool = False
