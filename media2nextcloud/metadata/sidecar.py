import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple

from .. import config
from ..models import PipelineState, SidecarMetadata, format_bucket

_EPOCH_RE = re.compile(r'[+-]?\d+')


def timestamp_to_bucket(timestamp: str) -> Optional[str]:
    """
    Converts a sidecar timestamp into a "YYYY/MM" bucket.

    Accepts ISO-8601 "YYYY-MM-DDTHH:MM:SSZ" first, then decimal Unix seconds
    (interpreted as UTC). Returns None when neither form parses.
    """
    if not timestamp:
        return None

    try:
        return format_bucket(datetime.strptime(timestamp, config.SIDECAR_ISO_FORMAT))
    except ValueError:
        pass

    if not _EPOCH_RE.fullmatch(timestamp):
        return None
    try:
        dt = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return format_bucket(dt)


def media_path_for(sidecar: Path, title: str) -> Optional[Path]:
    """
    Joins title to the sidecar's directory. Leading separators are dropped so
    an absolute title stays inside that directory; titles with ".." parts,
    or nothing left after stripping, return None.
    """
    relative = title.lstrip("/\\")
    if not relative or ".." in re.split(r"[/\\]", relative):
        return None
    return sidecar.parent / relative


class MetadataResolver:
    """
    Resolves export sidecars to (media path, bucket) pairs.

    Parsing is lenient: an unreadable or malformed sidecar becomes an empty
    SidecarMetadata, which then fails timestamp resolution and is recorded
    as skipped instead of failing the batch.
    """

    def parse(self, sidecar: Path) -> SidecarMetadata:
        try:
            raw = json.loads(sidecar.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logging.warning(f"Unreadable sidecar {sidecar}: {e}")
            return SidecarMetadata()

        if not isinstance(raw, dict):
            logging.warning(f"Unexpected sidecar layout in {sidecar}")
            return SidecarMetadata()

        return SidecarMetadata(
            title=_as_str(raw.get('title')),
            photo_taken_timestamp=_nested_timestamp(raw, 'photoTakenTime'),
            creation_timestamp=_nested_timestamp(raw, 'creationTime'),
        )

    def resolve(self, sidecar: Path) -> Tuple[Optional[Path], Optional[str]]:
        """
        Returns (media_path, bucket). Either is None when the sidecar cannot be used.
        The media path is the literal title joined to the sidecar's directory.
        """
        meta = self.parse(sidecar)
        media_path = media_path_for(sidecar, meta.title)

        bucket = timestamp_to_bucket(meta.photo_taken_timestamp)
        if bucket is None:
            bucket = timestamp_to_bucket(meta.creation_timestamp)

        return media_path, bucket

    def resolve_all(self, sidecars: Iterable[Path], state: PipelineState) -> int:
        """Writes every resolvable sidecar into the path index. Returns the number written."""
        resolved = 0
        for sidecar in sidecars:
            media_path, bucket = self.resolve(sidecar)
            if media_path is None:
                state.skip(sidecar, "sidecar has no usable title")
                continue
            if bucket is None:
                logging.warning(f"No usable timestamp in {sidecar}, skipping {media_path.name}")
                state.skip(sidecar, "no parsable timestamp")
                state.claim(media_path)
                continue
            state.set_from_sidecar(media_path, bucket)
            resolved += 1

        logging.info(f"Resolved {resolved} media files from sidecars")
        return resolved


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _nested_timestamp(raw: dict, key: str) -> str:
    block = raw.get(key)
    if not isinstance(block, dict):
        return ""
    return _as_str(block.get('timestamp'))
