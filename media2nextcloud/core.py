import logging
from pathlib import Path
from typing import Callable, Optional

from .metadata.fallback import ExifFallbackResolver
from .metadata.normalize import normalize_buckets
from .metadata.sidecar import MetadataResolver
from .models import PipelineState, RunSummary
from .remote.client import WebDAVClient
from .remote.provision import DirectoryProvisioner
from .remote.upload import UploadScheduler
from .scanning.filesystem import DirectoryScanner
from . import config

ProgressCallback = Callable[[int, int], None]


class UploadPipeline:
    def __init__(self,
                 client: WebDAVClient,
                 parallelism: int = config.DEFAULT_PARALLELISM,
                 scanner: Optional[DirectoryScanner] = None,
                 sidecar_resolver: Optional[MetadataResolver] = None,
                 fallback_resolver: Optional[ExifFallbackResolver] = None,
                 retry_delay: float = config.RETRY_DELAY_SEC):
        self.client = client
        self.parallelism = parallelism
        self.scanner = scanner or DirectoryScanner()
        self.sidecar_resolver = sidecar_resolver or MetadataResolver()
        self.fallback_resolver = fallback_resolver or ExifFallbackResolver()
        self.retry_delay = retry_delay

    def resolve(self, src_root: Path) -> PipelineState:
        """
        Builds the path index for src_root.
        1. Scan (fatal on walk errors)
        2. Sidecars
        3. Embedded metadata for the remainder
        4. Normalize sentinel years
        """
        state = PipelineState()

        logging.info(f"Scanning {src_root}...")
        scan = self.scanner.scan(src_root)

        self.sidecar_resolver.resolve_all(scan.sidecars, state)
        self.fallback_resolver.resolve_all(scan.media, state)
        normalize_buckets(state)

        logging.info(f"Processed {len(state.path_index)} media files ({len(state.skipped)} skipped)")
        return state

    def run(self,
            src_root: Path,
            dry_run: bool = False,
            on_dir_progress: Optional[ProgressCallback] = None,
            on_upload_progress: Optional[ProgressCallback] = None) -> RunSummary:
        """
        Executes the full pipeline. Folder creation completes before any upload starts.
        """
        state = self.resolve(src_root)
        summary = RunSummary(indexed=len(state.path_index), skipped=list(state.skipped), dry_run=dry_run)

        if dry_run:
            for path, bucket in sorted(state.path_index.items()):
                logging.info(f"[DRY RUN] {path} -> {self.client.file_url(bucket, path.name)}")
            return summary

        # --- Phase 1: Folders ---
        provisioner = DirectoryProvisioner(self.client, self.parallelism)
        provisioned = provisioner.provision(state.distinct_buckets(), on_progress=on_dir_progress)
        summary.provisioned_buckets = provisioned.provisioned
        summary.failed_buckets = provisioned.failed

        # --- Phase 2: Uploads ---
        scheduler = UploadScheduler(self.client, self.parallelism, retry_delay=self.retry_delay)
        summary.outcomes = scheduler.run(state.jobs(), state, on_progress=on_upload_progress)
        summary.uploaded = state.uploaded
        summary.failed = state.failed

        logging.info(f"Successfully uploaded {summary.uploaded} media files, {summary.failed} failed")
        return summary
