import logging
from concurrent.futures import as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

import requests

from .. import config
from ..exceptions import DirectoryCreationError
from ..pool import WorkerPool
from .client import WebDAVClient


def bucket_segments(bucket: str) -> List[str]:
    """"2024/01" -> ["2024", "2024/01"], parent first."""
    parts = [p for p in bucket.split("/") if p]
    return ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]


@dataclass
class ProvisionResult:
    provisioned: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class DirectoryProvisioner:
    """
    Creates the remote year/month collections for a set of buckets.

    Segments of one bucket are created in order; different buckets run
    concurrently. MKCOL on an existing collection (204/405) counts as success,
    so two buckets racing on the same year folder is harmless.
    """

    def __init__(self, client: WebDAVClient, parallelism: int = config.DEFAULT_PARALLELISM):
        self.client = client
        self.parallelism = parallelism

    def ensure_collection(self, segment: str) -> bool:
        """Returns True if created, False if it already existed."""
        try:
            resp = self.client.mkcol(segment)
        except requests.RequestException as e:
            raise DirectoryCreationError(f"MKCOL {segment} failed: {e}") from e

        if resp.status_code in config.MKCOL_EXISTS:
            logging.debug(f"Folder {segment} already exists ({resp.status_code})")
            return False
        if resp.status_code in config.MKCOL_CREATED:
            logging.info(f"Created folder {segment}")
            return True
        raise DirectoryCreationError(f"Failed to create folder {segment}, status: {resp.status_code} {resp.reason}")

    def provision_bucket(self, bucket: str) -> bool:
        for segment in bucket_segments(bucket):
            try:
                self.ensure_collection(segment)
            except DirectoryCreationError as e:
                logging.error(f"Abandoning folder {bucket}: {e}")
                return False
        return True

    def provision(self,
                  buckets: Iterable[str],
                  on_progress: Optional[Callable[[int, int], None]] = None) -> ProvisionResult:
        """
        Provisions every bucket and returns once all of them reached a terminal state.
        """
        buckets = sorted(set(buckets))
        result = ProvisionResult()
        if not buckets:
            return result

        logging.info(f"Creating {len(buckets)} folders with {self.parallelism} workers")
        pool = WorkerPool(self.parallelism, name="mkcol")
        futures = [pool.submit(self.provision_bucket, b) for b in buckets]

        if on_progress:
            for done, _ in enumerate(as_completed(futures), start=1):
                on_progress(done, len(buckets))
        outcomes = pool.join()

        for bucket, ok in zip(buckets, outcomes):
            (result.provisioned if ok else result.failed).append(bucket)

        if result.failed:
            logging.warning(f"{len(result.failed)} folders could not be created: {', '.join(result.failed)}")
        return result
