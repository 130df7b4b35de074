import logging
import queue
import threading
import time
from typing import Callable, List, Optional, Sequence

import requests

from .. import config
from ..exceptions import UploadError
from ..models import PipelineState, UploadJob, UploadOutcome, UploadStatus
from ..pool import WorkerPool
from .client import WebDAVClient

_END_OF_STREAM = object()
_POST_POLL_SEC = 0.2


class UploadScheduler:
    """
    Uploads every job over a bounded worker pool.

    Each job ends in exactly one progress event carrying its outcome. Events
    go through a bounded queue to a single aggregator (the caller's thread),
    which is the only writer of the success/failure counters.
    """

    def __init__(self,
                 client: WebDAVClient,
                 parallelism: int = config.DEFAULT_PARALLELISM,
                 max_attempts: int = config.MAX_UPLOAD_ATTEMPTS,
                 retry_delay: float = config.RETRY_DELAY_SEC,
                 sleep: Callable[[float], None] = time.sleep):
        self.client = client
        self.parallelism = parallelism
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def upload_one(self, job: UploadJob) -> UploadOutcome:
        """
        Transfers one file. 404/504 are retried up to max_attempts in total;
        any other non-success status fails immediately.
        """
        url = self.client.file_url(job.bucket, job.path.name)
        retries = 0
        status = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                status = self._attempt(job)
            except UploadError as e:
                logging.error(f"Failed to upload {job.path}: {e}")
                return UploadOutcome(job, UploadStatus.FAILED, attempt, retries, error=str(e))

            if status in config.UPLOAD_SUCCESS:
                logging.debug(f"Uploaded {job.path.name} to {url}")
                return UploadOutcome(job, UploadStatus.SUCCESS, attempt, retries, http_status=status)

            if status not in config.UPLOAD_RETRYABLE:
                logging.error(f"Failed to upload {job.path}: status {status}")
                return UploadOutcome(job, UploadStatus.FAILED, attempt, retries, http_status=status,
                                     error=f"status {status}")

            if attempt < self.max_attempts:
                logging.warning(f"Attempt {attempt}: received {status} for {url}. Retrying...")
                retries += 1
                self._sleep(self.retry_delay)

        logging.error(f"Failed to upload {job.path} after {self.max_attempts} attempts (last status {status})")
        return UploadOutcome(job, UploadStatus.FAILED, self.max_attempts, retries, http_status=status,
                             error=f"retries exhausted, last status {status}")

    def _attempt(self, job: UploadJob) -> int:
        """One PUT with a freshly opened body. Returns the HTTP status."""
        try:
            body = job.path.open('rb')
        except OSError as e:
            raise UploadError(f"cannot read local file: {e}") from e

        with body:
            try:
                resp = self.client.put(job.bucket, job.path, body)
            except requests.RequestException as e:
                raise UploadError(f"transport error: {e}") from e
        status = resp.status_code
        resp.close()
        return status

    def run(self,
            jobs: Sequence[UploadJob],
            state: PipelineState,
            on_progress: Optional[Callable[[int, int], None]] = None) -> List[UploadOutcome]:
        """
        Uploads all jobs and tallies state.uploaded / state.failed.
        Returns after every job has produced its progress event.
        """
        total = len(jobs)
        outcomes: List[UploadOutcome] = []
        if not total:
            return outcomes

        logging.info(f"Uploading {total} media files with {self.parallelism} workers")
        progress: queue.Queue = queue.Queue(maxsize=self.parallelism)
        stopped = threading.Event()
        pool = WorkerPool(self.parallelism, name="upload")
        for job in jobs:
            pool.submit(self._worker, job, progress, stopped)

        # Closes the stream only after every worker has posted its event
        joiner = threading.Thread(target=self._close_when_done, args=(pool, progress, stopped),
                                  name="upload-joiner", daemon=True)
        joiner.start()

        try:
            while True:
                event = progress.get()
                if event is _END_OF_STREAM:
                    break
                outcomes.append(event)
                if event.ok:
                    state.uploaded += 1
                else:
                    state.failed += 1
                if on_progress:
                    on_progress(len(outcomes), total)
        except BaseException:
            # Aggregator is gone: release blocked workers and drop queued jobs
            stopped.set()
            dropped = pool.cancel()
            logging.warning(f"Upload phase interrupted, {dropped} queued uploads dropped")
            raise

        joiner.join()
        logging.info(f"Upload phase done: {state.uploaded} succeeded, {state.failed} failed")
        return outcomes

    def _worker(self, job: UploadJob, progress: queue.Queue, stopped: threading.Event):
        if stopped.is_set():
            return
        try:
            outcome = self.upload_one(job)
        except Exception as e:
            logging.exception(f"Unexpected error uploading {job.path}")
            outcome = UploadOutcome(job, UploadStatus.FAILED, 0, error=repr(e))
        _post(progress, outcome, stopped)

    @staticmethod
    def _close_when_done(pool: WorkerPool, progress: queue.Queue, stopped: threading.Event):
        pool.join()
        _post(progress, _END_OF_STREAM, stopped)


def _post(progress: queue.Queue, event, stopped: threading.Event):
    """Blocks until the aggregator takes event, or gives up once it has stopped."""
    while not stopped.is_set():
        try:
            progress.put(event, timeout=_POST_POLL_SEC)
            return
        except queue.Full:
            continue
