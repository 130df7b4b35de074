import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .core import UploadPipeline
from .exceptions import ConfigurationError, ScanError
from .remote.client import WebDAVClient
from .reporting import ReportGenerator
from .settings import load_settings


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class ProgressBar:
    """Renders (done, total) progress counts with tqdm."""

    def __init__(self, desc: str):
        self.desc = desc
        self.bar: Optional[tqdm] = None

    def __call__(self, done: int, total: int):
        if self.bar is None:
            self.bar = tqdm(total=total, desc=self.desc)
        self.bar.update(done - self.bar.n)

    def close(self):
        if self.bar is not None:
            self.bar.close()


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Upload an exported photo library to Nextcloud, sorted into YYYY/MM folders."
    )

    p.add_argument("photos_dir", nargs="?", default=None, help="Source directory (default: $PHOTOS_DIR)")
    p.add_argument("--url", default=None, help="WebDAV base URL (default: $NEXTCLOUD_URL)")
    p.add_argument("--user", default=None, help="Nextcloud user (default: $NEXTCLOUD_USER)")
    p.add_argument("--password", default=None, help="Nextcloud password (default: $NEXTCLOUD_PASSWORD)")
    p.add_argument("-j", "--parallel", type=int, default=None,
                   help="Parallel folder creations and uploads (default: $PARALLEL_UPLOADS or 1)")
    p.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")

    tls = p.add_mutually_exclusive_group()
    tls.add_argument("--verify-tls", dest="verify_tls", action="store_true", default=None,
                     help="Verify the server certificate")
    tls.add_argument("--insecure", dest="verify_tls", action="store_false", default=None,
                     help="Accept self-signed certificates (default unless $NEXTCLOUD_VERIFY_TLS is set)")

    p.add_argument("--dry-run", action="store_true", help="Resolve buckets and log the plan without uploading")
    p.add_argument("--report-csv", type=Path, default=None, help="Write per-file outcomes to this CSV")
    p.add_argument("--log-file", type=Path, default=None, help="Also log to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        settings = load_settings(args)
    except ConfigurationError as e:
        logging.error(str(e))
        return 1

    logging.info("=== media2nextcloud started ===")
    logging.info(f"Source: {settings.photos_dir}")
    logging.info(f"Target: {settings.base_url}")

    client = WebDAVClient(
        settings.base_url,
        settings.username,
        settings.password,
        verify_tls=settings.verify_tls,
        timeout=settings.timeout,
    )
    pipeline = UploadPipeline(client, parallelism=settings.parallelism)

    dir_bar = ProgressBar("Folders")
    upload_bar = ProgressBar("Uploading")
    try:
        summary = pipeline.run(
            settings.photos_dir,
            dry_run=args.dry_run,
            on_dir_progress=dir_bar,
            on_upload_progress=upload_bar,
        )
    except ScanError as e:
        logging.error(f"Scan failed: {e}")
        return 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    finally:
        dir_bar.close()
        upload_bar.close()

    if args.report_csv:
        ReportGenerator(summary).write_csv(args.report_csv)

    if summary.dry_run:
        logging.info(f"Dry run: {summary.indexed} media files would be uploaded")
        return 0

    print(f"\nSuccessfully uploaded {summary.uploaded} media files")
    print(f"Failed to upload {summary.failed} media files")
    return 2 if summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
