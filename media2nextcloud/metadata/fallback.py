import logging
from pathlib import Path
from typing import Iterable, Optional

from .. import config
from ..exceptions import MetadataExtractionError
from ..models import PipelineState, format_bucket
from .extract import MetadataExtractor


class ExifFallbackResolver:
    """
    Buckets media that no sidecar described, using embedded metadata.

    Files whose metadata cannot be read get the sentinel bucket instead of
    failing the batch; normalization later moves them to a placeholder year.
    """

    def __init__(self, extractor: Optional[MetadataExtractor] = None):
        self.extractor = extractor or MetadataExtractor()

    def bucket_for(self, path: Path) -> str:
        try:
            dates = self.extractor.get_capture_dates(path)
        except MetadataExtractionError as e:
            logging.warning(f"{e}. Using default bucket {config.SENTINEL_BUCKET}")
            return config.SENTINEL_BUCKET

        if dates.created is None:
            logging.debug(f"No creation date in {path}, trying original date")
        dt = dates.preferred()
        if dt is None:
            logging.warning(f"No capture date in {path}. Using default bucket {config.SENTINEL_BUCKET}")
            return config.SENTINEL_BUCKET
        return format_bucket(dt)

    def resolve_all(self, media: Iterable[Path], state: PipelineState) -> int:
        """
        Resolves media paths that are still unindexed. Returns the number written.
        """
        resolved = 0
        for path in state.unresolved(media):
            if path.name.startswith('.') and path.suffix == '':
                ext = path.name.lower()
            else:
                ext = path.suffix.lower()
            if ext in config.IGNORED_EXTS:
                state.skip(path, "ignored OS artifact")
                continue
            if not path.is_file():
                logging.debug(f"Skipping non-regular file: {path}")
                state.skip(path, "not a regular file")
                continue

            if state.set_from_fallback(path, self.bucket_for(path)):
                resolved += 1

        logging.info(f"Resolved {resolved} media files from embedded metadata")
        return resolved
