import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence

import exifread
from pymediainfo import MediaInfo

from .. import config
from ..exceptions import MetadataExtractionError


@dataclass(frozen=True)
class CaptureDates:
    created: Optional[datetime] = None
    original: Optional[datetime] = None

    def preferred(self) -> Optional[datetime]:
        """Date created wins; date original/taken is the fallback."""
        return self.created or self.original


class MetadataExtractor:
    """
    Reads embedded capture dates from media files.

    Strategies:
      - Images: 'exifread' (fast, Python-native).
      - Video: 'pymediainfo' (needs the libmediainfo shared library).

    Both raise MetadataExtractionError when the file carries no readable
    metadata at all; a readable file without date tags returns empty dates.
    """

    def get_capture_dates(self, path: Path) -> CaptureDates:
        if path.suffix.lower() in config.VIDEO_EXTS:
            return self.get_video_dates(path)
        return self.get_image_dates(path)

    def get_image_dates(self, path: Path) -> CaptureDates:
        try:
            with path.open('rb') as f:
                # details=False skips maker notes and thumbnails
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            raise MetadataExtractionError(f"ExifRead failed for {path}: {e}") from e

        if not tags:
            raise MetadataExtractionError(f"No EXIF data in {path}")

        return CaptureDates(
            created=self._first_exif_date(tags, config.EXIF_CREATED_TAGS),
            original=self._first_exif_date(tags, config.EXIF_ORIGINAL_TAGS),
        )

    def get_video_dates(self, path: Path) -> CaptureDates:
        try:
            mi = MediaInfo.parse(str(path))
        except Exception as e:
            raise MetadataExtractionError(f"MediaInfo failed for {path}: {e}") from e

        general = next((t for t in mi.tracks if t.track_type == "General"), None)
        if general is None:
            raise MetadataExtractionError(f"No container metadata in {path}")

        return CaptureDates(
            created=self._first_track_date(general, config.VIDEO_CREATED_FIELDS),
            original=self._first_track_date(general, config.VIDEO_ORIGINAL_FIELDS),
        )

    # --- Internal Extraction Helpers ---

    def _first_exif_date(self, tags, names: Sequence[str]) -> Optional[datetime]:
        for tag in names:
            if tag in tags:
                dt = self._parse_flexible_date(str(tags[tag]))
                if dt:
                    return dt
        return None

    def _first_track_date(self, track: Any, fields: Sequence[str]) -> Optional[datetime]:
        for name in fields:
            val = getattr(track, name, None)
            if val:
                dt = self._parse_flexible_date(str(val))
                if dt:
                    return dt
        return None

    def _parse_flexible_date(self, dt_str: str) -> Optional[datetime]:
        """
        Handles EXIF "YYYY:MM:DD HH:MM:SS", ISO and MediaInfo "UTC ..." forms.
        Returns a naive datetime, or None for blanks and zeroed dates.
        """
        if not dt_str:
            return None

        clean = dt_str.replace("UTC", "").strip()

        try:
            return datetime.fromisoformat(clean)
        except ValueError:
            pass

        try:
            clean_exif = clean.replace(":", "-", 2)
            # strptime rejects sub-second precision
            if "." in clean_exif:
                clean_exif = clean_exif.split(".")[0]
            return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            logging.debug(f"Unrecognised date value: {dt_str!r}")

        return None
