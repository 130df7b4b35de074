"""
Custom exception hierarchy for the Nextcloud media uploader.

Batch-level errors (scan, configuration) stop a run before any network
activity. Per-item errors are caught inside the pipeline and logged.
"""


class Media2NextcloudError(Exception):
    """Base exception for all uploader errors."""
    pass


class ConfigurationError(Media2NextcloudError):
    """Raised when required settings are missing or invalid."""
    pass


class ScanError(Media2NextcloudError):
    """Raised when the source tree cannot be walked."""
    pass


class MetadataExtractionError(Media2NextcloudError):
    """Raised when embedded metadata cannot be read from a file."""
    pass


class DirectoryCreationError(Media2NextcloudError):
    """Raised when a remote collection cannot be created."""
    pass


class UploadError(Media2NextcloudError):
    """Raised when a file transfer fails permanently."""
    pass
