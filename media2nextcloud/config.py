"""
Configuration constants for the Nextcloud media uploader.
"""

# --- File Classification ---
# Export sidecars look like "IMG_0001.jpg.supplemental-metadata.json" or
# "IMG_0001.jpg.suppl.json": exactly three dots in the file name.
SIDECAR_EXT = '.json'
SIDECAR_DOT_COUNT = 3

# OS artifacts that are never uploaded (compared case-insensitively)
IGNORED_EXTS = {'.ds_store', '.db', '.ini', '.localized'}

# Containers handled by pymediainfo instead of exifread
VIDEO_EXTS = {'.mp4', '.mov', '.m4v', '.avi', '.mts', '.m2ts', '.3gp', '.mpg', '.mpeg', '.mkv', '.webm'}

# --- Timestamp Resolution ---
SIDECAR_ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Embedded date tags, grouped by role.
# "Created" is preferred; "Original" is the fallback when created is absent.
EXIF_CREATED_TAGS = ['EXIF DateTimeDigitized']
EXIF_ORIGINAL_TAGS = ['EXIF DateTimeOriginal']
VIDEO_CREATED_FIELDS = ['encoded_date', 'tagged_date']
VIDEO_ORIGINAL_FIELDS = ['recorded_date']

# Unresolvable media land here and are rewritten to PLACEHOLDER_YEAR later
SENTINEL_YEAR = "0001"
SENTINEL_BUCKET = f"{SENTINEL_YEAR}/01"
PLACEHOLDER_YEAR = "2000"

# --- Remote (WebDAV) ---
MKCOL_CREATED = {200, 201}
MKCOL_EXISTS = {204, 405}
UPLOAD_SUCCESS = {200, 201, 204}
UPLOAD_RETRYABLE = {404, 504}

MAX_UPLOAD_ATTEMPTS = 3
RETRY_DELAY_SEC = 2.0

# --- Environment ---
ENV_URL = "NEXTCLOUD_URL"
ENV_USER = "NEXTCLOUD_USER"
ENV_PASSWORD = "NEXTCLOUD_PASSWORD"
ENV_PHOTOS_DIR = "PHOTOS_DIR"
ENV_PARALLEL = "PARALLEL_UPLOADS"
ENV_VERIFY_TLS = "NEXTCLOUD_VERIFY_TLS"
ENV_TIMEOUT = "NEXTCLOUD_TIMEOUT"

DEFAULT_PARALLELISM = 1
