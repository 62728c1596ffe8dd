"""
Shared constants used across the streaming service.
"""

SERVICE_NAME = "cratedrop-streamer"
SERVICE_VERSION = "0.1.0"

# Chunk ceilings
INITIAL_CHUNK_BYTES = 256 * 1024  # first request, fast time-to-first-audio
MAX_CHUNK_BYTES = 512 * 1024      # steady-state playback
COPY_BLOCK_BYTES = 64 * 1024      # read size while copying a span

# Response headers
STREAM_CACHE_CONTROL = "public, max-age=3600, must-revalidate"
RANGE_UNIT = "bytes"

# Audio formats
AUDIO_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".flac": "audio/flac",
    ".wav": "audio/wav",
    ".aiff": "audio/aiff",
    ".aif": "audio/aiff",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".opus": "audio/opus",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Roles
ROLE_ADMIN = "admin"
ROLE_USER = "user"

# Auth
ACCESS_TOKEN_COOKIE = "access_token"
JWT_ALGORITHMS = ["HS256"]

# S3 Provider endpoints
CLOUDFLARE_R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"
BACKBLAZE_B2_ENDPOINT_TEMPLATE = "https://s3.{region}.backblazeb2.com"
AWS_S3_ENDPOINT_TEMPLATE = "https://s3.{region}.amazonaws.com"

# Paths
DEFAULT_DATA_DIR = "../data/cratedrop"
DATABASE_RELATIVE_PATH = "db/cratedrop.sqlite"
LIBRARY_DIR = "library"

# Network Settings
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
