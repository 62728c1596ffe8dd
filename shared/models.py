"""
Data models for tracks, stream targets and byte ranges.

This module defines the core data structures passed between the database,
storage and streaming layers. None of them outlive a single request except
``Track``, which mirrors a row of the ``tracks`` table.
"""

from dataclasses import dataclass, asdict, fields
from typing import Dict, Optional, Any
from enum import Enum

from shared.constants import INITIAL_CHUNK_BYTES, MAX_CHUNK_BYTES, ROLE_ADMIN, RANGE_UNIT


class StorageProvider(Enum):
    """Supported blob storage backends."""
    LOCAL = "local"
    CLOUDFLARE_R2 = "r2"
    BACKBLAZE_B2 = "b2"
    AWS_S3 = "s3"
    GENERIC_S3 = "generic"


@dataclass
class Track:
    """
    Represents a single uploaded audio file and its metadata record.

    Attributes:
        id: Unique identifier
        owner_user_id: ID of the uploading user
        original_filename: File name as uploaded
        content_type: MIME type served to players
        size_bytes: Size recorded at upload time (may be stale)
        file_path: Storage-relative path of the blob
        duration_seconds: Duration (optional)
        title: Song title (optional)
        artist: Artist name (optional)
        album: Album name (optional)
        genre: Music genre (optional)
        year: Release year (optional)
        sample_rate: Sample rate in Hz (optional)
        bitrate: Bitrate in kbps (optional)
        created_at: ISO timestamp of the upload
        updated_at: ISO timestamp of the last change
    """
    id: str
    owner_user_id: str
    original_filename: str
    content_type: str
    size_bytes: int
    file_path: str
    duration_seconds: Optional[float] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[int] = None
    sample_rate: Optional[int] = None
    bitrate: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert track to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Track':
        """Create Track from dictionary, filtering unknown keys."""
        field_names = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        return cls(**filtered_data)


@dataclass(frozen=True)
class Requester:
    """The authenticated caller of a request."""
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class StreamTarget:
    """
    What the streamer needs to serve a track.

    ``size_bytes`` is the live size reported by storage when the blob was
    opened, not the value stored on the track record.
    """
    file_path: str
    content_type: str
    size_bytes: int


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte interval ``[start, end]`` of a resource."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f"{RANGE_UNIT} {self.start}-{self.end}/{total}"


@dataclass(frozen=True)
class ChunkPolicy:
    """Chunk ceilings applied to every streamed response."""
    initial_bytes: int = INITIAL_CHUNK_BYTES
    steady_bytes: int = MAX_CHUNK_BYTES

    def __post_init__(self):
        if self.initial_bytes <= 0 or self.steady_bytes <= 0:
            raise ValueError("Chunk ceilings must be positive")


@dataclass(frozen=True)
class FileInfo:
    """Metadata returned alongside an opened blob."""
    size: int
