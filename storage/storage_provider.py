"""
Abstract base class for blob storage providers.

This module defines the interface that all storage backends must implement,
allowing the streamer to read audio from the local disk, Cloudflare R2,
Backblaze B2, AWS S3, or any other S3-compatible store.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, Protocol, Tuple

from shared.constants import LIBRARY_DIR
from shared.models import FileInfo


class SeekableReader(Protocol):
    """An open handle supporting absolute positioning before reads."""

    def seek(self, offset: int, whence: int = 0) -> int: ...

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class BlobStorageProvider(ABC):
    """
    Abstract base class for blob storage providers.

    Paths are storage-relative (``library/user_<id>/track_<id>/<id>.mp3``);
    each provider maps them onto its own namespace.
    """

    @abstractmethod
    def open(self, file_path: str) -> Tuple[SeekableReader, FileInfo]:
        """
        Open a blob for seekable reads.

        Args:
            file_path: Storage-relative path of the blob

        Returns:
            Tuple of (handle, FileInfo). The caller owns the handle and must
            close it.

        Raises:
            SourceError: With kind OPEN_FAILED if the blob is missing or unreadable
        """
        pass

    @abstractmethod
    def save(self, user_id: str, track_id: str, original_name: str,
             stream: BinaryIO) -> Tuple[str, int, str]:
        """
        Store an uploaded file.

        Args:
            user_id: Owner of the track
            track_id: ID of the track record
            original_name: Uploaded file name (its extension is kept)
            stream: Readable binary stream with the file contents

        Returns:
            Tuple of (file_path, size_bytes, content_type)
        """
        pass

    @abstractmethod
    def delete(self, file_path: str) -> None:
        """
        Delete a blob. Deleting a missing blob is not an error.

        Args:
            file_path: Storage-relative path of the blob
        """
        pass

    @abstractmethod
    def resolve_full_path(self, file_path: str) -> Tuple[str, bool]:
        """
        Map a storage-relative path onto a location for diagnostics or tools.

        Returns:
            Tuple of (location, is_local_file). ``is_local_file`` is False
            for object stores, whose location is an ``s3://`` URI.
        """
        pass

    @staticmethod
    def track_path(user_id: str, track_id: str, extension: str) -> str:
        """Storage-relative path for a track blob."""
        filename = f"{track_id}{extension}"
        return f"{LIBRARY_DIR}/user_{user_id}/track_{track_id}/{filename}"
