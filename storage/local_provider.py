"""
Local filesystem storage provider.
Implements the BlobStorageProvider interface for a data directory on disk.
"""

import mimetypes
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Tuple

from shared.constants import AUDIO_MIME_TYPES, DEFAULT_CONTENT_TYPE
from shared.errors import SourceError, SourceErrorKind
from shared.models import FileInfo
from .storage_provider import BlobStorageProvider, SeekableReader


def guess_content_type(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in AUDIO_MIME_TYPES:
        return AUDIO_MIME_TYPES[ext]
    mime, _ = mimetypes.guess_type(filename)
    return mime or DEFAULT_CONTENT_TYPE


class LocalStorageProvider(BlobStorageProvider):
    """
    Storage provider that uses the local filesystem.
    Useful for self-hosting on a NAS, a Raspberry Pi or a local drive.
    """

    def __init__(self, data_dir: str):
        self.base_path = Path(data_dir).expanduser().absolute()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_path(self, file_path: str) -> Path:
        """Absolute path for a storage-relative path, jailed to the data directory."""
        target = Path(os.path.normpath(self.base_path / file_path))
        root = str(self.base_path)
        if os.path.commonpath([str(target), root]) != root:
            raise ValueError(f"Path escapes data directory: {file_path}")
        return target

    def open(self, file_path: str) -> Tuple[SeekableReader, FileInfo]:
        try:
            path = self._get_path(file_path)
            handle = open(path, 'rb')
        except (OSError, ValueError) as e:
            raise SourceError(SourceErrorKind.OPEN_FAILED, path=file_path, detail=str(e)) from e
        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError as e:
            handle.close()
            raise SourceError(SourceErrorKind.OPEN_FAILED, path=file_path, detail=str(e)) from e
        return handle, FileInfo(size=size)

    def save(self, user_id: str, track_id: str, original_name: str,
             stream: BinaryIO) -> Tuple[str, int, str]:
        ext = os.path.splitext(original_name)[1].lower()
        rel_path = self.track_path(user_id, track_id, ext)
        dest_path = self._get_path(rel_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = dest_path.with_name(dest_path.name + ".tmp")
        try:
            with open(tmp_path, 'wb') as f:
                shutil.copyfileobj(stream, f)
            os.replace(tmp_path, dest_path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        return rel_path, dest_path.stat().st_size, guess_content_type(original_name)

    def delete(self, file_path: str) -> None:
        self._get_path(file_path).unlink(missing_ok=True)

    def resolve_full_path(self, file_path: str) -> Tuple[str, bool]:
        try:
            return str(self._get_path(file_path)), True
        except ValueError:
            return "", False
