"""
S3-compatible storage provider implementation.

Works with Cloudflare R2, Backblaze B2, AWS S3 and any endpoint speaking the
S3 API. Seekable reads are served with ranged ``GetObject`` requests so a
stream never downloads more of the object than the client asked for.
"""

import io
import logging
import os
from typing import Any, BinaryIO, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import SourceError, SourceErrorKind
from shared.models import FileInfo
from .local_provider import guess_content_type
from .storage_provider import BlobStorageProvider, SeekableReader

logger = logging.getLogger(__name__)


class S3ObjectReader:
    """
    Seekable, read-only view of one object.

    A ranged GET (``bytes=<pos>-``) is opened lazily on the first read after a
    seek and consumed incrementally; seeking elsewhere drops it.
    """

    def __init__(self, client: Any, bucket: str, key: str, size: int):
        self._client = client
        self._bucket = bucket
        self._key = key
        self.size = size
        self._pos = 0
        self._body = None
        self.closed = False

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        if whence == io.SEEK_SET:
            new_pos = offset
        elif whence == io.SEEK_CUR:
            new_pos = self._pos + offset
        elif whence == io.SEEK_END:
            new_pos = self.size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if new_pos < 0:
            raise OSError(f"Negative seek position {new_pos}")
        if new_pos != self._pos:
            self._drop_body()
        self._pos = new_pos
        return new_pos

    def read(self, size: int = -1) -> bytes:
        self._check_open()
        if self._pos >= self.size or size == 0:
            return b""
        if self._body is None:
            logger.debug("Ranged GET s3://%s/%s from byte %d", self._bucket, self._key, self._pos)
            try:
                response = self._client.get_object(
                    Bucket=self._bucket, Key=self._key, Range=f"bytes={self._pos}-"
                )
            except (ClientError, BotoCoreError) as e:
                raise OSError(f"Ranged GET failed for {self._key} at {self._pos}: {e}") from e
            self._body = response['Body']
        try:
            data = self._body.read() if size is None or size < 0 else self._body.read(size)
        except (ClientError, BotoCoreError) as e:
            raise OSError(f"Body read failed for {self._key} at {self._pos}: {e}") from e
        self._pos += len(data)
        return data

    def close(self) -> None:
        if not self.closed:
            self._drop_body()
            self.closed = True

    def _drop_body(self) -> None:
        if self._body is not None:
            self._body.close()
            self._body = None

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed object reader")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class S3CompatibleProvider(BlobStorageProvider):
    """
    Blob storage on an S3-compatible bucket using the boto3 S3 client.
    """

    def __init__(self, bucket: str, client: Any = None, endpoint_url: Optional[str] = None,
                 region: Optional[str] = None, access_key_id: Optional[str] = None,
                 secret_access_key: Optional[str] = None, prefix: str = ""):
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket_name = bucket
        self.endpoint_url = endpoint_url
        self.prefix = prefix.strip("/")
        self.s3_client = client or boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def _key(self, file_path: str) -> str:
        key = file_path.lstrip("/")
        return f"{self.prefix}/{key}" if self.prefix else key

    def open(self, file_path: str) -> Tuple[SeekableReader, FileInfo]:
        key = self._key(file_path)
        try:
            response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise SourceError(SourceErrorKind.OPEN_FAILED, path=file_path, detail=str(e)) from e
        size = int(response['ContentLength'])
        return S3ObjectReader(self.s3_client, self.bucket_name, key, size), FileInfo(size=size)

    def save(self, user_id: str, track_id: str, original_name: str,
             stream: BinaryIO) -> Tuple[str, int, str]:
        ext = os.path.splitext(original_name)[1].lower()
        rel_path = self.track_path(user_id, track_id, ext)
        key = self._key(rel_path)
        content_type = guess_content_type(original_name)

        self.s3_client.upload_fileobj(
            stream, self.bucket_name, key, ExtraArgs={'ContentType': content_type}
        )
        response = self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
        return rel_path, int(response['ContentLength']), content_type

    def delete(self, file_path: str) -> None:
        # DeleteObject succeeds for missing keys
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._key(file_path))

    def resolve_full_path(self, file_path: str) -> Tuple[str, bool]:
        return f"s3://{self.bucket_name}/{self._key(file_path)}", False
