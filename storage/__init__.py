"""Blob storage backends exposing seekable reads: local disk and S3-compatible stores."""

from .storage_provider import BlobStorageProvider, SeekableReader
from .local_provider import LocalStorageProvider
from .s3_provider import S3CompatibleProvider
from .provider_factory import StorageProviderFactory

__all__ = [
    "BlobStorageProvider",
    "SeekableReader",
    "LocalStorageProvider",
    "S3CompatibleProvider",
    "StorageProviderFactory",
]
