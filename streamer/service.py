"""
Stream service: opens a track's blob and hands it to the right responder.

The handle is acquired here and released on every exit path. Range syntax is
checked before storage is touched, bounds after the live size is known.
"""

import logging
import time
from http import HTTPStatus
from typing import Optional, Tuple

from flask import Response

from shared.constants import RANGE_UNIT
from shared.errors import SourceError
from shared.models import ChunkPolicy, StreamTarget, Track
from storage.storage_provider import BlobStorageProvider, SeekableReader
from .ranges import DEFAULT_POLICY, parse_range_spec, resolve_range
from .responder import download_response, initial_response, partial_response

logger = logging.getLogger(__name__)


class StreamService:
    """Serves track audio from a storage provider with chunked range semantics."""

    def __init__(self, storage: BlobStorageProvider, policy: ChunkPolicy = DEFAULT_POLICY):
        self.storage = storage
        self.policy = policy

    def open_target(self, track: Track) -> Tuple[SeekableReader, StreamTarget]:
        """
        Open the blob behind a track.

        The size used for range arithmetic is the live size from storage; a
        stored size that disagrees is only reported.
        """
        open_start = time.perf_counter()
        try:
            handle, info = self.storage.open(track.file_path)
        except SourceError as e:
            logger.error("Blob for track %s is missing or unreadable (%s): %s",
                         track.id, track.file_path, e.detail)
            raise
        logger.debug("Opened %s in %.1f ms", track.file_path, (time.perf_counter() - open_start) * 1000)

        if info.size != track.size_bytes:
            logger.warning("Track %s: stored size %d differs from live size %d",
                           track.id, track.size_bytes, info.size)
        return handle, StreamTarget(track.file_path, track.content_type, info.size)

    def stream(self, track: Track, range_header: Optional[str]) -> Response:
        """
        Build the response for ``GET /tracks/<id>/stream``.

        Args:
            track: Track the caller is allowed to read
            range_header: Raw Range header value, None if the header is absent

        Raises:
            RangeError: For malformed, multi-range or out-of-bounds ranges
            SourceError: If the blob cannot be opened or positioned
        """
        spec = parse_range_spec(range_header) if range_header is not None else None

        handle, target = self.open_target(track)
        try:
            if spec is not None:
                byte_range = resolve_range(spec, target.size_bytes, self.policy, range_header)
                logger.debug("Range %r -> bytes %d-%d of %s", range_header,
                             byte_range.start, byte_range.end, track.id)
                return partial_response(handle, target, byte_range)
            if target.size_bytes == 0:
                handle.close()
                return self._empty_response(target)
            return initial_response(handle, target, self.policy)
        except BaseException:
            handle.close()
            raise

    def download(self, track: Track) -> Response:
        """Build the response for ``GET /tracks/<id>/download``."""
        handle, target = self.open_target(track)
        try:
            return download_response(handle, target, track.original_filename)
        except BaseException:
            handle.close()
            raise

    @staticmethod
    def _empty_response(target: StreamTarget) -> Response:
        response = Response(b"", status=HTTPStatus.OK, content_type=target.content_type)
        response.headers['Accept-Ranges'] = RANGE_UNIT
        return response
