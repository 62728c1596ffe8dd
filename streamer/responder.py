"""
Response builders for audio bytes.

Once a builder returns, the response owns the handle: it is closed when the
body iterator finishes, when the client goes away mid-transfer, or when the
WSGI server closes a response whose body was never iterated (HEAD requests).
If a builder raises, closing the handle is left to the caller.
"""

import logging
import time
import unicodedata
from http import HTTPStatus
from typing import Iterator
from urllib.parse import quote

from flask import Response

from shared.constants import COPY_BLOCK_BYTES, RANGE_UNIT, STREAM_CACHE_CONTROL
from shared.errors import SourceError, SourceErrorKind
from shared.models import ByteRange, ChunkPolicy, StreamTarget
from storage.storage_provider import SeekableReader
from .ranges import DEFAULT_POLICY, initial_range

logger = logging.getLogger(__name__)


def seek_to(handle: SeekableReader, offset: int, path: str = "") -> None:
    """Position the handle at an absolute offset, or raise SEEK_FAILED."""
    try:
        handle.seek(offset)
    except (OSError, ValueError) as e:
        logger.error("Seek failed for %s at byte %d: %s", path, offset, e)
        raise SourceError(SourceErrorKind.SEEK_FAILED, path=path, offset=offset, detail=str(e)) from e


def iter_span(handle: SeekableReader, byte_range: ByteRange, path: str = "",
              block_size: int = COPY_BLOCK_BYTES) -> Iterator[bytes]:
    """
    Yield exactly ``byte_range.length`` bytes from an already positioned handle.

    A source that runs dry before the span is complete raises COPY_FAILED so
    the server aborts the connection instead of sending a short body.
    """
    remaining = byte_range.length
    offset = byte_range.start
    copy_start = time.perf_counter()
    try:
        while remaining > 0:
            try:
                chunk = handle.read(min(block_size, remaining))
            except (OSError, ValueError) as e:
                logger.warning("Read failed for %s at byte %d (span %d-%d): %s",
                               path, offset, byte_range.start, byte_range.end, e)
                raise SourceError(SourceErrorKind.COPY_FAILED, path=path, offset=offset,
                                  detail=str(e)) from e
            if not chunk:
                logger.warning("Short copy for %s: source ended at byte %d, expected span %d-%d",
                               path, offset, byte_range.start, byte_range.end)
                raise SourceError(SourceErrorKind.COPY_FAILED, path=path, offset=offset,
                                  detail="source ended early")
            remaining -= len(chunk)
            offset += len(chunk)
            yield chunk
        logger.debug("Copied bytes %d-%d of %s in %.1f ms", byte_range.start, byte_range.end,
                     path, (time.perf_counter() - copy_start) * 1000)
    except GeneratorExit:
        logger.info("Client disconnected from %s at byte %d", path, offset)
        raise
    finally:
        handle.close()


def partial_response(handle: SeekableReader, target: StreamTarget, byte_range: ByteRange) -> Response:
    """206 Partial Content for a validated range."""
    seek_to(handle, byte_range.start, target.file_path)

    response = Response(
        iter_span(handle, byte_range, target.file_path),
        status=HTTPStatus.PARTIAL_CONTENT,
        content_type=target.content_type,
        direct_passthrough=True,
    )
    response.headers['Content-Length'] = str(byte_range.length)
    response.headers['Content-Range'] = byte_range.content_range(target.size_bytes)
    response.headers['Accept-Ranges'] = RANGE_UNIT
    response.headers['Cache-Control'] = STREAM_CACHE_CONTROL
    response.call_on_close(handle.close)
    return response


def initial_response(handle: SeekableReader, target: StreamTarget,
                     policy: ChunkPolicy = DEFAULT_POLICY) -> Response:
    """
    Answer a Range-less GET with the first chunk only, as a 206.

    Signalling partial content up front tells players that seeking works and
    that they should follow up with range requests.
    """
    return partial_response(handle, target, initial_range(target.size_bytes, policy))


def content_disposition(filename: str) -> str:
    """``attachment`` header value with an ASCII fallback and an RFC 5987 name."""
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    ascii_name = ascii_name.replace("\\", "_").replace('"', "_").strip() or "download"
    value = f'attachment; filename="{ascii_name}"'
    if ascii_name != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value


def download_response(handle: SeekableReader, target: StreamTarget, filename: str) -> Response:
    """200 with the whole blob as an attachment."""
    if target.size_bytes > 0:
        seek_to(handle, 0, target.file_path)
        body = iter_span(handle, ByteRange(0, target.size_bytes - 1), target.file_path)
    else:
        handle.close()
        body = []

    response = Response(body, status=HTTPStatus.OK, content_type=target.content_type,
                        direct_passthrough=True)
    response.headers['Content-Length'] = str(target.size_bytes)
    response.headers['Content-Disposition'] = content_disposition(filename)
    response.call_on_close(handle.close)
    return response
