"""
Range header parsing and chunk ceiling policy.

Only the single-range forms ``bytes=<start>-<end>`` and ``bytes=<start>-`` are
served. Every range is capped to a chunk ceiling so one response never carries
more than ``ChunkPolicy.steady_bytes``; open-ended requests from the start of
the file get the smaller ``initial_bytes`` ceiling to get audio playing sooner.
"""

import re
from dataclasses import dataclass
from typing import Optional

from shared.constants import RANGE_UNIT
from shared.errors import RangeError, RangeErrorKind
from shared.models import ByteRange, ChunkPolicy

DEFAULT_POLICY = ChunkPolicy()

_DIGITS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class RangeSpec:
    """Syntactically valid range before it is checked against a file size."""
    start: int
    end: Optional[int] = None

    @property
    def open_ended(self) -> bool:
        return self.end is None


def _parse_int(value: str, header: str) -> int:
    if not _DIGITS.fullmatch(value):
        raise RangeError(RangeErrorKind.MALFORMED, header)
    return int(value)


def parse_range_spec(header: str) -> RangeSpec:
    """
    Parse the syntax of a Range header value.

    Raises:
        RangeError: MULTI_RANGE_UNSUPPORTED for comma separated ranges,
            MALFORMED for anything else that is not ``bytes=<start>-[<end>]``
    """
    value = (header or "").strip()
    if "," in value:
        raise RangeError(RangeErrorKind.MULTI_RANGE_UNSUPPORTED, header)

    unit, sep, spec = value.partition("=")
    if not sep or unit.strip().lower() != RANGE_UNIT:
        raise RangeError(RangeErrorKind.MALFORMED, header)

    parts = spec.strip().split("-")
    if len(parts) != 2:
        raise RangeError(RangeErrorKind.MALFORMED, header)

    start = _parse_int(parts[0], header)
    if parts[1] == "":
        return RangeSpec(start)
    return RangeSpec(start, _parse_int(parts[1], header))


def resolve_range(spec: RangeSpec, file_size: int, policy: ChunkPolicy = DEFAULT_POLICY,
                  header: str = "") -> ByteRange:
    """
    Apply the chunk ceilings to a range and validate it against the file size.

    Raises:
        RangeError: UNSATISFIABLE if the interval falls outside ``[0, file_size)``
            or ``start > end``
    """
    start = spec.start
    if spec.open_ended:
        ceiling = policy.initial_bytes if start == 0 else policy.steady_bytes
        end = min(start + ceiling - 1, file_size - 1)
    else:
        end = spec.end
        if end - start + 1 > policy.steady_bytes:
            end = start + policy.steady_bytes - 1

    if start >= file_size or end >= file_size or start > end:
        raise RangeError(RangeErrorKind.UNSATISFIABLE, header, size=file_size)
    return ByteRange(start, end)


def parse_range(header: str, file_size: int, policy: ChunkPolicy = DEFAULT_POLICY) -> ByteRange:
    """Parse a Range header into a capped, validated ByteRange."""
    try:
        spec = parse_range_spec(header)
    except RangeError as e:
        e.size = file_size
        raise
    return resolve_range(spec, file_size, policy, header)


def initial_range(file_size: int, policy: ChunkPolicy = DEFAULT_POLICY) -> ByteRange:
    """The first chunk served when a request carries no Range header."""
    if file_size <= 0:
        raise RangeError(RangeErrorKind.UNSATISFIABLE, size=file_size)
    return ByteRange(0, min(policy.initial_bytes, file_size) - 1)
