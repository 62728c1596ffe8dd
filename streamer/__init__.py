"""Range-aware audio streaming: range parsing, chunk policy and 206 responders."""

from .ranges import RangeSpec, parse_range, parse_range_spec, resolve_range, initial_range
from .service import StreamService

__all__ = [
    "RangeSpec",
    "parse_range",
    "parse_range_spec",
    "resolve_range",
    "initial_range",
    "StreamService",
]
