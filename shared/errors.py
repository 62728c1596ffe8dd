"""
Error kinds raised by the streaming service.

Callers branch on ``error.kind``, never on the message text.
"""

from enum import Enum
from http import HTTPStatus
from typing import Optional


class RangeErrorKind(Enum):
    MALFORMED = "malformed"
    UNSATISFIABLE = "unsatisfiable"
    MULTI_RANGE_UNSUPPORTED = "multi_range_unsupported"

    @property
    def is_malformed(self) -> bool:
        return self in (RangeErrorKind.MALFORMED, RangeErrorKind.MULTI_RANGE_UNSUPPORTED)


class SourceErrorKind(Enum):
    OPEN_FAILED = "open_failed"
    SEEK_FAILED = "seek_failed"
    COPY_FAILED = "copy_failed"


class AuthErrorKind(Enum):
    AUTH_REQUIRED = "auth_required"
    TOKEN_EXPIRED = "token_expired"
    INVALID_TOKEN = "invalid_token"


class StreamError(Exception):
    """Base class for errors translated into HTTP responses."""
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    code = "server_error"
    public_message = "Internal server error"


class RangeError(StreamError):
    """The Range header cannot be served."""
    status = HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE
    public_message = "Requested range not satisfiable"

    def __init__(self, kind: RangeErrorKind, header: str = "", size: Optional[int] = None):
        super().__init__(f"{kind.value}: {header!r}")
        self.kind = kind
        self.header = header
        self.size = size

    @property
    def code(self) -> str:
        return "range_" + self.kind.value


class SourceError(StreamError):
    """The blob behind a track could not be opened, positioned or read."""
    public_message = "Failed to read audio file"

    def __init__(self, kind: SourceErrorKind, path: str = "", offset: Optional[int] = None,
                 detail: str = ""):
        super().__init__(f"{kind.value} path={path} offset={offset} {detail}".strip())
        self.kind = kind
        self.path = path
        self.offset = offset
        self.detail = detail


class AuthError(StreamError):
    status = HTTPStatus.UNAUTHORIZED

    def __init__(self, kind: AuthErrorKind):
        super().__init__(kind.value)
        self.kind = kind

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def public_message(self) -> str:
        return {
            AuthErrorKind.AUTH_REQUIRED: "Authentication required",
            AuthErrorKind.TOKEN_EXPIRED: "Access token expired",
            AuthErrorKind.INVALID_TOKEN: "Invalid access token",
        }[self.kind]


class TrackNotFound(StreamError):
    status = HTTPStatus.NOT_FOUND
    code = "track_not_found"
    public_message = "Track not found"


class AccessDenied(StreamError):
    status = HTTPStatus.FORBIDDEN
    code = "access_denied"
    public_message = "Access denied"
