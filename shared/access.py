"""
Who is asking, and may they read this track.

Access tokens are issued by the CrateDrop auth service; this module only
verifies them (HS256, shared ``JWT_SECRET``). Tokens arrive as
``Authorization: Bearer <token>`` or, for ``<audio>`` elements that cannot set
headers, in the ``access_token`` cookie.
"""

import logging
from typing import Optional

import jwt

from shared.constants import ACCESS_TOKEN_COOKIE, JWT_ALGORITHMS, ROLE_USER
from shared.database import DatabaseManager
from shared.errors import AuthError, AuthErrorKind
from shared.models import Requester, Track

logger = logging.getLogger(__name__)


def extract_token(authorization: Optional[str], cookies) -> Optional[str]:
    """Pull the raw token from the Authorization header or the cookie jar."""
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme != "Bearer" or not token.strip():
            raise AuthError(AuthErrorKind.INVALID_TOKEN)
        return token.strip()
    return cookies.get(ACCESS_TOKEN_COOKIE) or None


def verify_access_token(token: str, secret: str) -> Requester:
    """
    Decode an access token into a Requester.

    Raises:
        AuthError: TOKEN_EXPIRED or INVALID_TOKEN
    """
    if not secret:
        logger.error("JWT_SECRET is not configured; rejecting all tokens")
        raise AuthError(AuthErrorKind.INVALID_TOKEN)
    try:
        claims = jwt.decode(token, secret, algorithms=JWT_ALGORITHMS)
    except jwt.ExpiredSignatureError:
        raise AuthError(AuthErrorKind.TOKEN_EXPIRED)
    except jwt.PyJWTError as e:
        logger.info("Rejected access token: %s", e)
        raise AuthError(AuthErrorKind.INVALID_TOKEN)

    user_id = claims.get("user_id") or claims.get("sub")
    if not user_id:
        raise AuthError(AuthErrorKind.INVALID_TOKEN)
    return Requester(user_id=str(user_id), role=claims.get("role") or ROLE_USER)


def resolve_requester(request, secret: str) -> Requester:
    """Authenticate a Flask request, raising AUTH_REQUIRED when no token is sent."""
    token = extract_token(request.headers.get("Authorization"), request.cookies)
    if not token:
        raise AuthError(AuthErrorKind.AUTH_REQUIRED)
    return verify_access_token(token, secret)


def can_stream(requester: Requester, track: Track, db: DatabaseManager) -> bool:
    """
    Access gate for reading a track's audio.

    Allowed for admins, for the owner, and for anyone when the track sits in a
    crate marked public.
    """
    if requester.is_admin:
        return True
    if track.owner_user_id == requester.user_id:
        return True
    return db.is_track_in_public_playlist(track.id)
