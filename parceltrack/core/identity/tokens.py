# parceltrack/core/identity/tokens.py
"""
Signed bearer tokens.

The auth proxy verifies the user's session upstream and hands the client an
HS256 JWT carrying the user id in `sub`.
"""

from __future__ import annotations

import time
from typing import Optional

import jwt
from pydantic import BaseModel

from parceltrack.common.exceptions import UnauthorizedError

ALGORITHM = "HS256"


class TokenClaims(BaseModel):
    """Claims carried by a bearer token."""
    sub: str
    exp: int
    iat: Optional[int] = None


def issue_token(
    user_id: str,
    secret: str,
    ttl: int = 3600,
    now: Optional[float] = None,
) -> str:
    """
    Issues a token for user_id.

    Args:
        user_id: Authenticated user id
        secret: Shared signing secret
        ttl: Lifetime in seconds
        now: Current unix time (defaults to time.time())
    """
    issued_at = int(now if now is not None else time.time())
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + ttl}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: str, secret: str) -> TokenClaims:
    """
    Verifies signature and expiry.

    Returns:
        Token claims

    Raises:
        UnauthorizedError: malformed, forged or expired token
    """
    if not secret:
        raise UnauthorizedError("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidSignatureError:
        raise UnauthorizedError("Invalid token signature")
    except jwt.PyJWTError as e:
        raise UnauthorizedError("Malformed token") from e

    if not payload.get("sub"):
        raise UnauthorizedError("Token has no subject")

    return TokenClaims.model_validate(payload)
