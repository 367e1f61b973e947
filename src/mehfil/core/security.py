"""Bearer token helpers.

Session issuance belongs to the portal's auth service; Mehfil only verifies
the HS256 tokens it hands out and reads the user id from the ``sub`` claim.
"""
from __future__ import annotations

from datetime import timedelta

from jose import JWTError, jwt

from mehfil.core.settings import settings
from mehfil.db.time import utcnow

DEFAULT_TOKEN_TTL = timedelta(days=30)


def create_access_token(user_id: str, expires_in: timedelta = DEFAULT_TOKEN_TTL) -> str:
    """Return a signed token for ``user_id``; used by tooling and tests."""
    now = utcnow()
    payload = {"sub": user_id, "iat": int(now.timestamp()), "exp": now + expires_in}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_user_id(token: str) -> str:
    """Return the user id carried by ``token``.

    Raises:
        ValueError: If the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise ValueError("Could not validate credentials") from err
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Could not validate credentials")
    return str(subject)
