"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from mehfil.core.security import decode_user_id
from mehfil.db.session import get_db
from mehfil.realtime.gateway import MehfilNamespace
from mehfil.services.classifier import ContentClassifier, get_classifier

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_db)]


def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> str:
    """Return the portal user id carried by the bearer token.

    Args:
        credentials: HTTP Bearer token credentials

    Returns:
        The ``sub`` claim of the token

    Raises:
        HTTPException: If the token is invalid or expired
    """
    try:
        return decode_user_id(credentials.credentials)
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


def get_classifier_dep() -> ContentClassifier:
    """Return the shared content classifier."""
    return get_classifier()


def get_gateway(request: Request) -> MehfilNamespace | None:
    """Return the realtime gateway mounted next to the app, if any."""
    return getattr(request.app.state, "mehfil_gateway", None)


# Type alias for current user dependency
CurrentUserIdDep = Annotated[str, Depends(get_current_user_id)]
ClassifierDep = Annotated[ContentClassifier, Depends(get_classifier_dep)]
GatewayDep = Annotated[MehfilNamespace | None, Depends(get_gateway)]
