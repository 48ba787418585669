"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from parley.core.errors import DMError
from parley.core.settings import settings
from parley.db.session import get_db
from parley.models import User
from parley.services.rate_limit import MessageRateLimiter, get_rate_limiter

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = db.get(User, subject)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_rate_limiter_dep() -> MessageRateLimiter:
    """Return the shared message rate limiter."""
    return get_rate_limiter()


def http_error(err: DMError) -> HTTPException:
    """Translate a core error into the matching HTTP error."""
    return HTTPException(status_code=err.status_code, detail=err.detail)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
RateLimiterDep = Annotated[MessageRateLimiter, Depends(get_rate_limiter_dep)]
