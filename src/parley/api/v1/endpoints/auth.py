"""Account creation and token issuance."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, HTTPException, status
from jose import jwt

from parley.core.errors import InvalidInput
from parley.core.settings import settings
from parley.db.time import now_ms
from parley.models import User
from parley.schemas.user import TokenResponse, UserRegister, UserResponse
from parley.utils.ids import new_id
from parley.utils.text import require_utf8

from ..dependencies import SessionDep, http_error

router = APIRouter(prefix="/auth", tags=["auth"])


def create_access_token(subject: str, extra_claims: dict[str, str] | None = None) -> str:
    """Create JWT access token for user authentication."""
    to_encode: dict[str, object] = {"sub": subject}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=TokenResponse)
def register(payload: UserRegister, db: SessionDep) -> TokenResponse:
    """Create an account and return a bearer token for it."""
    display_name = payload.display_name.strip()
    if not display_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Display name must not be blank",
        )
    try:
        require_utf8(display_name, "Display name")
    except InvalidInput as err:
        raise http_error(err) from err

    user = User(
        id=new_id("usr"),
        display_name=display_name,
        public_key_jwk=None,
        created_at=now_ms(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    return TokenResponse(
        access_token=create_access_token(user.id),
        user=UserResponse(id=user.id, display_name=user.display_name, public_key_jwk=None),
    )
