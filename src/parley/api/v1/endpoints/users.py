"""User profile and public key endpoints."""

from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, status

from parley.core.errors import DMError
from parley.models import User
from parley.schemas.user import PublicKeyResponse, PublicKeyUpload, UserResponse
from parley.services.crypto import KeyExchange

from ..dependencies import CurrentUserDep, SessionDep, http_error

router = APIRouter(prefix="/users", tags=["users"])


def _to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, display_name=user.display_name, public_key_jwk=user.public_key)


def _get_user_or_404(db: SessionDep, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/me", response_model=UserResponse)
def read_me(current_user: CurrentUserDep) -> UserResponse:
    """Return the authenticated user."""
    return _to_response(current_user)


@router.put("/me/keys", response_model=UserResponse)
def upload_public_key(
    payload: PublicKeyUpload,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> UserResponse:
    """Set or replace the caller's ECDH public key."""
    try:
        public_key = KeyExchange.load_public_key(payload.public_key_jwk)
    except DMError as err:
        raise http_error(err) from err

    # Store the normalized form only; private fields are never persisted.
    current_user.public_key_jwk = json.dumps(
        KeyExchange.public_key_to_jwk(public_key),
        sort_keys=True,
    )
    db.commit()
    db.refresh(current_user)
    return _to_response(current_user)


@router.get("/{user_id}", response_model=UserResponse)
def read_user(user_id: str, _: CurrentUserDep, db: SessionDep) -> UserResponse:
    """Return a user's public profile."""
    return _to_response(_get_user_or_404(db, user_id))


@router.get("/{user_id}/keys", response_model=PublicKeyResponse)
def read_public_key(user_id: str, _: CurrentUserDep, db: SessionDep) -> PublicKeyResponse:
    """Return a user's public key, or null when they have not uploaded one."""
    user = _get_user_or_404(db, user_id)
    return PublicKeyResponse(user_id=user.id, public_key_jwk=user.public_key)
