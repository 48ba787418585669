"""SQLAlchemy model for user accounts."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.session import Base


class User(Base):
    """Account participating in direct messages.

    ``public_key_jwk`` holds the user's ECDH P-256 public key. It is optional;
    messages to a user without one are stored as plaintext.
    """

    __tablename__ = "user_account"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    public_key_jwk: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    @property
    def public_key(self) -> dict[str, Any] | None:
        """Return the stored public key as a JWK dictionary."""
        if self.public_key_jwk is None:
            return None
        return json.loads(self.public_key_jwk)
