# src/parley/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .direct_message import (
    Attachment,
    ConversationResponse,
    DirectMessageCreate,
    DirectMessageEdit,
    DirectMessageResponse,
    EncryptedEnvelope,
    ReactionToggle,
    ReadMarkRequest,
)
from .user import PublicKeyResponse, PublicKeyUpload, TokenResponse, UserRegister, UserResponse

__all__ = [
    "Attachment",
    "ConversationResponse",
    "DirectMessageCreate", "DirectMessageEdit", "DirectMessageResponse",
    "EncryptedEnvelope",
    "ReactionToggle", "ReadMarkRequest",
    "PublicKeyResponse", "PublicKeyUpload",
    "TokenResponse",
    "UserRegister", "UserResponse",
]
