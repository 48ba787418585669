"""Message body variants.

A body is decided once, when it is constructed, and carried explicitly from
then on: either ``PlaintextBody`` or ``EncryptedBody``. Stored rows record the
variant in a column; nothing re-parses a string to discover it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

BODY_KIND_PLAINTEXT = "plaintext"
BODY_KIND_ENCRYPTED = "encrypted"


@dataclass(frozen=True)
class PlaintextBody:
    """UTF-8 text stored as-is."""

    text: str

    kind = BODY_KIND_PLAINTEXT

    def to_wire(self) -> str:
        return self.text


@dataclass(frozen=True)
class EncryptedBody:
    """AES-GCM ciphertext and IV, both standard base64, opaque to the server."""

    cipher_text: str
    iv: str

    kind = BODY_KIND_ENCRYPTED

    def to_wire(self) -> dict[str, Any]:
        """Return the persisted envelope shape shared with every client."""
        return {"encrypted": True, "cipherText": self.cipher_text, "iv": self.iv}


MessageBody = PlaintextBody | EncryptedBody


def body_from_wire(value: str | dict[str, Any]) -> MessageBody:
    """Build the variant from a decoded JSON ``body`` field.

    Only an object with ``"encrypted": true`` is an envelope; a JSON string is
    plaintext.
    """
    if isinstance(value, str):
        return PlaintextBody(text=value)
    if isinstance(value, dict) and value.get("encrypted") is True:
        cipher_text = value.get("cipherText")
        iv = value.get("iv")
        if isinstance(cipher_text, str) and isinstance(iv, str):
            return EncryptedBody(cipher_text=cipher_text, iv=iv)
    raise ValueError("Unrecognised message body")
