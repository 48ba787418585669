"""Sender and reader policies around the key exchange primitives."""

from __future__ import annotations

import logging
from typing import Any, Final

from cryptography.hazmat.primitives.asymmetric import ec

from parley.core.body import EncryptedBody, MessageBody, PlaintextBody
from parley.core.errors import DecryptionFailed, EncryptionUnavailable, InvalidInput
from parley.services.crypto import KeyExchange

logger = logging.getLogger(__name__)

UNDECRYPTABLE_PLACEHOLDER: Final[str] = "[unable to decrypt message]"


def seal_message(
    text: str,
    *,
    sender_private_key: ec.EllipticCurvePrivateKey | None,
    recipient_public_jwk: dict[str, Any] | None,
    recipient_id: str = "",
) -> MessageBody:
    """Return the body to send for ``text``.

    Encrypts for the recipient when both sides have key material. When the
    recipient has no public key (or the sender has no private key) the body
    is sent as plaintext and the decision is logged.
    """
    try:
        if sender_private_key is None:
            raise EncryptionUnavailable("Sender has no private key")
        their_public = KeyExchange.load_public_key(recipient_public_jwk)
    except EncryptionUnavailable as exc:
        logger.warning(
            "Sending plaintext message to %s: %s",
            recipient_id or "recipient",
            exc.detail,
        )
        return PlaintextBody(text=text)

    key = KeyExchange.derive_shared_key(sender_private_key, their_public)
    return KeyExchange.encrypt(key, text)


def open_body(
    body: MessageBody,
    *,
    my_private_key: ec.EllipticCurvePrivateKey | None,
    peer_public_jwk: dict[str, Any] | None,
) -> str:
    """Return displayable text for ``body``.

    Plaintext passes through. Envelopes that cannot be opened yield
    ``UNDECRYPTABLE_PLACEHOLDER`` rather than ciphertext or an exception.
    """
    if isinstance(body, PlaintextBody):
        return body.text
    if not isinstance(body, EncryptedBody):
        raise TypeError(f"Unsupported body type: {type(body).__name__}")

    try:
        if my_private_key is None:
            raise EncryptionUnavailable("No private key available")
        their_public = KeyExchange.load_public_key(peer_public_jwk)
        key = KeyExchange.derive_shared_key(my_private_key, their_public)
        return KeyExchange.decrypt(key, body.cipher_text, body.iv)
    except (DecryptionFailed, EncryptionUnavailable, InvalidInput) as exc:
        logger.info("Could not decrypt message body: %s", exc.detail)
        return UNDECRYPTABLE_PLACEHOLDER
