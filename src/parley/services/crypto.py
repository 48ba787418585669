"""Key exchange and authenticated encryption for direct messages."""

from __future__ import annotations

import base64
import binascii
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from parley.core.body import EncryptedBody
from parley.core.errors import DecryptionFailed, EncryptionUnavailable, InvalidInput

CURVE_NAME = "P-256"
COORDINATE_BYTES = 32
SHARED_KEY_BYTES = 32
IV_BYTES = 12


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(data + padding)
    except (binascii.Error, ValueError) as err:
        raise InvalidInput(f"Invalid base64url encoding: {err}") from err


def _b64_decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionFailed("Envelope is not valid base64") from err


class KeyExchange:
    """ECDH P-256 key agreement and AES-256-GCM message sealing.

    Keys travel as JWK dictionaries, the format browsers export from
    WebCrypto. The raw ECDH shared secret is used directly as the AES key,
    which is what ``deriveKey({name: "ECDH"}, ..., {name: "AES-GCM", length: 256})``
    does, so keys derived here interoperate with web clients.
    """

    @staticmethod
    def generate_key_pair() -> ec.EllipticCurvePrivateKey:
        """Generate a fresh P-256 private key (the public half is derived)."""
        return ec.generate_private_key(ec.SECP256R1())

    @staticmethod
    def public_key_to_jwk(public_key: ec.EllipticCurvePublicKey) -> dict[str, Any]:
        """Export a public key as a JWK dictionary."""
        numbers = public_key.public_numbers()
        return {
            "kty": "EC",
            "crv": CURVE_NAME,
            "x": _b64url_encode(numbers.x.to_bytes(COORDINATE_BYTES, "big")),
            "y": _b64url_encode(numbers.y.to_bytes(COORDINATE_BYTES, "big")),
            "ext": True,
        }

    @staticmethod
    def private_key_to_jwk(private_key: ec.EllipticCurvePrivateKey) -> dict[str, Any]:
        """Export a private key (with its public coordinates) as a JWK dictionary."""
        jwk = KeyExchange.public_key_to_jwk(private_key.public_key())
        private_value = private_key.private_numbers().private_value
        jwk["d"] = _b64url_encode(private_value.to_bytes(COORDINATE_BYTES, "big"))
        return jwk

    @staticmethod
    def _coordinate(jwk: dict[str, Any], name: str) -> int:
        value = jwk.get(name)
        if not isinstance(value, str):
            raise InvalidInput(f"JWK is missing '{name}'")
        raw = _b64url_decode(value)
        if len(raw) != COORDINATE_BYTES:
            raise InvalidInput(f"JWK '{name}' must be {COORDINATE_BYTES} bytes")
        return int.from_bytes(raw, "big")

    @staticmethod
    def load_public_key(jwk: dict[str, Any] | None) -> ec.EllipticCurvePublicKey:
        """Import a P-256 public key from a JWK dictionary.

        Raises:
            EncryptionUnavailable: If no key is on file.
            InvalidInput: If the JWK is malformed or not a point on P-256.
        """
        if jwk is None:
            raise EncryptionUnavailable("No public key on file")
        if jwk.get("kty") != "EC" or jwk.get("crv") != CURVE_NAME:
            raise InvalidInput("Public key must be an EC P-256 JWK")
        x = KeyExchange._coordinate(jwk, "x")
        y = KeyExchange._coordinate(jwk, "y")
        try:
            return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
        except ValueError as err:
            raise InvalidInput("Public key is not a valid P-256 point") from err

    @staticmethod
    def load_private_key(jwk: dict[str, Any]) -> ec.EllipticCurvePrivateKey:
        """Import a P-256 private key from a JWK dictionary."""
        public_key = KeyExchange.load_public_key(jwk)
        d = KeyExchange._coordinate(jwk, "d")
        try:
            return ec.EllipticCurvePrivateNumbers(d, public_key.public_numbers()).private_key()
        except ValueError as err:
            raise InvalidInput("Private key does not match its public coordinates") from err

    @staticmethod
    def derive_shared_key(
        my_private_key: ec.EllipticCurvePrivateKey,
        their_public_key: ec.EllipticCurvePublicKey,
    ) -> bytes:
        """Derive the symmetric key both participants compute independently."""
        return my_private_key.exchange(ec.ECDH(), their_public_key)

    @staticmethod
    def encrypt(key: bytes, plaintext: str) -> EncryptedBody:
        """Seal ``plaintext`` under ``key`` with a fresh random IV."""
        if len(key) != SHARED_KEY_BYTES:
            raise InvalidInput("Symmetric key must be 32 bytes")
        iv = os.urandom(IV_BYTES)
        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError as err:
            raise InvalidInput("Plaintext must be valid UTF-8 text") from err
        cipher_text = AESGCM(key).encrypt(iv, data, None)
        return EncryptedBody(
            cipher_text=base64.b64encode(cipher_text).decode(),
            iv=base64.b64encode(iv).decode(),
        )

    @staticmethod
    def decrypt(key: bytes, cipher_text: str, iv: str) -> str:
        """Open an envelope sealed by :meth:`encrypt`.

        Raises:
            DecryptionFailed: If the key is wrong, the data was tampered with,
                or the envelope is malformed.
        """
        iv_bytes = _b64_decode(iv)
        if len(iv_bytes) != IV_BYTES:
            raise DecryptionFailed("Envelope IV has the wrong length")
        if len(key) != SHARED_KEY_BYTES:
            raise DecryptionFailed("Symmetric key must be 32 bytes")
        try:
            plaintext = AESGCM(key).decrypt(iv_bytes, _b64_decode(cipher_text), None)
        except InvalidTag as err:
            raise DecryptionFailed("Authentication tag did not verify") from err
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecryptionFailed("Decrypted payload is not UTF-8") from err
