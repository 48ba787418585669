"""Client-side helper that encrypts before sending and decrypts on read.

The server never sees private keys. ``DMClient`` keeps the caller's private
key in memory, fetches peers' public keys from the API, and applies the
plaintext fallback and "unable to decrypt" placeholder policies from
:mod:`parley.services.e2ee`.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from cryptography.hazmat.primitives.asymmetric import ec

from parley.core.body import body_from_wire
from parley.services.crypto import KeyExchange
from parley.services.e2ee import UNDECRYPTABLE_PLACEHOLDER, open_body, seal_message
from parley.services.thread_key import other_participant

logger = logging.getLogger(__name__)


class DMClientError(RuntimeError):
    """Raised when the API rejects a request."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class DMClient:
    """Thin synchronous client for the direct message API."""

    def __init__(
        self,
        http: httpx.Client,
        access_token: str,
        user_id: str,
        private_key: ec.EllipticCurvePrivateKey | None = None,
        *,
        api_prefix: str = "/api/v1",
    ) -> None:
        self._http = http
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._prefix = api_prefix.rstrip("/")
        self.user_id = user_id
        self.private_key = private_key
        self._public_keys: dict[str, dict[str, Any] | None] = {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._http.request(
                method,
                f"{self._prefix}{path}",
                headers=self._headers,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise DMClientError(0, f"Request failed: {exc}") from exc

        if response.status_code >= httpx.codes.BAD_REQUEST:
            try:
                detail = str(response.json().get("detail", response.text))
            except ValueError:
                detail = response.text
            raise DMClientError(response.status_code, detail)
        return response.json()

    # --- Keys -------------------------------------------------------------------------
    def upload_public_key(self) -> dict[str, Any]:
        """Publish the public half of ``private_key``."""
        if self.private_key is None:
            raise ValueError("No private key to publish")
        jwk = KeyExchange.public_key_to_jwk(self.private_key.public_key())
        return self._request("PUT", "/users/me/keys", json={"publicKeyJwk": jwk})

    def public_key_of(self, user_id: str, *, refresh: bool = False) -> dict[str, Any] | None:
        """Return a user's public key JWK, caching lookups."""
        if refresh or user_id not in self._public_keys:
            data = self._request("GET", f"/users/{quote(user_id, safe='')}/keys")
            self._public_keys[user_id] = data.get("public_key_jwk")
        return self._public_keys[user_id]

    # --- Messages ---------------------------------------------------------------------
    def send(
        self,
        recipient_id: str,
        text: str,
        *,
        attachments: list[dict[str, Any]] | None = None,
        reply_to_id: str | None = None,
    ) -> dict[str, Any]:
        """Encrypt ``text`` for the recipient when possible and send it."""
        body = seal_message(
            text,
            sender_private_key=self.private_key,
            recipient_public_jwk=self.public_key_of(recipient_id, refresh=True),
            recipient_id=recipient_id,
        )
        payload = {
            "body": body.to_wire(),
            "attachments": attachments or [],
            "reply_to_id": reply_to_id,
        }
        return self._request("POST", f"/dms/{quote(recipient_id, safe='')}/messages", json=payload)

    def edit(self, message_id: str, recipient_id: str, text: str) -> dict[str, Any]:
        """Replace one of our messages, re-encrypting under the current keys."""
        body = seal_message(
            text,
            sender_private_key=self.private_key,
            recipient_public_jwk=self.public_key_of(recipient_id, refresh=True),
            recipient_id=recipient_id,
        )
        return self._request(
            "PUT",
            f"/dms/messages/{quote(message_id, safe='')}",
            json={"body": body.to_wire()},
        )

    def delete(self, message_id: str) -> None:
        self._request("DELETE", f"/dms/messages/{quote(message_id, safe='')}")

    def react(self, message_id: str, emoji: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/dms/messages/{quote(message_id, safe='')}/reactions",
            json={"emoji": emoji},
        )

    def mark_read(self, thread_id: str) -> int:
        data = self._request("PUT", f"/dms/{quote(thread_id, safe='')}/read")
        return int(data["last_read_at"])

    def conversations(self) -> list[dict[str, Any]]:
        return self._request("GET", "/dms")

    def thread(self, thread_id: str) -> list[dict[str, Any]]:
        """Fetch every message of a thread with a decrypted ``text`` field added."""
        peer_id = other_participant(thread_id, self.user_id)
        messages: list[dict[str, Any]] = []
        after_seq: int | None = None
        while True:
            params = {"after_seq": after_seq} if after_seq is not None else None
            page = self._request("GET", f"/dms/{quote(thread_id, safe='')}/messages", params=params)
            messages.extend(page["messages"])
            after_seq = page.get("next_after_seq")
            if after_seq is None:
                break

        for message in messages:
            try:
                body = body_from_wire(message["body"])
            except ValueError:
                logger.info("Message %s has an unrecognised body", message.get("id"))
                message["text"] = UNDECRYPTABLE_PLACEHOLDER
                continue
            message["text"] = open_body(
                body,
                my_private_key=self.private_key,
                peer_public_jwk=self.public_key_of(peer_id),
            )
        return messages
