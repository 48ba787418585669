"""Error kinds raised by the direct-message core.

Every error is a local, recoverable condition reported to the immediate
caller. The API layer maps ``status_code`` onto the HTTP response.
"""

from __future__ import annotations


class DMError(Exception):
    """Base class for direct-message failures."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidInput(DMError):
    """Malformed participants, empty bodies, bad envelopes and similar."""

    status_code = 400


class Forbidden(DMError):
    """The caller does not own the message or is not in the thread."""

    status_code = 403


class NotFound(DMError):
    """The message or thread does not exist (or was deleted concurrently)."""

    status_code = 404


class DecryptionFailed(DMError):
    """Authentication tag mismatch, wrong key or corrupted envelope."""

    status_code = 422


class EncryptionUnavailable(DMError):
    """The peer has no public key on file; callers fall back to plaintext."""

    status_code = 409


class RateLimited(DMError):
    """The sender exhausted the message allowance for the current window."""

    status_code = 429
