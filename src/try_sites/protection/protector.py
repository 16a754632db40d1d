"""Encrypt short secrets with an embedded expiration.

Tokens are Fernet ciphertexts (AES-128-CBC with an HMAC-SHA256 tag) over a
small JSON envelope::

    {"v": "<plaintext>", "exp": <unix seconds>}

The Fernet key is derived from the application secret and a purpose
string, so a token protected for one purpose cannot be read by a protector
created for another. Tokens are URL-safe and can travel as query parameters.
"""

import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from try_sites.common.clock import Clock
from try_sites.common.exceptions import DecryptionError, TokenExpiredError

logger = logging.getLogger(__name__)


class UnprotectStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class UnprotectResult:
    """Outcome of reading a protected token without raising."""

    status: UnprotectStatus
    plaintext: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is UnprotectStatus.VALID


def _derive_key(secret: str, purpose: str) -> bytes:
    digest = hashlib.sha256(f"{secret}|{purpose}".encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class TimeLimitedDataProtector:
    """Protect and unprotect strings that stop being readable after a deadline."""

    def __init__(self, secret: str, purpose: str, clock: Clock | None = None):
        if not secret:
            raise ValueError("Data protection requires a non-empty secret")
        self.purpose = purpose
        self._clock = clock or Clock()
        self._fernet = Fernet(_derive_key(secret, purpose))

    def protect(self, plaintext: str, expiration: datetime) -> str:
        envelope = json.dumps(
            {"v": plaintext, "exp": int(expiration.timestamp())},
            separators=(",", ":"),
        )
        return self._fernet.encrypt(envelope.encode("utf-8")).decode("ascii")

    def unprotect(self, ciphertext: str) -> str:
        """Return the plaintext or raise DecryptionError / TokenExpiredError."""
        if not ciphertext:
            raise DecryptionError("No protected payload supplied")
        try:
            raw = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise DecryptionError() from exc

        try:
            envelope = json.loads(raw)
            plaintext = envelope["v"]
            expires = int(envelope["exp"])
        except (ValueError, KeyError, TypeError) as exc:
            raise DecryptionError("Malformed protected payload") from exc

        if self._clock.utc_now.timestamp() >= expires:
            raise TokenExpiredError()
        return plaintext

    def try_unprotect(self, ciphertext: str) -> UnprotectResult:
        try:
            return UnprotectResult(UnprotectStatus.VALID, self.unprotect(ciphertext))
        except TokenExpiredError:
            logger.warning("Protected payload expired (purpose=%s)", self.purpose)
            return UnprotectResult(UnprotectStatus.EXPIRED)
        except DecryptionError:
            logger.exception("Error decrypting the protected payload (purpose=%s)", self.purpose)
            return UnprotectResult(UnprotectStatus.INVALID)


class DataProtectionProvider:
    """Hands out purpose-scoped protectors sharing one secret and clock."""

    def __init__(self, secret: str, clock: Clock | None = None):
        self._secret = secret
        self._clock = clock or Clock()

    def create_protector(self, purpose: str) -> TimeLimitedDataProtector:
        return TimeLimitedDataProtector(self._secret, purpose, clock=self._clock)
