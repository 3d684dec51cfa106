"""Fernet-based encryption provider used by production runs."""

from __future__ import annotations

import base64
import hashlib
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken


class EncryptionProvider(Protocol):
    """Capability that turns plaintext bytes into raw ciphertext bytes."""

    def encrypt(self, data: bytes) -> bytes:
        ...


class FernetEncryptionProvider:
    """Encrypt credential bytes with a Fernet key derived from a secret.

    ``encrypt`` returns the raw Fernet token bytes (not its urlsafe text
    form); the encryption gateway is responsible for the text encoding that
    ends up in the database.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        key = base64.urlsafe_b64encode(digest)
        self._fernet = Fernet(key)

    def encrypt(self, data: bytes) -> bytes:
        token = self._fernet.encrypt(data)
        return base64.urlsafe_b64decode(token)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Reverse :meth:`encrypt`; used to spot-check migrated values."""
        token = base64.urlsafe_b64encode(ciphertext)
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc


__all__ = ["EncryptionProvider", "FernetEncryptionProvider"]
