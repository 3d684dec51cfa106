"""
Adapter between the migration engine and an encryption provider.
"""

from __future__ import annotations

import base64
from typing import Optional

from token_encryptor.core.cancellation import CancellationToken, raise_if_cancelled
from token_encryptor.core.errors import EncryptionError
from token_encryptor.services.token_cipher import EncryptionProvider


class EncryptionGateway:
    """Encrypt plaintext credentials into storable base64 text.

    The provider is treated as opaque: whatever it raises is reported as
    :class:`EncryptionError`, and nothing about the value being encrypted is
    logged or included in the error. Retrying is left to the caller.
    """

    def __init__(self, provider: EncryptionProvider) -> None:
        self._provider = provider

    def encrypt(
        self,
        plaintext: str,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Return the standard base64 text of the provider's ciphertext."""
        raise_if_cancelled(cancel)
        try:
            ciphertext = self._provider.encrypt(plaintext.encode("utf-8"))
        except Exception as exc:  # pylint: disable=broad-except
            raise EncryptionError(
                f"Encryption provider failed ({type(exc).__name__})."
            ) from exc
        if not isinstance(ciphertext, (bytes, bytearray)):
            raise EncryptionError(
                f"Encryption provider returned {type(ciphertext).__name__}, expected bytes."
            )
        return base64.b64encode(bytes(ciphertext)).decode("ascii")


__all__ = ["EncryptionGateway"]
