try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from token_encryptor.services.token_cipher import FernetEncryptionProvider


def test_fernet_provider_roundtrip() -> None:
    provider = FernetEncryptionProvider(secret="super-secret-key")
    plaintext = b"sensitive-token"

    encrypted = provider.encrypt(plaintext)
    assert isinstance(encrypted, bytes)
    assert plaintext not in encrypted

    assert provider.decrypt(encrypted) == plaintext


def test_fernet_provider_uses_random_ivs() -> None:
    provider = FernetEncryptionProvider(secret="super-secret-key")

    assert provider.encrypt(b"same") != provider.encrypt(b"same")


def test_fernet_provider_rejects_bad_ciphertext() -> None:
    provider = FernetEncryptionProvider(secret="another-secret")

    with pytest.raises(ValueError):
        provider.decrypt(b"not-valid")


def test_fernet_provider_rejects_foreign_key() -> None:
    encrypted = FernetEncryptionProvider(secret="key-a").encrypt(b"value")

    with pytest.raises(ValueError):
        FernetEncryptionProvider(secret="key-b").decrypt(encrypted)


def test_fernet_provider_requires_secret() -> None:
    with pytest.raises(ValueError):
        FernetEncryptionProvider(secret="")
