"""Service layer exports."""

from .encryption_gateway import EncryptionGateway
from .token_cipher import EncryptionProvider, FernetEncryptionProvider
from .token_migration import TokenMigrationService

__all__ = [
    "EncryptionGateway",
    "EncryptionProvider",
    "FernetEncryptionProvider",
    "TokenMigrationService",
]
