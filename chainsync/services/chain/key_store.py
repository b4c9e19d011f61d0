"""
Signing key storage.

Self-provisioned sessions need a signing key. Where it comes from is
delegated to a KeyStore so hosts can choose between a fresh identity per
session and a key that survives restarts.
"""

import os
from pathlib import Path
from typing import Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger

from chainsync.utils.encryption import EncryptionService
from chainsync.utils.exceptions import SecurityError
from chainsync.utils.security import mask_address


class KeyStore(Protocol):
    """Source of a previously used signing key."""

    def load(self) -> LocalAccount | None: ...

    def save(self, account: LocalAccount) -> None: ...


class EphemeralKeyStore:
    """Never remembers a key: every session gets a new identity."""

    def load(self) -> LocalAccount | None:
        return None

    def save(self, account: LocalAccount) -> None:
        logger.debug("Ephemeral key store: signing key not persisted")


class EncryptedFileKeyStore:
    """
    Stores the signing key in a file, encrypted with Fernet.

    The file holds the hex private key encrypted by EncryptionService and is
    created with owner-only permissions.
    """

    def __init__(self, path: Path, encryption: EncryptionService) -> None:
        """
        Initialize key store.

        Args:
            path: File holding the encrypted key
            encryption: Encryption service for the key material
        """
        self.path = Path(path)
        self.encryption = encryption

    def load(self) -> LocalAccount | None:
        """
        Load the stored key.

        Returns:
            Account for the stored key, or None if nothing is stored

        Raises:
            SecurityError: If the file exists but cannot be decrypted or parsed
        """
        if not self.path.exists():
            return None

        ciphertext = self.path.read_text(encoding="utf-8").strip()
        if not ciphertext:
            return None

        private_key = self.encryption.decrypt(ciphertext)
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise SecurityError(f"Stored signing key is invalid: {e}") from e

        logger.info(f"Loaded signing key for {mask_address(account.address)}")
        return account

    def save(self, account: LocalAccount) -> None:
        """Encrypt and write the account's private key."""
        ciphertext = self.encryption.encrypt(account.key.hex())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(ciphertext)
        logger.info(f"Persisted signing key for {mask_address(account.address)}")


def build_key_store(
    signer_key_path: Path | None,
    encryption_key: str | None = None,
    environment: str = "development",
) -> KeyStore:
    """
    Choose a key store from configuration.

    Args:
        signer_key_path: Key file location, None for ephemeral keys
        encryption_key: Fernet key protecting the key file
        environment: Runtime environment name

    Returns:
        EncryptedFileKeyStore when a path is configured, else EphemeralKeyStore
    """
    if signer_key_path is None:
        return EphemeralKeyStore()
    return EncryptedFileKeyStore(
        signer_key_path, EncryptionService(encryption_key, environment=environment)
    )
