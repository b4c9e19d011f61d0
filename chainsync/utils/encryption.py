"""Encryption utilities for persisted signing keys."""

import base64

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from chainsync.utils.exceptions import SecurityError


class EncryptionService:
    """
    Encryption service for secrets stored on disk.

    Uses Fernet (symmetric encryption). When no key is configured the
    service is disabled and passes values through, which is only allowed
    outside production.
    """

    def __init__(
        self,
        encryption_key: str | None = None,
        environment: str = "development",
    ) -> None:
        """
        Initialize encryption service.

        Args:
            encryption_key: Base64-encoded Fernet key
            environment: Runtime environment name
        """
        self.environment = environment

        if encryption_key:
            try:
                self.fernet = Fernet(encryption_key.encode())
                self.enabled = True
            except (ValueError, TypeError) as e:
                logger.error(f"Invalid encryption key: {e}")
                self.fernet = None
                self.enabled = False
                if self.environment == "production":
                    raise SecurityError(
                        "Invalid encryption key in production environment. "
                        "Encryption is required for security."
                    ) from e
        else:
            self.fernet = None
            self.enabled = False
            if self.environment == "production":
                raise SecurityError(
                    "Encryption key not configured in production environment. "
                    "Set CHAINSYNC_ENCRYPTION_KEY in .env file."
                )

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt plaintext.

        Args:
            plaintext: Text to encrypt

        Returns:
            Encrypted text (base64), or plaintext if disabled
        """
        if not self.enabled:
            logger.warning("Encryption disabled - returning plaintext (DEV ONLY)")
            return plaintext

        encrypted = self.fernet.encrypt(plaintext.encode())
        return base64.b64encode(encrypted).decode()

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt ciphertext.

        Args:
            ciphertext: Encrypted text (base64)

        Returns:
            Decrypted text

        Raises:
            SecurityError: If the ciphertext cannot be decrypted
        """
        if not self.enabled:
            logger.warning("Encryption disabled - returning ciphertext as-is (DEV ONLY)")
            return ciphertext

        try:
            encrypted = base64.b64decode(ciphertext.encode())
            return self.fernet.decrypt(encrypted).decode()
        except (InvalidToken, ValueError) as e:
            logger.error(f"Decryption error: {e}")
            raise SecurityError(f"Decryption failed: {e}") from e

    @staticmethod
    def generate_key() -> str:
        """
        Generate new Fernet key.

        Returns:
            Base64-encoded key
        """
        return Fernet.generate_key().decode()
