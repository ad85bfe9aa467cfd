"""
Encryption Service
Encrypts backup archives at rest using AES-256-GCM
"""

import os
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import logging

from placement_backup.exceptions import EncryptionFailure, EncryptionKeyMissing

logger = logging.getLogger(__name__)

SALT_SIZE = 16
NONCE_SIZE = 12  # 12 bytes for GCM
KDF_ITERATIONS = 100000


class EncryptionService:
    """
    Service for encrypting and decrypting archive bytes
    Uses AES-256-GCM for authenticated encryption
    """

    def __init__(self, master_key: str):
        """
        Initialize encryption service

        Args:
            master_key: Backup encryption key (from configuration)
        """
        if not master_key:
            raise EncryptionKeyMissing()

        self.master_key = master_key

        if len(self.master_key) < 32:
            logger.warning("Backup encryption key is short, use at least 32 characters in production")

    def _derive_key(self, salt: bytes) -> bytes:
        """
        Derive the AES key from the master key and salt

        Returns:
            Derived key (32 bytes for AES-256)
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,  # AES-256 requires 32 bytes
            salt=salt,
            iterations=KDF_ITERATIONS
        )
        return kdf.derive(self.master_key.encode('utf-8'))

    def encrypt(self, plaintext: bytes) -> bytes:
        """
        Encrypt bytes

        Returns:
            salt + nonce + ciphertext (ciphertext includes the GCM tag)
        """
        try:
            salt = os.urandom(SALT_SIZE)
            nonce = os.urandom(NONCE_SIZE)

            aesgcm = AESGCM(self._derive_key(salt))
            ciphertext = aesgcm.encrypt(nonce, plaintext, None)

            return salt + nonce + ciphertext

        except Exception as e:
            logger.error(f"Encryption error: {e}")
            raise EncryptionFailure(f"Failed to encrypt archive: {e}") from e

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt bytes produced by encrypt(), verifying the authentication tag"""
        if len(data) < SALT_SIZE + NONCE_SIZE:
            raise EncryptionFailure("Encrypted archive is truncated")

        salt = data[:SALT_SIZE]
        nonce = data[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
        ciphertext = data[SALT_SIZE + NONCE_SIZE:]

        try:
            aesgcm = AESGCM(self._derive_key(salt))
            return aesgcm.decrypt(nonce, ciphertext, None)

        except InvalidTag as e:
            logger.error("Decryption failed: authentication tag mismatch")
            raise EncryptionFailure("Failed to decrypt archive: wrong key or corrupted data") from e
        except Exception as e:
            logger.error(f"Decryption error: {e}")
            raise EncryptionFailure(f"Failed to decrypt archive: {e}") from e
