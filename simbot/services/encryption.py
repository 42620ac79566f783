"""AES-GCM encryption for sensitive context fields (NIP, IMEI, checkout URL, ICC)."""

import base64
import binascii
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from simbot.config import settings
from simbot.logging_config import get_logger

logger = get_logger("encryption")

NONCE_LENGTH = 12


class EncryptionError(Exception):
    """Raised when a value cannot be encrypted or decrypted."""


class SensitiveDataEncryptor:
    """
    Encrypt/decrypt strings for storage in the context map.

    Ciphertext is stored as base64(nonce || ciphertext_with_tag). Empty values
    pass through untouched.
    """

    def __init__(self, key: Optional[str] = None):
        self._key = key if key is not None else settings.encryption_key

    def is_enabled(self) -> bool:
        return bool(self._key)

    def _cipher(self) -> AESGCM:
        if not self.is_enabled():
            raise EncryptionError("Encryption key not configured. Set ENCRYPTION_KEY in the environment.")
        try:
            return AESGCM(base64.b64decode(self._key))
        except (binascii.Error, ValueError) as e:
            raise EncryptionError(f"Invalid encryption key: {e}") from e

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext:
            return plaintext

        cipher = self._cipher()
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, encrypted: Optional[str]) -> Optional[str]:
        if not encrypted:
            return encrypted

        cipher = self._cipher()
        try:
            raw = base64.b64decode(encrypted)
            nonce, ciphertext = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
            return cipher.decrypt(nonce, ciphertext, None).decode("utf-8")
        except (binascii.Error, ValueError, InvalidTag, UnicodeDecodeError) as e:
            logger.error("Decryption failed")
            raise EncryptionError("Failed to decrypt sensitive data") from e


encryptor = SensitiveDataEncryptor()
