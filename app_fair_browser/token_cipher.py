#!/usr/bin/env python3
"""
Encryption of the hub token at rest.

Tokens are stored in the settings database as Fernet ciphertext when a
secret is configured.
"""

import base64
import hashlib
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

ENCRYPTED_PREFIX = "enc:"

logger = logging.getLogger(__name__)


class TokenCipher:
    """Encrypts and decrypts setting values with a Fernet key."""

    def __init__(self, secret_key: str):
        """
        Initialize the cipher.

        Args:
            secret_key: Base64 encoded Fernet key, or any passphrase
                (hashed to a key when not a valid Fernet key).
        """
        key = secret_key.encode() if isinstance(secret_key, str) else secret_key
        self.cipher = _fernet_for(key)

    def encrypt(self, value: str) -> str:
        return ENCRYPTED_PREFIX + self.cipher.encrypt(value.encode()).decode()

    def decrypt(self, value: str) -> str:
        """
        Decrypt a value produced by encrypt().

        Raises:
            ValueError: If the value was encrypted with another key or is corrupt.
        """
        if not is_encrypted(value):
            return value
        try:
            return self.cipher.decrypt(value[len(ENCRYPTED_PREFIX):].encode()).decode()
        except InvalidToken:
            raise ValueError("Stored value cannot be decrypted with the configured secret")


def _fernet_for(key: bytes) -> Fernet:
    """Use a valid Fernet key as is; derive one from anything else."""
    if len(key) == 44:  # Base64 encoded 32-byte key length
        try:
            return Fernet(key)
        except ValueError:
            logger.debug("Secret is not a Fernet key, deriving one from it")
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(key).digest()))


def is_encrypted(value: str) -> bool:
    return value.startswith(ENCRYPTED_PREFIX)


def get_token_cipher() -> Optional[TokenCipher]:
    """Get a cipher for the APP_FAIR_SECRET env var, or None when unset."""
    secret_key = os.environ.get('APP_FAIR_SECRET')
    if not secret_key:
        return None
    return TokenCipher(secret_key)
