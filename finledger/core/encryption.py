import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..config import settings
from .errors import EncryptionConfigError


logger = logging.getLogger(__name__)

KEY_BYTES = 32
IV_BYTES = 16


class FieldCipher:
    """AES-256-CBC for single text fields, stored as ``ivhex:cipherhex``."""

    def __init__(self, key: Optional[str]):
        if not key:
            raise EncryptionConfigError("Encryption key is not configured")
        key_bytes = key.encode("utf-8")
        if len(key_bytes) != KEY_BYTES:
            raise EncryptionConfigError()
        self._key = key_bytes

    def _cipher(self, iv: bytes) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(iv))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_BYTES)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher(iv).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}:{encrypted.hex()}"

    def decrypt(self, token: str) -> str:
        try:
            iv_hex, _, encrypted_hex = token.partition(":")
            iv = bytes.fromhex(iv_hex)
            encrypted = bytes.fromhex(encrypted_hex)
            decryptor = self._cipher(iv).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            logger.error("Decryption failed: %s", e)
            raise EncryptionConfigError(
                "Failed to decrypt data. Please check encryption key configuration."
            ) from e


def get_cipher() -> FieldCipher:
    return FieldCipher(settings.encryption_key)


def mask_account_number(plaintext: str) -> str:
    tail = plaintext[-4:]
    return "*" * max(len(plaintext) - len(tail), 0) + tail
