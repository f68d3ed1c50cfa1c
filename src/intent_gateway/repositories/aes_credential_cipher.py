"""AES-256-CTR credential cipher.

The key is the SHA-256 digest of the session token; each secret gets a fresh
16-byte IV. Ciphertext and IV are stored hex encoded.
"""

import hashlib
import logging
import os

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from intent_gateway.exceptions import DecryptionError, ValidationError
from intent_gateway.models import EncryptedSecret

logger = logging.getLogger(__name__)

IV_LENGTH = 16
MIN_KEY_LENGTH = 8


def _derive_key(key: str) -> bytes:
    return hashlib.sha256(key.encode("utf-8")).digest()


class AesCredentialCipher:
    """AES-256-CTR implementation of the CredentialCipher protocol."""

    @staticmethod
    def validate_key(key: str) -> bool:
        """Check that a key is long enough to be used for encryption."""
        return bool(key) and len(key) >= MIN_KEY_LENGTH

    def encrypt(self, plaintext: str, key: str) -> EncryptedSecret:
        if not self.validate_key(key):
            raise ValidationError("Token is not suitable for encryption")

        iv = os.urandom(IV_LENGTH)
        encryptor = Cipher(algorithms.AES(_derive_key(key)), modes.CTR(iv)).encryptor()
        ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()
        return EncryptedSecret(ciphertext=ciphertext.hex(), iv=iv.hex())

    def decrypt(self, secret: EncryptedSecret, key: str) -> str:
        try:
            iv = bytes.fromhex(secret.iv)
            decryptor = Cipher(algorithms.AES(_derive_key(key)), modes.CTR(iv)).decryptor()
            plaintext = decryptor.update(bytes.fromhex(secret.ciphertext)) + decryptor.finalize()
            return plaintext.decode("utf-8")
        except ValueError as e:
            # UnicodeDecodeError is a ValueError: a wrong key yields garbage bytes.
            logger.error("Decryption error: %s", type(e).__name__)
            raise DecryptionError() from None
