"""Credential cipher protocol.

Secrets are encrypted with a key derived from the caller's session token,
so a credential becomes unreadable as soon as the session is gone.
"""

from typing import Protocol, runtime_checkable

from intent_gateway.models import EncryptedSecret


@runtime_checkable
class CredentialCipher(Protocol):
    """Protocol for symmetric encryption of credential secrets."""

    def encrypt(self, plaintext: str, key: str) -> EncryptedSecret:
        """Encrypt a secret.

        Args:
            plaintext: The secret to encrypt
            key: The session token used as key material

        Returns:
            Ciphertext and initialization vector
        """
        ...

    def decrypt(self, secret: EncryptedSecret, key: str) -> str:
        """Decrypt a secret previously produced by ``encrypt``.

        Raises:
            DecryptionError: If the secret cannot be decrypted
        """
        ...
