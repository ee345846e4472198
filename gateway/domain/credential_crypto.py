"""Workspace secret encryption.

AES-256-GCM with a key derived from the deployment-wide
``WORKSPACE_ENCRYPTION_KEY`` and a fresh 96-bit nonce per record.

Never log plaintext or ciphertext values.
"""
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from gateway.domain.password_service import b64url_decode, b64url_encode


NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
MIN_ENCRYPTION_SECRET_LENGTH = 32
KEY_CONTEXT = b"jira-workspace-credentials-v1"


class CredentialDecryptionError(Exception):
    """Raised when a stored secret cannot be decrypted with the current key."""


@dataclass(frozen=True)
class EncryptedSecret:
    ciphertext: str  # base64url
    iv: str  # base64url


def derive_key(secret: str | None) -> bytes | None:
    """Derive the AES key from the deployment secret.

    Returns None when the secret is missing or shorter than 32 characters, so
    callers fail closed.
    """
    secret = (secret or "").strip()
    if len(secret) < MIN_ENCRYPTION_SECRET_LENGTH:
        return None

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=KEY_CONTEXT,
    )
    return hkdf.derive(secret.encode("utf-8"))


def encrypt_secret(key: bytes, plaintext: str) -> EncryptedSecret:
    """Encrypt a secret with a fresh random nonce."""
    nonce = os.urandom(NONCE_SIZE)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return EncryptedSecret(ciphertext=b64url_encode(ciphertext), iv=b64url_encode(nonce))


def decrypt_secret(key: bytes, ciphertext: str, iv: str) -> str:
    """Decrypt a stored secret.

    Raises:
        CredentialDecryptionError: On a wrong key, tampered data or bad encoding
    """
    try:
        nonce = b64url_decode(iv)
        if len(nonce) != NONCE_SIZE:
            raise CredentialDecryptionError("Invalid nonce length")
        plaintext = AESGCM(key).decrypt(nonce, b64url_decode(ciphertext), None)
        return plaintext.decode("utf-8")
    except (InvalidTag, ValueError, UnicodeDecodeError) as e:
        raise CredentialDecryptionError("Unable to decrypt workspace secret") from e
