"""Password hashing with an explicit, separately stored salt."""
import base64
import hmac
import secrets

from argon2.low_level import Type, hash_secret_raw


# Fixed Argon2id parameters. Changing them invalidates every stored hash.
PASSWORD_TIME_COST = 3
PASSWORD_MEMORY_COST = 65536  # KiB
PASSWORD_PARALLELISM = 4
PASSWORD_HASH_LENGTH = 32
PASSWORD_SALT_BYTES = 16


def b64url_encode(data: bytes) -> str:
    """Unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url."""
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def generate_salt() -> str:
    """Generate a random salt (base64url)."""
    return b64url_encode(secrets.token_bytes(PASSWORD_SALT_BYTES))


def hash_password(password: str, salt: str) -> str:
    """Derive a password hash with Argon2id.

    Args:
        password: Plain text password
        salt: base64url salt from ``generate_salt``

    Returns:
        base64url encoded digest
    """
    digest = hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=b64url_decode(salt),
        time_cost=PASSWORD_TIME_COST,
        memory_cost=PASSWORD_MEMORY_COST,
        parallelism=PASSWORD_PARALLELISM,
        hash_len=PASSWORD_HASH_LENGTH,
        type=Type.ID,
    )
    return b64url_encode(digest)


def verify_password(password: str, salt: str, hashed_password: str) -> bool:
    """Verify a password against its stored hash in constant time.

    Args:
        password: Plain text password to verify
        salt: Stored salt
        hashed_password: Stored hash

    Returns:
        True if password matches, False otherwise
    """
    computed = hash_password(password, salt)
    return hmac.compare_digest(computed.encode("ascii"), hashed_password.encode("ascii"))
