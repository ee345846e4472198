"""Bearer token generation and expiry rules."""
import hashlib
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from gateway.common import clock
from gateway.domain.password_service import b64url_encode


# Token configuration
TOKEN_PREFIX = "mcp_"
TOKEN_RANDOM_BYTES = 32
TOKEN_DISPLAY_PREFIX_LENGTH = 12  # mcp_ + first 8 chars

DEFAULT_TOKEN_TTL_DAYS = 30
MAX_TOKEN_TTL_DAYS = 365
DEFAULT_TOKEN_NAME = "default"


@dataclass
class TokenInfo:
    """Information about a generated token (returned only once at creation)."""

    full_token: str  # Only shown once
    token_hash: str  # Stored in database
    token_prefix: str  # Stored in database for display


def generate_token() -> str:
    """Generate a new bearer token.

    Format: mcp_<43 base64url chars>
    """
    return TOKEN_PREFIX + b64url_encode(secrets.token_bytes(TOKEN_RANDOM_BYTES))


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: The full token string to hash

    Returns:
        Unpadded base64url digest (43 characters)
    """
    return b64url_encode(hashlib.sha256(token.encode("utf-8")).digest())


def extract_token_prefix(token: str) -> str:
    """Non-secret display prefix, e.g. ``mcp_7x9K2mN4``."""
    return token[:TOKEN_DISPLAY_PREFIX_LENGTH]


def calculate_expiry_date(
    days: float | None = None,
    never_expires: bool = False,
    now: datetime | None = None,
) -> datetime | None:
    """Calculate a token expiry date.

    ``never_expires`` or ``days == 0`` yields None (no expiry). Otherwise the
    day count is floored and clamped to [1, 365]; omitted means 30 days.

    Raises:
        ValueError: If days is negative or not finite
    """
    if never_expires or days == 0:
        return None

    if days is not None and (not math.isfinite(days) or days < 0):
        raise ValueError("expires_in_days must be a positive number, 0, or omitted.")

    if days is None:
        ttl_days = DEFAULT_TOKEN_TTL_DAYS
    else:
        ttl_days = max(1, min(MAX_TOKEN_TTL_DAYS, math.floor(days)))

    if now is None:
        now = clock.utcnow()
    return now + timedelta(days=ttl_days)


def is_token_usable(revoked_at: datetime | None, expires_at: datetime | None, now: datetime | None = None) -> bool:
    """A token is usable iff never revoked and not past its expiry."""
    if revoked_at is not None:
        return False
    if expires_at is None:
        return True
    if now is None:
        now = clock.utcnow()
    return expires_at > now


def create_token_info() -> TokenInfo:
    """Create a new token with all necessary information."""
    full_token = generate_token()

    return TokenInfo(
        full_token=full_token,
        token_hash=hash_token(full_token),
        token_prefix=extract_token_prefix(full_token),
    )
