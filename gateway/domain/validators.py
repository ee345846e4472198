"""Input normalization shared by the vault usecases."""
import re
from urllib.parse import urlsplit


EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 10
MAX_NAME_LENGTH = 80
MIN_BACKEND_SECRET_LENGTH = 8


def normalize_email(value: str | None) -> str:
    """Trim and lowercase an email address ("" when missing)."""
    return (value or "").strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(value) and EMAIL_REGEX.match(value) is not None


def normalize_base_url(value: str | None) -> str | None:
    """Reduce a Jira URL to ``scheme://host[:port]``.

    Only http and https are accepted. Path, query, fragment and userinfo are
    dropped. Returns None when the value is not a usable URL.
    """
    raw = (value or "").strip()
    if not raw:
        return None

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    hostname = parts.hostname
    if scheme not in ("http", "https") or not hostname:
        return None

    if ":" in hostname:
        hostname = f"[{hostname}]"
    netloc = f"{hostname}:{port}" if port is not None else hostname
    return f"{scheme}://{netloc}"
