"""Rate limiting utilities."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

# Per-IP limit for credential endpoints (register/login)
RATE_LIMIT = f"{settings.rate_limit_per_minute}/minute"

limiter = Limiter(key_func=get_remote_address)
