"""Shared slowapi limiter, keyed by client IP address.

Limits are read from settings on every request, so they follow the
configured values without rebuilding the app.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config import settings


def default_limit() -> str:
    return settings.rate_limit_default


def write_limit() -> str:
    return settings.rate_limit_write


limiter = Limiter(key_func=get_remote_address)
