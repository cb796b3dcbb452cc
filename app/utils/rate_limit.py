# app/utils/rate_limit.py
"""Rate limiting for the public and authentication endpoints."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

# In-memory counters: per process only
GLOBAL_LIMIT = "100/15 minutes" if settings.is_production else "1000/15 minutes"
AUTH_LIMIT = "5/15 minutes"
CONTACT_LIMIT = "10/15 minutes"
LEAD_LIMIT = "3/15 minutes"
DASHBOARD_LIMIT = "30/minute"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    default_limits=[GLOBAL_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
