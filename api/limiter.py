"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and the route modules
under api/routes/v1/ (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limit strings come from Settings so deployments can tune them without code
changes; RATE_LIMIT_ENABLED=false turns every limit into a no-op (tests).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)

PUBLIC_LIMIT = _settings.public_rate_limit
ADMIN_LIMIT = _settings.admin_rate_limit
LOGIN_LIMIT = _settings.login_rate_limit
