"""
api/security.py -- Origin validation for state-changing requests (CSRF guard).

The session cookie is samesite=lax, which already keeps it off most
cross-site POSTs. This check closes the rest: every POST/PUT/PATCH/DELETE
under /api/ must come from an allowed origin.

Rules, in order:
  1. Safe methods (GET, HEAD, OPTIONS) pass.
  2. Requests carrying a well-formed "Authorization: Bearer sa_..." token and
     no session cookie pass. Programmatic clients send no ambient cookie, so
     there is nothing to forge. A session cookie wins over the bearer header
     during authentication, so a request carrying both is checked like any
     cookie request.
  3. Neither Origin nor Referer present: pass in DEBUG, reject otherwise.
  4. Origin present and allowed: pass.
  5. Referer present and its scheme://host is allowed: pass.
  6. Everything else: reject.

In DEBUG any http://localhost or http://127.0.0.1 origin (any port) is allowed.
"""

from urllib.parse import urlsplit

from starlette.requests import Request

from auth.tokens import extract_bearer_token, is_valid_token_format
from core.config import Settings

_STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1"})


def _origin_of(url: str) -> str | None:
    """Reduce a URL to scheme://host[:port]. None if it is not an absolute URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def is_origin_allowed(origin: str | None, settings: Settings) -> bool:
    if not origin:
        return False
    if origin in settings.allowed_origins:
        return True
    if settings.debug:
        try:
            hostname = urlsplit(origin).hostname
        except ValueError:
            return False
        if hostname in _LOCAL_HOSTNAMES:
            return True
    return False


def _is_cookieless_bearer(request: Request, settings: Settings) -> bool:
    if settings.session_cookie_name in request.cookies:
        return False
    token = extract_bearer_token(request.headers.get("authorization"))
    return token is not None and is_valid_token_format(token)


def validate_origin(request: Request, settings: Settings) -> bool:
    """Return True if the request may proceed past the origin check."""
    if request.method not in _STATE_CHANGING_METHODS:
        return True
    if _is_cookieless_bearer(request, settings):
        return True

    origin = request.headers.get("origin")
    referer = request.headers.get("referer")
    if not origin and not referer:
        return settings.debug

    if origin and is_origin_allowed(origin, settings):
        return True
    if referer:
        return is_origin_allowed(_origin_of(referer), settings)
    return False
