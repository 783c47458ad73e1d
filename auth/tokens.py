"""
auth/tokens.py -- Service-account tokens, session JWTs, and password hashing.

Security design decisions:
  Service-account tokens: sa_<64 hex chars>. secrets.token_hex(32) gives 256
       bits of entropy. The stored form is bcrypt(token) at BCRYPT_ROUNDS
       (12 in production). bcrypt is salted, so a leaked table reveals nothing
       reusable -- the cost is that tokens cannot be looked up by hash and the
       bearer resolver must scan (see auth/bearer.py).

  Format check: is_valid_token_format() is pure string work. Callers run it
       before any DB access or bcrypt comparison so junk headers cost nothing.

  Session JWT: python-jose with HS256, signed with SECRET_KEY. Carries the
       user's email and role; decode returns None on any failure. This is the
       in-repo session provider -- SessionAuthResolver (auth/session.py)
       only trusts the email claim and re-reads the role from the store.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email exists [C1].

Layer rule: no imports from api/ or blog/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import GeneratedToken
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("inkpress.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

TOKEN_PREFIX = "sa_"
TOKEN_BYTES = 32  # 64 hex characters

_TOKEN_BODY_RE = re.compile(rf"[0-9a-fA-F]{{{TOKEN_BYTES * 2}}}")

# ---------------------------------------------------------------------------
# Service-account tokens
# ---------------------------------------------------------------------------


def generate_service_account_token() -> GeneratedToken:
    """Mint a new sa_ token and its bcrypt hash.

    The plaintext half must be shown to the creator once and then dropped.
    """
    token = f"{TOKEN_PREFIX}{secrets.token_hex(TOKEN_BYTES)}"
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    token_hash = bcrypt.hashpw(token.encode("utf-8"), salt).decode("utf-8")
    return GeneratedToken(token=token, token_hash=token_hash)


def verify_service_account_token(candidate: str, stored_hash: str) -> bool:
    """Return True if candidate matches the stored bcrypt hash.

    bcrypt.checkpw does the constant-time comparison. Malformed hashes or any
    other library error are logged and treated as a mismatch -- this never
    raises.
    """
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), stored_hash.encode("utf-8"))
    except Exception:
        logger.exception("Error verifying service account token")
        return False


def is_valid_token_format(candidate: str) -> bool:
    """Cheap shape check: sa_ prefix plus exactly 64 hex chars (any case)."""
    if not candidate or not candidate.startswith(TOKEN_PREFIX):
        return False
    return _TOKEN_BODY_RE.fullmatch(candidate[len(TOKEN_PREFIX) :]) is not None


def extract_bearer_token(header: str | None) -> str | None:
    """Pull the token out of an Authorization header value.

    The header must be exactly "Bearer <token>" -- two space-separated parts,
    case-sensitive scheme -- and the token must carry the sa_ prefix.
    Anything else yields None; this never raises.
    """
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    token = parts[1]
    if not token.startswith(TOKEN_PREFIX):
        return None
    return token


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at 72 bytes (5.x refuses anything longer). The CLI caps
    new passwords at that length; verify_password treats the error as a mismatch.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=_settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except Exception:
        return False


# Timing equalization dummy hash [C1]. Computed once at module load.
_DUMMY_HASH: str = hash_password("inkpress_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate a local email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email or no local password: bcrypt against _DUMMY_HASH
    - Wrong password: bcrypt against the real hash

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Session JWT encode / decode
# ---------------------------------------------------------------------------


def create_session_token(email: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed session JWT.

    Args:
        email:          The user's email, stored as the subject claim.
        role:           Role value at issue time. Informational only -- the
                        session resolver re-reads the role from the store.
        expire_seconds: Session duration. 0 means Settings.session_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": email,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- the origin check in
        api/main.py covers the rest.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )
