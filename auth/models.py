"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Mirrors the
approach in blog/models.py -- dataclasses own domain shape; stores and routes
do the work. The one exception is Principal.__post_init__, which guards the
method/scopes invariant at construction time.

Role is the single authoritative role enum for the whole codebase. The store
persists its string value; api/ and blog/ import it from here and never
define their own.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    READER = "READER"
    ADMIN = "ADMIN"


class AuthMethod(str, Enum):
    SESSION = "session"
    BEARER_TOKEN = "bearer-token"


@dataclass
class User:
    """A human account.

    hashed_password is None for accounts that only ever sign in through an
    external identity provider; local login is refused for them.
    """

    email: str
    role: Role = Role.READER
    id: str | None = None
    name: str | None = None
    hashed_password: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class ServiceAccount:
    """A long-lived, non-human credential for programmatic API access.

    Security design:
    - token_hash is bcrypt(token). It is written once at creation and never
      changes; the plaintext is returned to the creator exactly once.
    - bcrypt hashes are salted, so they cannot be looked up by value. The
      bearer resolver scans every non-revoked account instead (auth/bearer.py).
    - revoked only ever goes False -> True. Deletion removes the row entirely.
    - scopes is an ordered, de-duplicated subset of AVAILABLE_SCOPES, checked
      once at creation and never re-validated.
    """

    name: str
    token_hash: str
    scopes: tuple[str, ...]
    created_by_id: str
    id: str | None = None
    description: str | None = None
    revoked: bool = False
    last_used_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class GeneratedToken:
    """Plaintext token plus its bcrypt hash. Only the hash is ever persisted."""

    token: str
    token_hash: str

    def __repr__(self) -> str:
        return f"GeneratedToken(token='{self.token[:3]}...', token_hash=<redacted>)"


@dataclass(frozen=True)
class ServiceAccountAuth:
    """Result of a successful bearer-token verification."""

    service_account_id: str
    name: str
    scopes: tuple[str, ...]
    created_by_id: str


@dataclass(frozen=True)
class Principal:
    """The resolved identity attached to one authenticated request.

    Built fresh per request by auth/dependencies.py; never persisted.

    For bearer-token principals user_id/email/role are the service account's
    creator -- the account acts on that user's behalf, narrowed by scopes.
    """

    user_id: str
    email: str
    role: Role
    method: AuthMethod
    service_account_id: str | None = None
    scopes: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        is_bearer = self.method == AuthMethod.BEARER_TOKEN
        if is_bearer and (self.scopes is None or self.service_account_id is None):
            raise ValueError("bearer-token principals require service_account_id and scopes")
        if not is_bearer and (self.scopes is not None or self.service_account_id is not None):
            raise ValueError("only bearer-token principals carry service_account_id and scopes")
