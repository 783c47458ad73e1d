"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as blog/store.py).
UserStore is the repository; _row_to_user / _row_to_service_account are the
mappers. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  service_accounts.token_hash is deliberately NOT indexed. bcrypt hashes are
  salted, so an index on them would never be hit -- lookup by token is a scan
  over non-revoked rows (see auth/bearer.py).

  revoke_service_account() is a conditional UPDATE (WHERE revoked = 0). Two
  concurrent revokes cannot both succeed, and nothing in this module ever
  writes revoked = 0 -- the flag is monotonic at the storage layer.

  token_hash is write-once: no update method touches it.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, ServiceAccount, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255)),
    Column("role", String(20), nullable=False, server_default=Role.READER.value),
    Column("hashed_password", Text),  # NULL for externally-authenticated users
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_service_accounts = Table(
    "service_accounts",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("description", String(500)),
    Column("token_hash", Text, nullable=False),  # bcrypt; not indexed, see module docstring
    Column("scopes", Text, nullable=False),  # JSON array, order preserved
    Column("revoked", Integer, nullable=False, server_default="0"),
    Column("last_used_at", String(32)),
    Column("created_by_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so background writes do not block readers."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and ServiceAccount entities.

    Usage:
        store = UserStore()
        uid = store.create_user(User(email="admin@example.com", role=Role.ADMIN))
        user = store.get_by_email("admin@example.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        user_id = user.id or _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    role=Role(user.role).value,
                    hashed_password=user.hashed_password,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by email. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_role(self, user_id: str, role: Role) -> bool:
        """Set a user's role. Returns True if a row was updated, False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(role=Role(role).value, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def count_admins(self) -> int:
        """Used by PATCH /admin/users to refuse demoting the last admin [M4]."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == Role.ADMIN.value)
            ).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Service accounts
    # ------------------------------------------------------------------

    def create_service_account(self, account: ServiceAccount) -> str:
        """Insert a service account and return its ID. revoked always starts False."""
        account_id = account.id or _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _service_accounts.insert().values(
                    id=account_id,
                    name=account.name,
                    description=account.description,
                    token_hash=account.token_hash,
                    scopes=json.dumps(list(account.scopes)),
                    revoked=0,
                    created_by_id=account.created_by_id,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return account_id

    def get_service_account(self, account_id: str) -> ServiceAccount | None:
        with self.engine.connect() as conn:
            row = conn.execute(_service_accounts.select().where(_service_accounts.c.id == account_id)).fetchone()
        return _row_to_service_account(row) if row is not None else None

    def list_service_accounts(self) -> list[ServiceAccount]:
        """Return every service account, newest first, revoked ones included."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _service_accounts.select().order_by(_service_accounts.c.created_at.desc())
            ).fetchall()
        return [_row_to_service_account(r) for r in rows]

    def list_active_service_accounts(self) -> list[ServiceAccount]:
        """Return all non-revoked accounts, including their hashes, for bearer verification."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _service_accounts.select()
                .where(_service_accounts.c.revoked == 0)
                .order_by(_service_accounts.c.created_at)
            ).fetchall()
        return [_row_to_service_account(r) for r in rows]

    def revoke_service_account(self, account_id: str) -> bool:
        """Flip revoked False -> True.

        Returns True only if this call performed the flip. False means the
        account does not exist or was already revoked; the caller tells the
        two apart with get_service_account().
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _service_accounts.update()
                .where((_service_accounts.c.id == account_id) & (_service_accounts.c.revoked == 0))
                .values(revoked=1, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_service_account(self, account_id: str) -> bool:
        """Permanently delete a service account. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_service_accounts.delete().where(_service_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def touch_service_account_last_used(self, account_id: str) -> None:
        """Stamp last_used_at. Runs off the request path via core.background."""
        with self.engine.connect() as conn:
            conn.execute(
                _service_accounts.update()
                .where(_service_accounts.c.id == account_id)
                .values(last_used_at=_now_iso())
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_service_account(row) -> ServiceAccount:
    return ServiceAccount(
        id=row.id,
        name=row.name,
        description=row.description,
        token_hash=row.token_hash,
        scopes=tuple(json.loads(row.scopes or "[]")),
        revoked=bool(row.revoked),
        last_used_at=row.last_used_at,
        created_by_id=row.created_by_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
