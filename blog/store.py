"""
blog/store.py -- SQLAlchemy-backed persistence layer for Inkpress content.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in blog/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. ContentStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Mutation rules:
  update_post() replaces a post's tags and categories in ONE transaction:
  clear links, write scalar fields, connect-or-create each term by slug,
  commit. A failure anywhere rolls the whole thing back -- a reader never
  sees a post with its old links cleared and its new ones missing.

  increment_views() is a storage-side "views = views + 1", so concurrent
  increments never lose updates to a read-modify-write race.

  posts.slug carries a unique index. blog/slug.py probes for a free slug
  first; the index is the backstop when two writers race, and surfaces as
  ConflictError.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ContentStore()
    post_id = store.create_post(post, tags=["Python"], categories=["Guides"])
    store.update_post(post_id, title="New", slug="new", tags=["Rust"], categories=[])
    store.increment_views(post_id)
    store.close()
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from blog.models import Category, Post, Tag
from blog.slug import slugify
from core.config import get_settings
from core.errors import ConflictError

logger = logging.getLogger("inkpress.blog")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_posts = Table(
    "posts",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("slug", String(255), nullable=False, unique=True),
    Column("content", Text),  # editor JSON document, stored verbatim
    Column("excerpt", Text),
    Column("featured_image", String(2048)),
    Column("published", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("views", Integer, nullable=False, server_default="0"),
    Column("author_id", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_tags = Table(
    "tags",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("slug", String(100), nullable=False, unique=True),
)

_categories = Table(
    "categories",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("slug", String(100), nullable=False, unique=True),
)

_post_tags = Table(
    "post_tags",
    metadata,
    Column("post_id", String(32), primary_key=True),
    Column("tag_id", String(32), primary_key=True, index=True),
)

_post_categories = Table(
    "post_categories",
    metadata,
    Column("post_id", String(32), primary_key=True),
    Column("category_id", String(32), primary_key=True, index=True),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _dump_content(content: Any) -> Optional[str]:
    return None if content is None else json.dumps(content)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ContentStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # Handlers run in FastAPI's threadpool and view increments run on
            # the background executor; pooled connections cross threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Posts: writes
    # ------------------------------------------------------------------

    def create_post(
        self,
        post: Post,
        tags: Iterable[str] = (),
        categories: Iterable[str] = (),
    ) -> str:
        """Insert a post plus its term links and return the new post ID.

        Raises ConflictError if the slug is already taken.
        """
        post_id = post.id or _new_id()
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _posts.insert().values(
                        id=post_id,
                        title=post.title,
                        slug=post.slug,
                        content=_dump_content(post.content),
                        excerpt=post.excerpt,
                        featured_image=post.featured_image or None,
                        published=1 if post.published else 0,
                        views=0,
                        author_id=post.author_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                self._connect_terms(conn, post_id, tags, categories)
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError(f"A post with slug '{post.slug}' already exists.") from exc
        logger.info("Post created: id=%s slug=%s", post_id, post.slug)
        return post_id

    def update_post(
        self,
        post_id: str,
        *,
        title: str,
        slug: str,
        content: Any,
        excerpt: Optional[str],
        featured_image: Optional[str],
        published: bool,
        tags: Iterable[str] = (),
        categories: Iterable[str] = (),
    ) -> bool:
        """Replace a post's fields and its tag/category links atomically.

        Returns False if post_id does not exist (nothing is written).
        Raises ConflictError if slug collides with another post.
        """
        try:
            with self.engine.connect() as conn:
                exists = conn.execute(select(_posts.c.id).where(_posts.c.id == post_id)).fetchone()
                if exists is None:
                    return False
                conn.execute(_post_tags.delete().where(_post_tags.c.post_id == post_id))
                conn.execute(_post_categories.delete().where(_post_categories.c.post_id == post_id))
                conn.execute(
                    _posts.update()
                    .where(_posts.c.id == post_id)
                    .values(
                        title=title,
                        slug=slug,
                        content=_dump_content(content),
                        excerpt=excerpt,
                        featured_image=featured_image or None,
                        published=1 if published else 0,
                        updated_at=_now_iso(),
                    )
                )
                self._connect_terms(conn, post_id, tags, categories)
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError(f"A post with slug '{slug}' already exists.") from exc
        logger.info("Post updated: id=%s slug=%s", post_id, slug)
        return True

    def delete_post(self, post_id: str) -> bool:
        """Delete a post and its term links. Tags and categories themselves survive."""
        with self.engine.connect() as conn:
            conn.execute(_post_tags.delete().where(_post_tags.c.post_id == post_id))
            conn.execute(_post_categories.delete().where(_post_categories.c.post_id == post_id))
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
            conn.commit()
        return result.rowcount > 0

    def increment_views(self, post_id: str) -> None:
        """views = views + 1, evaluated by the database. Called via core.background."""
        with self.engine.connect() as conn:
            conn.execute(_posts.update().where(_posts.c.id == post_id).values(views=_posts.c.views + 1))
            conn.commit()

    # ------------------------------------------------------------------
    # Posts: reads
    # ------------------------------------------------------------------

    def get_post(self, post_id: str) -> Optional[Post]:
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
            if row is None:
                return None
            return _attach_terms(conn, [_row_to_post(row)])[0]

    def get_post_by_slug(self, slug: str) -> Optional[Post]:
        """Fetch by slug regardless of published state. Callers decide visibility."""
        with self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.slug == slug)).fetchone()
            if row is None:
                return None
            return _attach_terms(conn, [_row_to_post(row)])[0]

    def get_post_id_by_slug(self, slug: str) -> Optional[str]:
        """Cheap existence probe for blog/slug.generate_unique_slug."""
        with self.engine.connect() as conn:
            return conn.execute(select(_posts.c.id).where(_posts.c.slug == slug)).scalar()

    def list_posts(self, published_only: bool = True, limit: Optional[int] = None) -> list[Post]:
        """Return posts newest first. limit=None means no limit."""
        query = _posts.select().order_by(_posts.c.created_at.desc())
        if published_only:
            query = query.where(_posts.c.published == 1)
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            return _attach_terms(conn, [_row_to_post(r) for r in rows])

    def count_posts_by_author(self) -> dict[str, int]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_posts.c.author_id, func.count(_posts.c.id)).group_by(_posts.c.author_id)
            ).fetchall()
        return {author_id: count for author_id, count in rows}

    # ------------------------------------------------------------------
    # Tags and categories
    # ------------------------------------------------------------------

    def list_tags_with_counts(self) -> list[tuple[Tag, int]]:
        """Every tag ordered by name, paired with its number of PUBLISHED posts."""
        published_posts = (_posts.c.id == _post_tags.c.post_id) & (_posts.c.published == 1)
        query = (
            select(_tags.c.id, _tags.c.name, _tags.c.slug, func.count(_posts.c.id).label("post_count"))
            .select_from(
                _tags.outerjoin(_post_tags, _post_tags.c.tag_id == _tags.c.id).outerjoin(_posts, published_posts)
            )
            .group_by(_tags.c.id, _tags.c.name, _tags.c.slug)
            .order_by(_tags.c.name)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [(Tag(id=r.id, name=r.name, slug=r.slug), r.post_count) for r in rows]

    def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        with self.engine.connect() as conn:
            row = conn.execute(_tags.select().where(_tags.c.slug == slug)).fetchone()
        return Tag(id=row.id, name=row.name, slug=row.slug) if row is not None else None

    def get_category_by_slug(self, slug: str) -> Optional[Category]:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.slug == slug)).fetchone()
        return Category(id=row.id, name=row.name, slug=row.slug) if row is not None else None

    def list_posts_by_tag(self, tag_slug: str, published_only: bool = True) -> list[Post]:
        query = (
            _posts.select()
            .select_from(
                _posts.join(_post_tags, _post_tags.c.post_id == _posts.c.id).join(
                    _tags, _tags.c.id == _post_tags.c.tag_id
                )
            )
            .where(_tags.c.slug == tag_slug)
            .order_by(_posts.c.created_at.desc())
        )
        if published_only:
            query = query.where(_posts.c.published == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            return _attach_terms(conn, [_row_to_post(r) for r in rows])

    def list_posts_by_category(self, category_slug: str, published_only: bool = True) -> list[Post]:
        query = (
            _posts.select()
            .select_from(
                _posts.join(_post_categories, _post_categories.c.post_id == _posts.c.id).join(
                    _categories, _categories.c.id == _post_categories.c.category_id
                )
            )
            .where(_categories.c.slug == category_slug)
            .order_by(_posts.c.created_at.desc())
        )
        if published_only:
            query = query.where(_posts.c.published == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            return _attach_terms(conn, [_row_to_post(r) for r in rows])

    # ------------------------------------------------------------------
    # Internal: connect-or-create
    # ------------------------------------------------------------------

    def _connect_terms(
        self,
        conn: Connection,
        post_id: str,
        tags: Iterable[str],
        categories: Iterable[str],
    ) -> None:
        """Link post_id to each named term, creating terms that do not exist yet.

        Runs on the caller's connection so it shares the caller's transaction.
        Terms are matched by slug; names that slugify to "" are skipped and
        names sharing a slug are linked once.
        """
        for tag_id in _resolve_terms(conn, _tags, tags):
            conn.execute(_post_tags.insert().values(post_id=post_id, tag_id=tag_id))
        for category_id in _resolve_terms(conn, _categories, categories):
            conn.execute(_post_categories.insert().values(post_id=post_id, category_id=category_id))

    def close(self) -> None:
        self.engine.dispose()


def _resolve_terms(conn: Connection, table: Table, names: Iterable[str]) -> list[str]:
    """Return term IDs for names in first-seen order, inserting missing terms."""
    ids: list[str] = []
    for raw in names:
        name = raw.strip()
        slug = slugify(name)
        if not slug:
            continue
        term_id = conn.execute(select(table.c.id).where(table.c.slug == slug)).scalar()
        if term_id is None:
            term_id = _new_id()
            conn.execute(table.insert().values(id=term_id, name=name, slug=slug))
        if term_id not in ids:
            ids.append(term_id)
    return ids


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        slug=row.slug,
        content=json.loads(row.content) if row.content is not None else None,
        excerpt=row.excerpt,
        featured_image=row.featured_image,
        published=bool(row.published),
        views=row.views or 0,
        author_id=row.author_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _attach_terms(conn: Connection, posts: list[Post]) -> list[Post]:
    """Fill post.tags and post.categories for a batch of posts with two queries."""
    if not posts:
        return posts
    by_id = {p.id: p for p in posts}
    ids = list(by_id)

    tag_rows = conn.execute(
        select(_post_tags.c.post_id, _tags.c.id, _tags.c.name, _tags.c.slug)
        .select_from(_post_tags.join(_tags, _tags.c.id == _post_tags.c.tag_id))
        .where(_post_tags.c.post_id.in_(ids))
        .order_by(_tags.c.name)
    ).fetchall()
    for r in tag_rows:
        by_id[r.post_id].tags.append(Tag(id=r.id, name=r.name, slug=r.slug))

    category_rows = conn.execute(
        select(_post_categories.c.post_id, _categories.c.id, _categories.c.name, _categories.c.slug)
        .select_from(_post_categories.join(_categories, _categories.c.id == _post_categories.c.category_id))
        .where(_post_categories.c.post_id.in_(ids))
        .order_by(_categories.c.name)
    ).fetchall()
    for r in category_rows:
        by_id[r.post_id].categories.append(Category(id=r.id, name=r.name, slug=r.slug))

    return posts
