"""
blog/models.py -- Domain dataclasses for blog content.

These are pure data containers with zero logic. Slug allocation lives in
blog/slug.py, reading time in blog/reading_time.py, and every write in
blog/store.py.

content is the editor's JSON document. The store round-trips it verbatim;
only blog/reading_time.py ever looks inside it.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Tag:
    name: str
    slug: str
    id: Optional[str] = None


@dataclass
class Category:
    name: str
    slug: str
    id: Optional[str] = None


@dataclass
class Post:
    """A blog post.

    slug is unique across all posts (enforced by a unique index, not just by
    blog/slug.generate_unique_slug). views only ever moves through
    ContentStore.increment_views().

    id is None before the record is written to the database.
    """

    title: str
    slug: str
    author_id: str
    content: Any = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    published: bool = False
    views: int = 0
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    tags: list[Tag] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
