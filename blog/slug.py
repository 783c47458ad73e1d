"""
blog/slug.py -- URL slugs for posts, tags, and categories.

slugify() is pure and total: any string in, a string of [a-z0-9-] out (possibly
empty). Accented Latin letters are transliterated through a fixed table first,
so "Café Niño" becomes "cafe-nino" rather than "caf-ni-o".

generate_unique_slug() probes the store for base, base-1, base-2, ... and
returns the first free candidate. Probing is check-then-act: two concurrent
creations with the same title can both pick the same candidate. The unique
index on posts.slug catches the loser (ContentStore raises ConflictError).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from blog.store import ContentStore

_TRANSLITERATIONS: dict[str, str] = {
    "à": "a", "á": "a", "â": "a", "ã": "a", "ä": "a", "å": "a", "ā": "a", "ă": "a", "ą": "a",
    "æ": "ae",
    "ç": "c", "ć": "c", "č": "c",
    "ď": "d", "đ": "d", "ð": "d",
    "è": "e", "é": "e", "ê": "e", "ë": "e", "ē": "e", "ė": "e", "ę": "e", "ě": "e",
    "ğ": "g",
    "ì": "i", "í": "i", "î": "i", "ï": "i", "ī": "i", "į": "i", "ı": "i",
    "ł": "l", "ľ": "l",
    "ñ": "n", "ń": "n", "ň": "n",
    "ò": "o", "ó": "o", "ô": "o", "õ": "o", "ö": "o", "ø": "o", "ō": "o", "ő": "o",
    "œ": "oe",
    "ř": "r",
    "ś": "s", "š": "s", "ş": "s",
    "ß": "ss",
    "ť": "t", "ţ": "t",
    "þ": "th",
    "ù": "u", "ú": "u", "û": "u", "ü": "u", "ū": "u", "ů": "u", "ű": "u", "ų": "u",
    "ý": "y", "ÿ": "y",
    "ź": "z", "ż": "z", "ž": "z",
}  # fmt: skip

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, transliterate, collapse non-alphanumerics to '-', trim '-'.

    Idempotent: slugify(slugify(x)) == slugify(x).
    """
    lowered = text.lower()
    transliterated = "".join(_TRANSLITERATIONS.get(ch, ch) for ch in lowered)
    return _NON_ALNUM.sub("-", transliterated).strip("-")


def generate_unique_slug(store: ContentStore, title: str, exclude_id: Optional[str] = None) -> str:
    """Return a slug for title that no post other than exclude_id is using.

    When a probe lands on exclude_id itself (updating a post without changing
    its title), that candidate is returned immediately.
    """
    base = slugify(title)
    candidate = base
    counter = 1
    while True:
        existing_id = store.get_post_id_by_slug(candidate)
        if existing_id is None or existing_id == exclude_id:
            return candidate
        candidate = f"{base}-{counter}"
        counter += 1
