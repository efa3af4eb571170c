"""
Post slug generation.

A slug is the lowercase ASCII form of a title with every run of other
characters collapsed into one hyphen. Uniqueness is resolved against the
existing posts: "foo" is taken, so the next "Foo" becomes "foo-1", then
"foo-2", and so on (first free counter).

The lookup is a read-only check; two requests creating the same title at once
can both pick the same slug. The unique index on ``post.slug`` rejects the
second write and the post service retries with a fresh lookup.
"""

import re
from typing import Optional

from slugify import slugify
from sqlalchemy import or_
from sqlmodel import Session, select

from inkwell.core.typing import col
from inkwell.models.post import Post

# Punctuation dropped outright (so "don't" -> "dont", not "don-t")
STRIPPED_CHARS = re.compile(r"[*+~.()'\"!:@]")
FALLBACK_SLUG = "post"


def slugify_title(title: str) -> str:
    """Derive the candidate slug for a title."""
    slug = slugify(STRIPPED_CHARS.sub("", title))
    return slug or FALLBACK_SLUG


def _suffix_counter(slug: str, base: str) -> Optional[int]:
    suffix = slug[len(base) + 1:]
    if slug.startswith(f"{base}-") and suffix.isdigit():
        return int(suffix)
    return None


def resolve_unique_slug(session: Session, candidate: str, exclude_post_id: Optional[int] = None) -> str:
    """
    Return ``candidate`` if no other post uses it, else ``candidate-N`` for the
    smallest free N >= 1.

    All colliding slugs are fetched in one query, so a long run of taken
    counters costs one round trip instead of one per counter.
    """
    statement = select(Post.slug).where(
        or_(col(Post.slug) == candidate, col(Post.slug).like(f"{candidate}-%"))
    )
    if exclude_post_id is not None:
        statement = statement.where(col(Post.id) != exclude_post_id)

    taken = set(session.exec(statement).all())
    if candidate not in taken:
        return candidate

    used_counters = {n for n in (_suffix_counter(s, candidate) for s in taken) if n is not None}
    counter = 1
    while counter in used_counters:
        counter += 1
    return f"{candidate}-{counter}"


def generate_unique_slug(session: Session, title: str, exclude_post_id: Optional[int] = None) -> str:
    return resolve_unique_slug(session, slugify_title(title), exclude_post_id=exclude_post_id)
