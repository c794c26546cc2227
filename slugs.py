import re
from typing import Iterable, Mapping, Optional

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics into one hyphen."""
    return _NON_ALNUM.sub("-", text.lower()).strip("-")


def unique_slug(title: str, existing: Iterable[Mapping], exclude_id: Optional[str] = None) -> str:
    """Slug for `title` not used by any record in `existing`.

    The record identified by `exclude_id` is ignored so a rename never
    collides with its own previous slug. Collisions get -2, -3, ... appended.
    """
    base = slugify(title)
    taken = {r.get("slug") for r in existing if exclude_id is None or r.get("id") != exclude_id}
    slug = base
    counter = 2
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug
