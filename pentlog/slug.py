"""Turning free-form names into safe path components."""

import re

_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]+")


def slugify(text: str) -> str:
    """Lower-case *text* and replace runs of unsafe characters with ``_``."""
    slug = _UNSAFE.sub("_", text.strip().lower()).strip("_")
    return slug or "default"