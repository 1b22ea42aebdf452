"""Slug generation for derived code fields."""

import re

SLUG_MAX_LENGTH = 48

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(value: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """
    Turn a human name into a lookup code.

    Lowercases, collapses every run of characters outside ``[a-z0-9]`` into a
    single hyphen, strips leading/trailing hyphens and truncates.

    Examples:
        >>> slugify("Hello, World!!")
        'hello-world'
        >>> slugify("  Youth Ministry ")
        'youth-ministry'
    """
    slug = _NON_SLUG_CHARS.sub("-", value.lower()).strip("-")
    return slug[:max_length]
