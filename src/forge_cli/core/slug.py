"""Pure name, slug and URL helpers used by the create and update flows.

Every function in this module is deterministic except for the random
suffix :func:`create_slug_from_name` appends to slugs that would
otherwise be too short.
"""

from __future__ import annotations

import re
import uuid
from urllib.parse import urlsplit

from forge_cli.exceptions import ValidationError

_INVALID_NAME_CHARS = '<>:"/\\|?*'
_SLUG_PATTERN = re.compile(r"^[a-z0-9_]+$")
_UNDERSCORES = re.compile(r"_+")


def validate_name(name: str, max_length: int) -> None:
    """Raise :class:`ValidationError` if *name* is unusable as a display name."""
    if not name:
        raise ValidationError("Name cannot be empty")
    if len(name) > max_length:
        raise ValidationError(f"Name cannot be longer than {max_length} characters")
    if any(char in _INVALID_NAME_CHARS for char in name):
        raise ValidationError(
            "Name contains invalid characters",
            hint='Invalid characters: < > : " / \\ | ? *',
        )
    for index, char in enumerate(name):
        if not char.isprintable():
            raise ValidationError(f"Name contains non-printable characters at index {index}")


def create_slug_from_name(name: str, min_length: int, max_length: int) -> str:
    """Derive a slug suggestion from a display name.

    ``CamelCase`` becomes ``camel_case``; runs of other characters
    collapse into one underscore.  When *name* is longer than
    *max_length*, separators other than ``_`` are dropped instead.
    """
    shorten = len(name) > max_length

    parts: list[str] = []
    wrote_underscore = False
    had_capital = False
    for index, char in enumerate(name):
        if char.islower() or char.isdigit():
            parts.append(char)
            wrote_underscore = False
            # digits behave like capitals for the CamelCase rule
            had_capital = char.isdigit()
        elif char.isupper():
            if not shorten and index != 0 and not wrote_underscore and not had_capital:
                parts.append("_")
            parts.append(char.lower())
            wrote_underscore = False
            had_capital = True
        elif (char == "_" or not shorten) and not wrote_underscore:
            parts.append("_")
            wrote_underscore = True
            had_capital = False

    slug = "".join(parts).strip("_")
    if len(slug) < min_length:
        slug = f"{slug}_{uuid.uuid4().hex[:8]}".lstrip("_")
    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("_")
    return slug


def slug_to_sane_check(slug: str, min_length: int, max_length: int) -> str:
    """Validate *slug* and return its normalised form.

    Raises
    ------
    ValidationError
        If the slug is too short or contains characters outside
        ``[a-z0-9_]``.
    """
    if len(slug) < min_length:
        raise ValidationError(f"Slug must be at least {min_length} characters")
    if not _SLUG_PATTERN.match(slug):
        raise ValidationError(
            "Slug can only contain lowercase letters, numbers, and underscores",
        )

    sane = _UNDERSCORES.sub("_", slug.strip()).strip("_")
    return sane[:max_length]


def validate_url(url: str) -> None:
    """Raise :class:`ValidationError` unless *url* is a public http(s) URL."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname or ""
    except ValueError as exc:
        raise ValidationError("Invalid URL: Must start with http:// or https://") from exc
    if parts.scheme not in ("http", "https") or not hostname:
        raise ValidationError("Invalid URL: Must start with http:// or https://")
    if hostname == "localhost":
        raise ValidationError("Invalid URL: Cannot use localhost")
    labels = hostname.split(".")
    if len(labels) < 2 or not labels[-1]:
        raise ValidationError("Invalid URL: Must have a TLD")
