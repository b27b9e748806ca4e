"""Utility functions for Folio.

String processing, date parsing and content hashing helpers used across
the package.

Key functions:
    slugify: Convert filenames to URL slugs.
    capitalize: Turn an author id into a display name.
    is_valid_slug: Check a slug is URL-safe.
    parse_date: Coerce a YAML scalar into a date.
    extract_description: First meaningful line of markdown as plain text.
    strip_markdown: Convert markdown to plain text.
    hash_bytes: Hex digest of a byte string.
"""

from __future__ import annotations

import hashlib
import html
import re
from datetime import date, datetime

import mistune

SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
TAG_RE = re.compile(r"<[^>]+>")


def slugify(name: str) -> str:
    """Convert a filename stem to a slug, dropping a date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    cleaned = name
    if "-" in cleaned:
        parts = cleaned.split("-")
        if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
            cleaned = "-".join(parts[3:])
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def is_valid_slug(slug: str) -> bool:
    """Return True if slug is safe to use as a single URL path segment."""
    return bool(SLUG_RE.match(slug))


def capitalize(text: str) -> str:
    """Uppercase the first character and lowercase the rest.

    Examples:
        >>> capitalize("alice")
        'Alice'
    """
    if not text:
        return ""
    return text[0].upper() + text[1:].lower()


def parse_date(value: object) -> date | None:
    """Coerce a YAML value into a date.

    PyYAML already turns unquoted ``2024-01-15`` into a date; quoted strings
    are parsed as ISO dates.

    Args:
        value: Raw value from a manifest.

    Returns:
        A date, or None when the value is empty.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def strip_markdown(markdown: str) -> str:
    """Convert markdown into plain text.

    Args:
        markdown: Markdown source.

    Returns:
        Text content with all markup removed.
    """
    to_html = mistune.create_markdown(escape=False, plugins=["strikethrough"])
    rendered = to_html(markdown)
    return html.unescape(TAG_RE.sub("", rendered)).strip()


def extract_description(markdown: str, limit: int = 200) -> str:
    """Extract a description from markdown content.

    Takes the first meaningful line (headings and image lines are skipped),
    strips it to plain text and keeps at most ``limit`` characters. Double
    quotes become single quotes so the value is safe inside meta attributes.

    Examples:
        >>> extract_description("# Title\\n\\n![](a.png)\\nHello **world**")
        'Hello world'
    """
    for line in markdown.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "!")):
            continue
        raw = strip_markdown(stripped)
        if not raw:
            continue
        return raw[:limit].replace('"', "'")
    return ""


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
