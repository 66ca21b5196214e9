"""
=============================================================================
FORMATS AND MIME TYPES
=============================================================================

A "format" is the short name a controller uses for a response
representation; the MIME type is what goes into Content-Type and what the
client sends in its Accept header.

    ┌──────────┬───────────────────────┬──────────────────────────────┐
    │ Format   │ MIME type             │ Template file                │
    ├──────────┼───────────────────────┼──────────────────────────────┤
    │ html     │ text/html             │ page/index.html              │
    │ json     │ application/json      │ page/index.json              │
    │ text     │ text/plain            │ page/index.text              │
    │ xml      │ application/xml       │ page/index.xml               │
    └──────────┴───────────────────────┴──────────────────────────────┘

Applications can add their own formats (csv, ics, ...) with
register_format(). Registration happens at startup, before requests are
served; the table is read-only afterwards.

=============================================================================
"""

import re
from typing import Dict, Optional


FORMAT_MIME_TYPES: Dict[str, str] = {
    "html": "text/html",
    "json": "application/json",
    "text": "text/plain",
    "xml": "application/xml",
}

# Extra MIME types that map onto a known format when seen in Accept.
_MIME_ALIASES: Dict[str, str] = {
    "application/xhtml+xml": "html",
    "text/xml": "xml",
    "text/json": "json",
}

DEFAULT_FORMAT = "html"

_FORMAT_NAME = re.compile(r"^[a-z0-9][a-z0-9_+-]*$")


def register_format(name: str, mime_type: str) -> None:
    """
    Register a custom response format.

    Args:
        name: Short format name (lowercase, e.g. "csv")
        mime_type: MIME type served for it (e.g. "text/csv")

    Raises:
        ValueError: If the name is not a valid format name.
    """
    if not _FORMAT_NAME.match(name):
        raise ValueError(f"Invalid format name: {name!r}")
    FORMAT_MIME_TYPES[name] = mime_type.lower()


def is_known_format(name: str) -> bool:
    return name in FORMAT_MIME_TYPES


def mime_for_format(name: str) -> str:
    """
    Get the MIME type for a format.

    Raises:
        KeyError: If the format was never registered.
    """
    return FORMAT_MIME_TYPES[name]


def format_for_mime(mime_type: str) -> Optional[str]:
    """
    Map a MIME type (parameters ignored) back to a format name.

    Returns None for wildcards and unknown types.

        >>> format_for_mime("text/html; charset=utf-8")
        'html'
        >>> format_for_mime("*/*") is None
        True
    """
    mime = mime_type.split(";")[0].strip().lower()
    if mime in _MIME_ALIASES:
        return _MIME_ALIASES[mime]
    for name, known in FORMAT_MIME_TYPES.items():
        if known == mime:
            return name
    return None


def is_text_type(mime_type: str) -> bool:
    """
    Check if a MIME type is text, i.e. should carry a charset parameter.

        >>> is_text_type("application/json")
        True
        >>> is_text_type("image/png")
        False
    """
    if mime_type.startswith("text/"):
        return True
    return mime_type in {
        "application/json",
        "application/xml",
        "application/javascript",
        "image/svg+xml",
    } or mime_type.endswith("+xml") or mime_type.endswith("+json")


def content_type_for_format(name: str, charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for a format.

        >>> content_type_for_format("html")
        'text/html; charset=utf-8'
    """
    mime_type = mime_for_format(name)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
