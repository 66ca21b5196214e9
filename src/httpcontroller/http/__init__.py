"""
HTTP building blocks for the controller layer.

- status_codes: Status table, symbolic names, validation
- mime_types: Format names and their MIME types
- response: The committed Response value
"""

from .mime_types import (
    DEFAULT_FORMAT,
    FORMAT_MIME_TYPES,
    content_type_for_format,
    format_for_mime,
    is_known_format,
    mime_for_format,
    register_format,
)
from .response import Response
from .status_codes import (
    HTTPStatus,
    StatusLike,
    is_valid_status,
    resolve_status,
    status_from_name,
)

__all__ = [
    # Status codes
    "HTTPStatus",
    "StatusLike",
    "status_from_name",
    "resolve_status",
    "is_valid_status",

    # Formats
    "DEFAULT_FORMAT",
    "FORMAT_MIME_TYPES",
    "register_format",
    "is_known_format",
    "mime_for_format",
    "format_for_mime",
    "content_type_for_format",

    # Response
    "Response",
]
