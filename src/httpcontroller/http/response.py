"""
=============================================================================
COMMITTED RESPONSE
=============================================================================

What the finalizer hands to the transport once a Context is committed.

    Response(
        status=HTTPStatus.FOUND,
        headers=[("Location", "/redirect_test"), ("Set-Cookie", "...")],
        body=b"",
    )

Headers are a list of pairs rather than a dict because a response may
legitimately repeat a header (Set-Cookie being the usual example).

to_bytes() produces HTTP/1.1 wire format for transports that want it:

    HTTP/1.1 302 Found\r\n
    Location: /redirect_test\r\n
    Content-Length: 0\r\n
    Date: Thu, 15 Jan 2026 12:30:45 GMT\r\n
    \r\n

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .status_codes import HTTPStatus


@dataclass
class Response:
    """A committed, immutable-by-convention HTTP response."""

    status: HTTPStatus = HTTPStatus.OK
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    def header_values(self, name: str) -> List[str]:
        lowered = name.lower()
        return [value for key, value in self.headers if key.lower() == lowered]

    @property
    def content_type(self) -> Optional[str]:
        return self.header("Content-Type")

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def to_bytes(self, server_name: Optional[str] = None) -> bytes:
        """
        Serialize for the wire.

        Content-Length and Date are added when absent; Server only when a
        server_name is given.
        """
        headers = list(self.headers)
        present = {name.lower() for name, _ in headers}

        if "content-length" not in present:
            headers.append(("Content-Length", str(len(self.body))))
        if "date" not in present:
            headers.append(("Date", format_http_date(datetime.now(timezone.utc))))
        if server_name and "server" not in present:
            headers.append(("Server", server_name))

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers)
        lines.append("")
        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + self.body


_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date (always GMT).

        >>> format_http_date(datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc))
        'Thu, 15 Jan 2026 12:30:45 GMT'
    """
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
