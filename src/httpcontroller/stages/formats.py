"""
=============================================================================
FORMAT NEGOTIATION STAGE
=============================================================================

AcceptFormats records which formats the controller accepts and which one
the request asked for. It does not reject anything itself: the render
dispatcher compares the two and raises UnsupportedFormatError (406) when
they don't match, so actions that answer without a template (redirects,
text(), json()) are not affected.

    Request signal                        requested_format
    ────────────────────────────────────  ────────────────
    ?_format=json                          "json"      (wins over Accept)
    Accept: application/json               "json"
    Accept: text/html;q=0.5, text/plain    "text"      (q-value order)
    Accept: application/xml  (not accepted) "xml"      → 406 at render
    Accept: */*                            None        → default format
    (nothing)                              None        → default format

=============================================================================
"""

from typing import List, Optional, Sequence, Tuple
import logging

from ..context import Context
from ..http.mime_types import format_for_mime, is_known_format
from ..pipeline import Stage


logger = logging.getLogger(__name__)


def parse_accept(header: str) -> List[Tuple[str, float]]:
    """
    Parse an Accept header into (media range, q) pairs, best first.

    Entries with equal q keep their header order. Malformed q values count
    as 1.0; q=0 entries ("not acceptable") are dropped.
    """
    entries = []
    for position, part in enumerate(header.split(",")):
        pieces = [piece.strip() for piece in part.split(";")]
        media = pieces[0].lower()
        if not media:
            continue
        quality = 1.0
        for param in pieces[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 1.0
        if quality > 0:
            entries.append((position, media, quality))

    entries.sort(key=lambda entry: (-entry[2], entry[0]))
    return [(media, quality) for _, media, quality in entries]


def format_from_accept(header: str, accepted: Sequence[str]) -> Optional[str]:
    """
    Pick a format from an Accept header.

    Returns the best accepted format the header names. If the header names
    only formats the controller does not accept (and no wildcard), the best
    of those is returned so rendering reports it as unsupported. Wildcards
    and unknown types alone mean "no preference" (None).
    """
    named = []
    wildcard = False
    for media, _ in parse_accept(header):
        if media.endswith("/*"):
            wildcard = True
            continue
        fmt = format_for_mime(media)
        if fmt is None:
            continue
        if fmt in accepted:
            return fmt
        named.append(fmt)

    if named and not wildcard:
        return named[0]
    return None


class AcceptFormats(Stage):
    """
    Record accepted formats and the requested format on the context.

        AcceptFormats("html", "text")   # explicit list
        AcceptFormats()                 # the controller's accepted_formats
    """

    def __init__(self, *formats: str, param: Optional[str] = None):
        for name in formats:
            if not is_known_format(name):
                raise ValueError(f"Unknown format: {name!r}")
        self.formats: Tuple[str, ...] = tuple(formats)
        self.param = param

    def _accepted(self, context: Context) -> Tuple[str, ...]:
        if self.formats:
            return self.formats
        declared = getattr(context.controller, "accepted_formats", None)
        if declared:
            return tuple(declared)
        config = context.private.get("config")
        return tuple(config.accepted_formats) if config else ("html",)

    def _param(self, context: Context) -> str:
        if self.param:
            return self.param
        config = context.private.get("config")
        return config.format_param if config else "_format"

    def __call__(self, context: Context) -> Context:
        accepted = self._accepted(context)
        context.accepted_formats = accepted

        explicit = context.get_query(self._param(context))
        if explicit:
            context.requested_format = explicit.strip().lower()
        else:
            header = context.get_req_header("accept")
            context.requested_format = format_from_accept(header, accepted) if header else None

        logger.debug(
            f"Accepted formats {accepted}; requested {context.requested_format!r}"
        )
        return context
