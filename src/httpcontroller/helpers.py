"""
=============================================================================
RESPONSE HELPERS
=============================================================================

Helpers actions use to answer without a template:

    put_status(ctx, "created")                 status only, commits nothing
    redirect(ctx, to="/items")                 internal path
    redirect(ctx, external="https://x.io/")    full URL
    text(ctx, "pong")                          text/plain
    html(ctx, "<p>hi</p>")                     text/html
    json(ctx, {"ok": True})                    application/json
    send_resp(ctx, 204, b"")                   raw body

=============================================================================
REDIRECT DISCRIMINATOR
=============================================================================

Whether a destination is internal or external is stated by the caller
(to= or external=), never guessed from the string. Each form checks that
its argument really is what it claims:

    to="/redirect_test"           ok
    to="https://evil.example/"    RedirectMisuseError  (URL as a path)
    to="//evil.example/"          RedirectMisuseError  (protocol-relative)
    external="/redirect_test"     RedirectMisuseError  (path as a URL)
    external="https://x.io/"      ok

The status defaults to 302 Found unless the action already set one
(put_status(ctx, 301) before redirect(...) gives a permanent redirect).

=============================================================================
"""

from typing import Any, Optional
from urllib.parse import urlsplit
import json as _json
import logging

from .context import Context
from .errors import RedirectMisuseError
from .finalizer import commit
from .http.mime_types import content_type_for_format
from .http.response import Response
from .http.status_codes import HTTPStatus, StatusLike


logger = logging.getLogger(__name__)


def put_status(context: Context, status: StatusLike) -> Context:
    """Set the response status; validated when the response commits."""
    return context.put_status(status)


def _check_internal(path: str) -> str:
    parts = urlsplit(path)
    if parts.scheme or parts.netloc or path.startswith("//") or path.startswith("\\"):
        raise RedirectMisuseError(
            f"redirect(to=...) expects a path, got a URL: {path!r}; use external= instead"
        )
    if not path.startswith("/"):
        raise RedirectMisuseError(f"redirect(to=...) expects an absolute path starting with '/': {path!r}")
    return path


def _check_external(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise RedirectMisuseError(
            f"redirect(external=...) expects a full http(s) URL, got {url!r}; use to= for paths"
        )
    return url


def redirect(
    context: Context,
    to: Optional[str] = None,
    external: Optional[str] = None,
) -> Response:
    """
    Redirect and commit with an empty body.

    Exactly one of to / external must be given.

    Raises:
        RedirectMisuseError: On a missing/duplicate destination or when the
                             destination does not match its form
        DoubleCommitError: If the response was already committed
    """
    if (to is None) == (external is None):
        raise RedirectMisuseError("redirect() needs exactly one of to= or external=")

    location = _check_internal(to) if to is not None else _check_external(external)

    if context.status is None:
        context.put_status(HTTPStatus.FOUND)
    context.put_resp_header("Location", location)

    logger.debug(f"Redirecting {context.method} {context.path} to {location}")
    return commit(context, b"")


def send_resp(
    context: Context,
    status: StatusLike,
    body: Any = b"",
    content_type: Optional[str] = None,
) -> Response:
    """Commit a raw body with the given status."""
    context.put_status(status)
    if isinstance(body, str):
        body = body.encode("utf-8")
    return commit(context, body, content_type)


def text(context: Context, data: str) -> Response:
    return commit(context, str(data).encode("utf-8"), content_type_for_format("text"))


def html(context: Context, data: str) -> Response:
    return commit(context, str(data).encode("utf-8"), content_type_for_format("html"))


def json(context: Context, data: Any, pretty: bool = False) -> Response:
    """Commit data encoded as JSON (ensure_ascii off, so text stays readable)."""
    body = _json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)
    return commit(context, body.encode("utf-8"), content_type_for_format("json"))
