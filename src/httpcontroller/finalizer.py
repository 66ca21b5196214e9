"""
=============================================================================
RESPONSE FINALIZER
=============================================================================

The single place where a Context's response becomes final.

    commit(ctx, body, content_type)
        │
        ├─ ctx.committed already?  ──► DoubleCommitError
        ├─ resolve status (unset ──► 200) against the status table
        │     unknown code or name ──► InvalidStatusError
        ├─ run before-commit callbacks (last registered first):
        │     flash serialization, session save
        ├─ resolve status again (a callback may have changed it)
        ├─ write body and Content-Type
        ├─ freeze headers, committed = True
        ├─ run after-commit callbacks (registration order): access log
        └─ return Response (status, headers, body) for the transport

Validation happens here, not when the status is set: put_status() accepts
anything so the action reads naturally, and the error surfaces once, at
the moment the response would go out.

=============================================================================
"""

from typing import Optional
import logging

from .context import Context
from .errors import DoubleCommitError, InvalidStatusError
from .http.status_codes import HTTPStatus, resolve_status
from .http.response import Response


logger = logging.getLogger(__name__)


def commit(
    context: Context,
    body: bytes = b"",
    content_type: Optional[str] = None,
) -> Response:
    """
    Commit the context's response exactly once.

    Args:
        context: The request context
        body: Response body (str is UTF-8 encoded)
        content_type: Content-Type header value, if the body has one

    Returns:
        The committed Response

    Raises:
        DoubleCommitError: If the context was already committed
        InvalidStatusError: If the status is not in the recognized table
    """
    if context.committed:
        raise DoubleCommitError(
            f"Response already committed for {context.method} {context.path}"
        )

    # A bad status fails before any callback runs.
    _resolve(context)

    for callback in context.pop_before_commit():
        callback(context)
        if context.committed:
            # A callback is not allowed to commit on its own.
            raise DoubleCommitError("A before-commit callback committed the response")

    resolved = _resolve(context)

    context.status = resolved
    if content_type is not None:
        context.put_resp_header("Content-Type", content_type)
    context.put_resp_body(body)

    context.resp_headers.freeze()
    context.committed = True

    logger.debug(f"Committed {int(resolved)} for {context.method} {context.path}")

    for callback in context.pop_after_commit():
        callback(context)

    return response_from(context)


def _resolve(context: Context) -> HTTPStatus:
    status = HTTPStatus.OK if context.status is None else context.status
    try:
        return resolve_status(status)
    except ValueError:
        raise InvalidStatusError(status) from None


def response_from(context: Context) -> Response:
    """Snapshot a committed context as a Response."""
    if not context.committed:
        raise ValueError("Context has not been committed")
    return Response(
        status=resolve_status(context.status),
        headers=context.resp_headers.items(),
        body=context.resp_body,
    )
