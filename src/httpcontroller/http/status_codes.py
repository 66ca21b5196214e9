"""
=============================================================================
HTTP STATUS TABLE
=============================================================================

The fixed table of recognized HTTP status codes. Actions may set a status
either numerically or by its symbolic name:

    put_status(ctx, 404)
    put_status(ctx, HTTPStatus.NOT_FOUND)
    put_status(ctx, "not_found")       # symbolic name
    put_status(ctx, ":not_found")      # leading colon tolerated

Setting a status never validates it. The finalizer resolves it through
resolve_status() when the response is committed, so a typo in a status
name fails the request at commit time, not when it is written.

=============================================================================
SYMBOLIC NAMES
=============================================================================

The symbolic name of a status is the lower-cased enum member name:

    200  ok                     404  not_found
    201  created                406  not_acceptable
    204  no_content             418  im_a_teapot
    302  found                  422  unprocessable_entity
    303  see_other              500  internal_server_error

A handful of older names are kept as aliases (see _ALIASES).

=============================================================================
"""

from enum import IntEnum
from typing import Union


class HTTPStatus(IntEnum):
    """
    Recognized HTTP status codes.

    Being an IntEnum, a member compares equal to its code:

        >>> HTTPStatus.FOUND == 302
        True
        >>> HTTPStatus.FOUND.phrase
        'Found'
        >>> HTTPStatus.FOUND.symbol
        'found'
    """

    # 1xx informational
    CONTINUE = 100
    SWITCHING_PROTOCOLS = 101
    PROCESSING = 102
    EARLY_HINTS = 103

    # 2xx success
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NON_AUTHORITATIVE_INFORMATION = 203
    NO_CONTENT = 204
    RESET_CONTENT = 205
    PARTIAL_CONTENT = 206
    MULTI_STATUS = 207
    ALREADY_REPORTED = 208
    IM_USED = 226

    # 3xx redirection
    MULTIPLE_CHOICES = 300
    MOVED_PERMANENTLY = 301
    FOUND = 302
    SEE_OTHER = 303
    NOT_MODIFIED = 304
    USE_PROXY = 305
    TEMPORARY_REDIRECT = 307
    PERMANENT_REDIRECT = 308

    # 4xx client errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    NOT_ACCEPTABLE = 406
    PROXY_AUTHENTICATION_REQUIRED = 407
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    GONE = 410
    LENGTH_REQUIRED = 411
    PRECONDITION_FAILED = 412
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    RANGE_NOT_SATISFIABLE = 416
    EXPECTATION_FAILED = 417
    IM_A_TEAPOT = 418
    MISDIRECTED_REQUEST = 421
    UNPROCESSABLE_ENTITY = 422
    LOCKED = 423
    FAILED_DEPENDENCY = 424
    TOO_EARLY = 425
    UPGRADE_REQUIRED = 426
    PRECONDITION_REQUIRED = 428
    TOO_MANY_REQUESTS = 429
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431
    UNAVAILABLE_FOR_LEGAL_REASONS = 451

    # 5xx server errors
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503
    GATEWAY_TIMEOUT = 504
    HTTP_VERSION_NOT_SUPPORTED = 505
    VARIANT_ALSO_NEGOTIATES = 506
    INSUFFICIENT_STORAGE = 507
    LOOP_DETECTED = 508
    NOT_EXTENDED = 510
    NETWORK_AUTHENTICATION_REQUIRED = 511

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line ("Not Found")."""
        special = _PHRASE_OVERRIDES.get(self)
        if special:
            return special
        return " ".join(word.capitalize() for word in self.name.split("_"))

    @property
    def symbol(self) -> str:
        """Symbolic name accepted by put_status ("not_found")."""
        return self.name.lower()

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self < 600

    @property
    def is_error(self) -> bool:
        return self >= 400


# Phrases that don't follow the Title Case rule.
_PHRASE_OVERRIDES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NON_AUTHORITATIVE_INFORMATION: "Non-Authoritative Information",
    HTTPStatus.MULTI_STATUS: "Multi-Status",
    HTTPStatus.IM_USED: "IM Used",
    HTTPStatus.URI_TOO_LONG: "URI Too Long",
    HTTPStatus.IM_A_TEAPOT: "I'm a teapot",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}

_ALIASES = {
    "request_entity_too_large": HTTPStatus.PAYLOAD_TOO_LARGE,
    "content_too_large": HTTPStatus.PAYLOAD_TOO_LARGE,
    "request_uri_too_long": HTTPStatus.URI_TOO_LONG,
    "requested_range_not_satisfiable": HTTPStatus.RANGE_NOT_SATISFIABLE,
    "unprocessable_content": HTTPStatus.UNPROCESSABLE_ENTITY,
}

StatusLike = Union[int, str, HTTPStatus]


def status_from_name(name: str) -> HTTPStatus:
    """
    Look up a status by symbolic name.

    Case and a leading colon are ignored, so "not_found", ":not_found"
    and "NOT_FOUND" are the same status.

    Raises:
        KeyError: If the name is not in the table.
    """
    key = name.strip().lstrip(":").lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return HTTPStatus[key.upper()]
    except KeyError:
        raise KeyError(name) from None


def resolve_status(status: StatusLike) -> HTTPStatus:
    """
    Resolve a numeric code, enum member or symbolic name to HTTPStatus.

    Raises:
        ValueError: If the code or name is not recognized.
    """
    if isinstance(status, HTTPStatus):
        return status
    # bool is an int subclass; True is not a status
    if isinstance(status, bool):
        raise ValueError(f"Not a status: {status!r}")
    if isinstance(status, int):
        return HTTPStatus(status)
    if isinstance(status, str):
        text = status.strip()
        if text.isdigit():
            return HTTPStatus(int(text))
        try:
            return status_from_name(text)
        except KeyError:
            raise ValueError(f"Unknown status name: {status!r}") from None
    raise ValueError(f"Not a status: {status!r}")


def is_valid_status(status: StatusLike) -> bool:
    """Check whether a status would be accepted at commit time."""
    try:
        resolve_status(status)
    except ValueError:
        return False
    return True
