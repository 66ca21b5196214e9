"""
=============================================================================
CONTROLLER ERRORS
=============================================================================

Every error the controller layer raises while handling a request carries
the HTTP status code the endpoint should answer with.

    ┌──────────────────────────┬────────┬──────────────────────────────────┐
    │ Error                    │ Status │ Raised when                      │
    ├──────────────────────────┼────────┼──────────────────────────────────┤
    │ BadRequestError          │  400   │ request body cannot be decoded   │
    │ DoubleCommitError        │  500   │ response mutated after commit    │
    │ TemplateNotFoundError    │  500   │ no template for the render key   │
    │ UnsupportedFormatError   │  406   │ requested format not accepted    │
    │ InvalidStatusError       │  500   │ unknown status found at commit   │
    │ RedirectMisuseError      │  500   │ URL given as path (or reverse)   │
    │ UnknownActionError       │  404   │ action name not on controller    │
    │ NoResponseError          │  500   │ pipeline ended without a body    │
    │ RequestCancelledError    │  499   │ transport cancelled the request  │
    └──────────────────────────┴────────┴──────────────────────────────────┘

Definition-time mistakes (a bad controller class, registering a stage on a
frozen pipeline) are not request errors. They raise immediately while the
application is being set up, so they derive from TypeError / RuntimeError.

=============================================================================
"""

from typing import Iterable, Optional


class ControllerError(Exception):
    """
    Base class for errors raised while processing a request.

    Like a parse error in a server, the error knows which HTTP status
    the client should see. The endpoint turns it into a response.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(ControllerError):
    """The request body could not be decoded."""

    status_code = 400


class DoubleCommitError(ControllerError):
    """A response was already committed for this request."""


class TemplateNotFoundError(ControllerError):
    """The template engine has nothing for the resolution key."""

    def __init__(self, key: object):
        super().__init__(f"Template not found: {key}")
        self.key = key


class UnsupportedFormatError(ControllerError):
    """The negotiated format is not one the controller accepts."""

    status_code = 406

    def __init__(self, format: str, accepted: Iterable[str] = ()):
        self.format = format
        self.accepted = tuple(accepted)
        super().__init__(
            f"Unsupported format {format!r}; accepted: {', '.join(self.accepted) or 'none'}"
        )


class InvalidStatusError(ControllerError):
    """A status that is not in the recognized table reached commit."""

    def __init__(self, status: object):
        super().__init__(f"Invalid HTTP status: {status!r}")
        self.status = status


class RedirectMisuseError(ControllerError):
    """A full URL was passed as an internal path, or the other way round."""


class UnknownActionError(ControllerError):
    """The router asked for an action the controller does not define."""

    status_code = 404


class NoResponseError(ControllerError):
    """The pipeline finished without committing or halting."""


class RequestCancelledError(ControllerError):
    """The transport cancelled the request (client went away)."""

    # nginx convention for "client closed request"
    status_code = 499


class ControllerDefinitionError(TypeError):
    """A controller class is malformed (bad action names in predicates, etc.)."""


class PipelineFrozenError(RuntimeError):
    """A stage was registered after the pipeline was frozen."""
