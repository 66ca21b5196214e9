"""
=============================================================================
ENDPOINT
=============================================================================

The Endpoint is the boundary between a transport (the server, a test
client) and the controller layer. The router decides which controller and
action handle a request; the Endpoint runs them and hands back the
committed Response.

    transport / router
          │ (controller, action, Context)
          ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ Endpoint.call                                                       │
    │                                                                     │
    │   attach collaborators   ctx.private: config, templates, store      │
    │          │                                                          │
    │          ▼                                                          │
    │   Controller.call(ctx, action)  ──► pipeline ──► action ──► commit  │
    │          │                                                          │
    │          ├── committed            ──► Response                      │
    │          ├── halted, uncommitted  ──► None (stage answered nothing) │
    │          ├── cancelled            ──► None (client went away)       │
    │          ├── neither              ──► NoResponseError ──► 500       │
    │          ├── ControllerError      ──► JSON error, its status_code   │
    │          └── any other exception  ──► JSON error, 500               │
    └─────────────────────────────────────────────────────────────────────┘

Error bodies look like {"error": "Not Acceptable"}. The exception message
is only exposed with config.debug, since it can name templates, paths or
internals. With raise_errors=True (tests) exceptions propagate instead.

=============================================================================
"""

from typing import Any, Dict, Optional, Type
import json
import logging

from .config import ControllerConfig
from .context import Context
from .controller import Controller
from .errors import BadRequestError, ControllerError, NoResponseError, RequestCancelledError
from .finalizer import response_from
from .http.mime_types import content_type_for_format
from .http.response import Response
from .http.status_codes import HTTPStatus, resolve_status
from .session import CookieSessionStore, MemorySessionStore, SessionStore
from .templates import FileSystemTemplateEngine, TemplateEngine


logger = logging.getLogger(__name__)


def setup_logging(config: ControllerConfig) -> None:
    """Configure logging from config (root handler plus package level)."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpcontroller").setLevel(level)


class Endpoint:
    """
    Runs controllers for a configured application.

        endpoint = Endpoint(
            ControllerConfig(templates_dir="templates"),
        )
        response = endpoint.request(PageController, "index", path="/")
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        templates: Optional[TemplateEngine] = None,
        session_store: Optional[SessionStore] = None,
        raise_errors: bool = False,
    ):
        """
        Args:
            config: Settings; validated here so mistakes fail at startup
            templates: Template engine; built from config.templates_dir
                       when omitted
            session_store: Defaults to a signed cookie store when
                           config.session_secret is set, else in-memory
            raise_errors: Re-raise exceptions instead of answering with
                          an error response
        """
        self.config = config or ControllerConfig()
        self.config.validate()

        if templates is None and self.config.templates_dir:
            templates = FileSystemTemplateEngine(self.config.templates_dir)
        self.templates = templates

        if session_store is None:
            if self.config.session_secret:
                session_store = CookieSessionStore(
                    self.config.session_secret, self.config.session_cookie
                )
            else:
                session_store = MemorySessionStore(self.config.session_cookie)
        self.session_store = session_store

        self.raise_errors = raise_errors

    # =========================================================================
    # CONTEXT
    # =========================================================================

    def prepare(self, context: Context) -> Context:
        """Attach the endpoint's collaborators to a context."""
        context.private.setdefault("config", self.config)
        context.private.setdefault("session_store", self.session_store)
        if self.templates is not None:
            context.private.setdefault("templates", self.templates)
        return context

    def build_context(
        self,
        method: str = "GET",
        path: str = "/",
        query_string: str = "",
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        path_params: Optional[Dict[str, str]] = None,
        remote_addr: Optional[str] = None,
    ) -> Context:
        context = Context.build(
            method,
            path,
            query_string=query_string,
            headers=headers,
            body=body,
            path_params=path_params,
        )
        if remote_addr:
            context.private["remote_addr"] = remote_addr
        return self.prepare(context)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def call(
        self,
        controller: Type[Controller],
        action: str,
        context: Context,
    ) -> Optional[Response]:
        """
        Handle one request routed to controller/action.

        Returns:
            The committed Response, or None when nothing must be sent
            (cancelled request, halted without a response)
        """
        self.prepare(context)
        try:
            context = controller.call(context, action)
            if context.cancelled:
                raise RequestCancelledError("Request cancelled during the action")
            if context.committed:
                return response_from(context)
            if context.halted:
                logger.debug(f"{controller.__name__}.{action} halted without a response")
                return None
            raise NoResponseError(
                f"{controller.__name__}.{action} finished without committing a response"
            )
        except RequestCancelledError:
            logger.info(f"Request cancelled: {context.method} {context.path}")
            return None
        except ControllerError as e:
            logger.exception(f"{type(e).__name__} in {controller.__name__}.{action}: {e}")
            if self.raise_errors:
                raise
            return self.error_response(context, e.status_code, str(e))
        except Exception as e:
            logger.exception(f"Unhandled error in {controller.__name__}.{action}: {e}")
            if self.raise_errors:
                raise
            return self.error_response(context, HTTPStatus.INTERNAL_SERVER_ERROR, str(e))

    def request(
        self,
        controller: Type[Controller],
        action: str,
        method: str = "GET",
        path: str = "/",
        **kwargs: Any,
    ) -> Optional[Response]:
        """
        Build a context and call controller/action in one step.

        A body that does not match its Content-Type is answered with 400
        before the controller runs.
        """
        try:
            context = self.build_context(method, path, **kwargs)
        except BadRequestError as e:
            logger.warning(f"Bad request: {method} {path}: {e}")
            if self.raise_errors:
                raise
            return self.error_response(Context(method=method.upper(), path=path), e.status_code, str(e))
        return self.call(controller, action, context)

    __call__ = call

    # =========================================================================
    # ERRORS
    # =========================================================================

    def error_response(self, context: Context, status_code: int, message: str) -> Response:
        """
        Build a JSON error response, independent of the context's own
        (possibly committed) response.
        """
        try:
            status = resolve_status(status_code)
        except ValueError:
            status = HTTPStatus.INTERNAL_SERVER_ERROR

        payload: Dict[str, Any] = {"error": message if self.config.debug else status.phrase}
        request_id = context.private.get("request_id")
        headers = [("Content-Type", content_type_for_format("json"))]
        if request_id:
            payload["request_id"] = request_id
            headers.append(("X-Request-ID", request_id))

        return Response(
            status=status,
            headers=headers,
            body=json.dumps(payload).encode("utf-8"),
        )
