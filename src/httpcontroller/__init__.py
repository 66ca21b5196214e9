"""
=============================================================================
HTTPCONTROLLER - Controller Layer for Request Handling
=============================================================================

The part of a web stack that sits between the router and the wire: a
per-request Context, an ordered pipeline of stages, action dispatch,
template rendering with format negotiation and layouts, flash messages,
redirect helpers, and a finalizer that commits each response exactly once.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   router ──► Endpoint.call(PageController, "index", ctx)             │
    │                     │                                                │
    │                     ▼                                                │
    │   ┌──────────────────────────────────────────────────────────────┐  │
    │   │ PIPELINE (frozen at class definition)                         │  │
    │   │  RequestLogging ► AcceptFormats ► FetchSession ► FetchFlash  │  │
    │   │  ► your stages ► Dispatch ► (AutoRender)                      │  │
    │   └──────────────────────────────────────────────────────────────┘  │
    │                     │                                                │
    │                     ▼                                                │
    │   action: render(ctx) / redirect(ctx, to=...) / text(ctx, ...)      │
    │                     │                                                │
    │                     ▼                                                │
    │   commit: before-commit callbacks, status check, freeze ► Response   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpcontroller/
    ├── __init__.py        # This file - package exports
    ├── context.py         # Context and ResponseHeaders
    ├── pipeline.py        # Stage, Pipeline, plug/only/except_actions
    ├── controller.py      # Controller base class, @action
    ├── endpoint.py        # Endpoint, setup_logging
    ├── render.py          # Render dispatcher, format negotiation
    ├── helpers.py         # redirect, text, html, json, send_resp
    ├── finalizer.py       # commit()
    ├── flash.py           # FlashStore
    ├── session.py         # Session stores
    ├── templates.py       # Template engines
    ├── config.py          # ControllerConfig
    ├── errors.py          # Error taxonomy
    ├── stages/            # Built-in stages
    └── http/              # Status codes, formats, Response

=============================================================================
QUICK START
=============================================================================

    from httpcontroller import (
        Controller, Endpoint, InMemoryTemplateEngine,
        AcceptFormats, FetchSession, FetchFlash, action, redirect, render,
    )

    class PageController(Controller):
        accepted_formats = ("html", "text")
        stages = [AcceptFormats(), FetchSession(), FetchFlash()]

        @action
        def index(self, ctx, params):
            render(ctx, assigns={"title": "Home"})

        @action
        def save(self, ctx, params):
            ctx.flash.put("info", "Saved").persist("info")
            redirect(ctx, to="/")

    endpoint = Endpoint(templates=InMemoryTemplateEngine({
        "page/index.html": "<h1>$title</h1>",
        "layouts/app.html": "<body>$inner_content</body>",
    }))
    response = endpoint.request(PageController, "index", path="/")

=============================================================================
"""

__version__ = "1.0.0"

from .config import ControllerConfig
from .context import Context, ResponseHeaders
from .controller import Controller, action
from .endpoint import Endpoint, setup_logging
from .errors import (
    BadRequestError,
    ControllerDefinitionError,
    ControllerError,
    DoubleCommitError,
    InvalidStatusError,
    NoResponseError,
    PipelineFrozenError,
    RedirectMisuseError,
    RequestCancelledError,
    TemplateNotFoundError,
    UnknownActionError,
    UnsupportedFormatError,
)
from .finalizer import commit, response_from
from .flash import FlashStore
from .helpers import html, json, put_status, redirect, send_resp, text
from .http import HTTPStatus, Response
from .pipeline import (
    FunctionStage,
    Pipeline,
    Stage,
    StageEntry,
    always,
    except_actions,
    only,
    plug,
    stage,
)
from .render import RenderKey, put_format, put_layout, put_view, render, render_to_string
from .session import CookieSessionStore, MemorySessionStore, SessionStore
from .stages import (
    AcceptFormats,
    AutoRender,
    Dispatch,
    FetchFlash,
    FetchSession,
    RequestLogging,
)
from .templates import FileSystemTemplateEngine, InMemoryTemplateEngine, TemplateEngine

__all__ = [
    "__version__",

    # Core
    "Context",
    "ResponseHeaders",
    "Controller",
    "action",
    "Endpoint",
    "setup_logging",
    "ControllerConfig",

    # Pipeline
    "Stage",
    "FunctionStage",
    "stage",
    "StageEntry",
    "Pipeline",
    "plug",
    "always",
    "only",
    "except_actions",

    # Stages
    "AcceptFormats",
    "FetchSession",
    "FetchFlash",
    "Dispatch",
    "AutoRender",
    "RequestLogging",

    # Rendering and responses
    "RenderKey",
    "render",
    "render_to_string",
    "put_format",
    "put_layout",
    "put_view",
    "put_status",
    "redirect",
    "send_resp",
    "text",
    "html",
    "json",
    "commit",
    "response_from",
    "Response",
    "HTTPStatus",

    # State
    "FlashStore",
    "SessionStore",
    "CookieSessionStore",
    "MemorySessionStore",

    # Templates
    "TemplateEngine",
    "InMemoryTemplateEngine",
    "FileSystemTemplateEngine",

    # Errors
    "ControllerError",
    "BadRequestError",
    "DoubleCommitError",
    "TemplateNotFoundError",
    "UnsupportedFormatError",
    "InvalidStatusError",
    "RedirectMisuseError",
    "UnknownActionError",
    "NoResponseError",
    "RequestCancelledError",
    "ControllerDefinitionError",
    "PipelineFrozenError",
]
