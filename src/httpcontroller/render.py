"""
=============================================================================
RENDER DISPATCHER
=============================================================================

Turns (controller namespace, action or template, format) into a response
body and commits it.

=============================================================================
RESOLUTION
=============================================================================

    render(ctx)                     ──► RenderKey("page", "index", <fmt>)
    render(ctx, "show")             ──► RenderKey("page", "show",  <fmt>)
    render(ctx, "show.html")        ──► RenderKey("page", "show",  "html")
    render(ctx, "shared/nav.html")  ──► RenderKey("shared", "nav", "html")

<fmt> is negotiated, first match wins:

    (a) put_format(ctx, "json")                explicit override
    (b) ctx.requested_format                   from ?_format= or Accept,
        must be in ctx.accepted_formats        else UnsupportedFormatError
    (c) config.default_format ("html"), or the first accepted format when
        the controller does not accept the default

A ".html" style suffix skips (a)-(c) but not the accepted set: the suffix
must be accepted, and so must any format the request asked for.

The format is settled before any template lookup, so an unsupported format
never touches the template engine.

=============================================================================
RENDERING
=============================================================================

    ┌──────────────┐   assigns = ctx.assigns + render(assigns=...)
    │ RenderKey    │──────────────────────────────┐
    └──────────────┘                              ▼
                                    engine.render(key, assigns)
                                                  │
                       layout format? ────────────┤ no ──► body
                       layout enabled?            │
                                                  ▼ yes
                          engine.render(layout_key, assigns + inner_content)
                                                  │
                                                  ▼
                          commit(ctx, body, Content-Type for <fmt>)

Resolution is total: a missing template or layout raises
TemplateNotFoundError naming the key that was tried. Nothing falls back.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union
import json
import logging

from .config import ControllerConfig
from .context import Context
from .errors import DoubleCommitError, UnsupportedFormatError
from .finalizer import commit
from .http.mime_types import content_type_for_format, is_known_format
from .http.response import Response
from .http.status_codes import StatusLike
from .templates import TemplateEngine


logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


UNSET: Any = _Unset()

LayoutChoice = Union[str, bool, None]


@dataclass(frozen=True)
class RenderKey:
    """Where a template lives: namespace / template . format"""

    namespace: str
    template: str
    format: str

    @property
    def path(self) -> str:
        name = f"{self.template}.{self.format}"
        return f"{self.namespace}/{name}" if self.namespace else name

    def __str__(self) -> str:
        return self.path


# =============================================================================
# COLLABORATORS
# =============================================================================

def config_for(context: Context) -> ControllerConfig:
    return context.private.get("config") or ControllerConfig()


def engine_for(context: Context) -> TemplateEngine:
    engine = context.private.get("templates")
    if engine is None:
        raise RuntimeError("No template engine attached to the context")
    return engine


# =============================================================================
# SETTERS
# =============================================================================

def put_format(context: Context, format: str) -> Context:
    """
    Force the response format, overriding negotiation.

    Raises:
        UnsupportedFormatError: If the format was never registered.
    """
    if not is_known_format(format):
        raise UnsupportedFormatError(format, context.accepted_formats or ())
    context.format = format
    return context


def put_view(context: Context, namespace: str) -> Context:
    """Render templates from another namespace ("admin/page")."""
    context.private["view"] = namespace
    return context


def put_layout(context: Context, layout: LayoutChoice) -> Context:
    """
    Choose the layout for this request.

        put_layout(ctx, "admin")          # layouts/admin
        put_layout(ctx, "shared/plain")   # explicit namespace
        put_layout(ctx, False)            # no layout
        put_layout(ctx, None)             # back to the configured default
    """
    if layout is True:
        raise ValueError("put_layout expects a layout name, False or None")
    context.private["layout"] = layout
    return context


# =============================================================================
# RESOLUTION
# =============================================================================

def negotiate_format(context: Context) -> str:
    """
    Settle the response format for this request.

    Raises:
        UnsupportedFormatError: If the request asked for a format the
                                controller does not accept.
    """
    if context.format:
        return context.format

    config = config_for(context)
    accepted = context.accepted_formats

    requested = context.requested_format
    if requested:
        if accepted is not None and requested not in accepted:
            raise UnsupportedFormatError(requested, accepted)
        if not is_known_format(requested):
            raise UnsupportedFormatError(requested, accepted or ())
        return requested

    if accepted and config.default_format not in accepted:
        return accepted[0]
    return config.default_format


def _check_explicit_format(context: Context, format: str) -> None:
    """
    A template that names its format still answers to the accepted set,
    and cannot serve a request that explicitly asked for something else
    the controller refuses.
    """
    accepted = context.accepted_formats
    if accepted is None:
        return
    if format not in accepted:
        raise UnsupportedFormatError(format, accepted)
    requested = context.requested_format
    if requested and requested not in accepted:
        raise UnsupportedFormatError(requested, accepted)


def view_namespace(context: Context) -> str:
    view = context.private.get("view")
    if view is not None:
        return view
    controller = context.controller
    return getattr(controller, "namespace", "") if controller is not None else ""


def resolve_key(context: Context, template: Optional[str] = None) -> RenderKey:
    """
    Build the RenderKey for a render call.

    Args:
        template: None for the current action, "name", "name.format",
                  or "namespace/name[.format]"
    """
    if template is None:
        if not context.action:
            raise ValueError("render() without a template needs a dispatched action")
        template = context.action

    namespace = view_namespace(context)
    if "/" in template:
        namespace, _, template = template.rpartition("/")

    name, dot, suffix = template.rpartition(".")
    if dot and is_known_format(suffix):
        _check_explicit_format(context, suffix)
        return RenderKey(namespace, name, suffix)

    return RenderKey(namespace, template, negotiate_format(context))


def layout_for(context: Context, format: str, override: Any = UNSET) -> Optional[RenderKey]:
    """RenderKey of the layout to wrap a format in, or None."""
    config = config_for(context)
    if format not in config.layout_formats:
        return None

    choice = context.private.get("layout") if override is UNSET else override
    if choice is None:
        choice = config.default_layout
    if not choice:
        return None

    if "/" in choice:
        namespace, _, name = choice.rpartition("/")
    else:
        namespace, name = "layouts", choice
    return RenderKey(namespace, name, format)


# =============================================================================
# RENDERING
# =============================================================================

def _to_bytes(rendered: Any) -> bytes:
    if isinstance(rendered, bytes):
        return rendered
    if isinstance(rendered, (dict, list)):
        return json.dumps(rendered, ensure_ascii=False).encode("utf-8")
    return str(rendered).encode("utf-8")


def _render_assigns(context: Context, assigns: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged = dict(context.assigns)
    merged.update(assigns or {})
    merged.setdefault("flash", context.flash)
    return merged


def render_to_string(
    context: Context,
    template: Optional[str] = None,
    assigns: Optional[Mapping[str, Any]] = None,
) -> str:
    """Render a template without a layout and without committing."""
    key = resolve_key(context, template)
    return _to_bytes(engine_for(context).render(key, _render_assigns(context, assigns))).decode("utf-8")


def render(
    context: Context,
    template: Optional[str] = None,
    assigns: Optional[Mapping[str, Any]] = None,
    layout: Any = UNSET,
    status: Optional[StatusLike] = None,
) -> Response:
    """
    Render a template and commit the response.

    Args:
        context: The request context
        template: Template reference (see resolve_key); defaults to the action
        assigns: Extra assigns; they win over ctx.assigns on clashes
        layout: Layout override for this call ("admin", False, ...)
        status: Status to set before committing

    Returns:
        The committed Response

    Raises:
        DoubleCommitError: If the response was already committed
        UnsupportedFormatError: If negotiation fails (before any lookup)
        TemplateNotFoundError: If the template or its layout is missing
    """
    if context.committed:
        raise DoubleCommitError(
            f"Cannot render: response already committed for {context.method} {context.path}"
        )

    key = resolve_key(context, template)
    engine = engine_for(context)
    merged = _render_assigns(context, assigns)

    body = _to_bytes(engine.render(key, merged))

    layout_key = layout_for(context, key.format, layout)
    if layout_key is not None:
        body = _to_bytes(engine.render(layout_key, {**merged, "inner_content": body.decode("utf-8")}))

    logger.debug(
        f"Rendered {key}" + (f" in {layout_key}" if layout_key else "")
    )

    if status is not None:
        context.put_status(status)

    content_type = None
    if "Content-Type" not in context.resp_headers:
        content_type = content_type_for_format(key.format)

    return commit(context, body, content_type)
