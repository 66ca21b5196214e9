"""
Built-in pipeline stages.

    RequestLogging   access lines, timing, X-Request-ID
    AcceptFormats    accepted / requested format
    FetchSession     load and save the session
    FetchFlash       flash messages across one redirect
    Dispatch         call the action
    AutoRender       render the action template if nothing committed
"""

from .dispatch import Dispatch
from .formats import AcceptFormats, format_from_accept, parse_accept
from .logging import RequestLog, RequestLogging
from .render import AutoRender
from .session import FetchFlash, FetchSession

__all__ = [
    "AcceptFormats",
    "AutoRender",
    "Dispatch",
    "FetchFlash",
    "FetchSession",
    "RequestLog",
    "RequestLogging",
    "format_from_accept",
    "parse_accept",
]
