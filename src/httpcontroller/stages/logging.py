"""
=============================================================================
REQUEST LOGGING STAGE
=============================================================================

Access logging with timing and correlation ids, as a pipeline stage.

    APACHE STYLE (log_format="text"):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 10.0.0.7 - - [10/Jun/2024:10:55:36 +0000] "GET /items" 200 512 3.10ms│
    │ ─────────────────────────────────────────────────────────────────── │
    │ client     timestamp                    request      status size dur │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (log_format="json"):
    {"request_id": "a1b2c3d4", "method": "GET", "path": "/items",
     "controller": "PageController", "action": "index", "status_code": 200,
     ...}

=============================================================================
PLACEMENT
=============================================================================

Put it first so every later stage, and the action, runs inside the
timing window and can read ctx.private["request_id"]:

    stages = [RequestLogging(), AcceptFormats(), FetchSession(), ...]

The stage itself only starts the clock and sets X-Request-ID. The access
line is written from an after-commit callback, once the status and body
are final. A request that never commits (halted, failed, cancelled) gets
no access line here; the Endpoint logs failures.

=============================================================================
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import json
import logging
import time
import uuid

from ..context import Context
from ..pipeline import Stage


# Access lines go to their own logger so they can be routed separately:
#   logging.getLogger("httpcontroller.access").addHandler(file_handler)
logger = logging.getLogger("httpcontroller.access")


@dataclass
class RequestLog:
    """Structured access log entry for one committed request."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    controller: str
    action: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "query": self.query,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "controller": self.controller,
            "action": self.action,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache combined log format, plus duration."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class RequestLogging(Stage):
    """
    Request logging stage.

        RequestLogging()                             # format from config.log_format
        RequestLogging(log_format="json")            # for log aggregators
        RequestLogging(skip_paths=["/health"])       # keep probes quiet
    """

    def __init__(
        self,
        log_format: Optional[str] = None,
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" (Apache style) or "json"; defaults to
                        config.log_format, else "text"
            include_request_id: Add an X-Request-ID header to the response
            log_level: Level the access lines are logged at
            skip_paths: Paths that get no access line (the id is still set)
        """
        if log_format is not None and log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, context: Context) -> Context:
        # 8 hex chars: short enough to read, plenty for correlation
        request_id = context.get_req_header("x-request-id") or str(uuid.uuid4())[:8]
        context.private["request_id"] = request_id
        start_time = time.time()

        if self.include_request_id:
            context.put_resp_header("X-Request-ID", request_id)

        if context.path not in self.skip_paths:
            context.register_after_commit(
                lambda ctx: self._emit(ctx, request_id, start_time)
            )
        return context

    def build_entry(self, context: Context, request_id: str, start_time: float) -> RequestLog:
        controller = context.controller
        query = "&".join(
            f"{name}={value}"
            for name, values in context.query_params.items()
            for value in values
        )
        return RequestLog(
            request_id=request_id,
            method=context.method,
            path=context.path,
            query=query,
            client_ip=context.private.get("remote_addr", "-"),
            user_agent=context.get_req_header("user-agent") or "-",
            controller=controller.__name__ if controller is not None else "-",
            action=context.action or "-",
            status_code=int(context.status),
            content_length=len(context.resp_body),
            duration_ms=(time.time() - start_time) * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def format_for(self, context: Context) -> str:
        if self.log_format is not None:
            return self.log_format
        config = context.private.get("config")
        return config.log_format if config is not None else "text"

    def _emit(self, context: Context, request_id: str, start_time: float) -> None:
        entry = self.build_entry(context, request_id, start_time)
        if self.format_for(context) == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
