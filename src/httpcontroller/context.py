"""
=============================================================================
REQUEST CONTEXT
=============================================================================

A Context carries one request/response exchange through the pipeline.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONTEXT                                    │
    ├──────────────────────────────┬──────────────────────────────────────┤
    │ REQUEST SIDE (read mostly)   │ RESPONSE SIDE (frozen at commit)     │
    │                              │                                      │
    │  method, path                │  status       (unset until set)      │
    │  query_params  {k: [v, ..]}  │  resp_headers (multi-valued)         │
    │  body_params   {k: v}        │  resp_body    (bytes)                │
    │  params        merged view   │                                      │
    │  req_headers   lower-case    │  committed    False ──► True         │
    ├──────────────────────────────┴──────────────────────────────────────┤
    │ PER-REQUEST STATE                                                   │
    │  assigns   values for templates      session   persisted mapping    │
    │  flash     FlashStore                halted    stop the pipeline    │
    │  format / requested_format / accepted_formats   negotiation inputs  │
    │  private   framework bookkeeping (layout, view, request id)         │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
COMMIT RULES
=============================================================================

- committed only ever goes from False to True.
- Once committed, writing status, headers or body raises
  DoubleCommitError. Two rendering paths fired for the same request,
  which is a programming error, so it is never silently ignored.
- halt() stops the remaining stages but commits nothing.

A Context is owned by exactly one worker for the life of the request, so
nothing here is locked.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs
import json
import threading

from .errors import BadRequestError, DoubleCommitError
from .flash import FlashStore
from .http.mime_types import is_text_type
from .http.status_codes import StatusLike


BeforeCommit = Callable[["Context"], None]

# Attributes that make up the response; frozen once committed.
_RESPONSE_FIELDS = frozenset({"status", "resp_headers", "resp_body"})


class ResponseHeaders:
    """
    Case-insensitive, multi-valued response header map.

    The first spelling used for a name is kept for output:

        >>> headers = ResponseHeaders()
        >>> _ = headers.add("Set-Cookie", "a=1").add("set-cookie", "b=2")
        >>> headers.get_all("SET-COOKIE")
        ['a=1', 'b=2']
    """

    def __init__(self) -> None:
        self._headers: Dict[str, Tuple[str, List[str]]] = {}
        self._frozen = False

    def _check(self) -> None:
        if self._frozen:
            raise DoubleCommitError("Response headers are frozen: response already committed")

    def put(self, name: str, value: str) -> "ResponseHeaders":
        """Replace every value of name with value."""
        self._check()
        key = name.lower()
        display = self._headers[key][0] if key in self._headers else name
        self._headers[key] = (display, [str(value)])
        return self

    def add(self, name: str, value: str) -> "ResponseHeaders":
        """Append a value, keeping the existing ones."""
        self._check()
        key = name.lower()
        if key in self._headers:
            self._headers[key][1].append(str(value))
        else:
            self._headers[key] = (name, [str(value)])
        return self

    def delete(self, name: str) -> "ResponseHeaders":
        self._check()
        self._headers.pop(name.lower(), None)
        return self

    def setdefault(self, name: str, value: str) -> str:
        if name.lower() not in self._headers:
            self.put(name, value)
        return self.get(name)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of name, or default."""
        entry = self._headers.get(name.lower())
        return entry[1][0] if entry else default

    def get_all(self, name: str) -> List[str]:
        entry = self._headers.get(name.lower())
        return list(entry[1]) if entry else []

    def items(self) -> List[Tuple[str, str]]:
        """Flattened (name, value) pairs, one per value, in insertion order."""
        return [
            (display, value)
            for display, values in self._headers.values()
            for value in values
        ]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter([display for display, _ in self._headers.values()])

    def __len__(self) -> int:
        return len(self._headers)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __repr__(self) -> str:
        return f"ResponseHeaders({self.items()!r})"


@dataclass
class Context:
    """
    Per-request state carrier.

    The router (or the Endpoint) builds one per inbound request; stages and
    the action mutate it; the finalizer commits it.
    """

    # Request line
    method: str = "GET"
    path: str = "/"

    # Request data
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body_params: Dict[str, Any] = field(default_factory=dict)
    path_params: Dict[str, str] = field(default_factory=dict)
    req_headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    # Template interpolation values
    assigns: Dict[str, Any] = field(default_factory=dict)

    # Format negotiation
    format: Optional[str] = None                 # explicit put_format override
    requested_format: Optional[str] = None       # what the client asked for
    accepted_formats: Optional[Tuple[str, ...]] = None

    # Session-backed state
    session: Dict[str, Any] = field(default_factory=dict)
    flash: FlashStore = field(default_factory=FlashStore)

    # Routing result
    controller: Optional[type] = None
    action: Optional[str] = None

    # Collaborators attached by the Endpoint (templates, config, ...)
    private: Dict[str, Any] = field(default_factory=dict)

    # Response
    status: Optional[StatusLike] = None
    resp_headers: ResponseHeaders = field(default_factory=ResponseHeaders)
    resp_body: bytes = b""

    halted: bool = False
    committed: bool = False

    _before_commit: List[BeforeCommit] = field(default_factory=list, repr=False)
    _after_commit: List[BeforeCommit] = field(default_factory=list, repr=False)
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    def __setattr__(self, name: str, value: Any) -> None:
        state = self.__dict__
        if state.get("committed", False):
            if name in _RESPONSE_FIELDS:
                raise DoubleCommitError(
                    f"Cannot set {name}: response already committed "
                    f"for {state.get('method')} {state.get('path')}"
                )
            if name == "committed" and not value:
                raise DoubleCommitError("A committed response cannot be reverted")
        super().__setattr__(name, value)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        query_string: str = "",
        headers: Optional[Dict[str, str]] = None,
        body: bytes = b"",
        path_params: Optional[Dict[str, str]] = None,
    ) -> "Context":
        """
        Build a context from raw request parts.

        Headers are stored with lower-case names. JSON and url-encoded
        bodies are decoded into body_params.

        Raises:
            BadRequestError: If the body does not match its Content-Type.
        """
        if "?" in path and not query_string:
            path, _, query_string = path.partition("?")

        req_headers = {name.lower(): value for name, value in (headers or {}).items()}
        query_params = parse_qs(query_string, keep_blank_values=True)

        return cls(
            method=method.upper(),
            path=path or "/",
            query_params=query_params,
            body_params=_decode_body(req_headers.get("content-type", ""), body),
            path_params=dict(path_params or {}),
            req_headers=req_headers,
            body=body,
        )

    # =========================================================================
    # REQUEST ACCESSORS
    # =========================================================================

    @property
    def params(self) -> Dict[str, Any]:
        """
        Merged parameters: path params, then query, then body.

        Earlier sources win on key clashes. Multi-valued query parameters
        contribute their first value; use get_query_list() for the rest.
        """
        merged: Dict[str, Any] = {}
        for key, value in self.body_params.items():
            merged[key] = value
        for key, values in self.query_params.items():
            merged[key] = values[0] if values else ""
        merged.update(self.path_params)
        return merged

    def get_req_header(self, name: str, default: str = "") -> str:
        return self.req_headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> List[str]:
        return list(self.query_params.get(name, []))

    # =========================================================================
    # ASSIGNS
    # =========================================================================

    def assign(self, key: Optional[str] = None, value: Any = None, **values: Any) -> "Context":
        """
        Set template assigns.

            ctx.assign("user", user)
            ctx.assign(title="Home", items=items)
        """
        if key is not None:
            self.assigns[key] = value
        self.assigns.update(values)
        return self

    def merge_assigns(self, values: Dict[str, Any]) -> "Context":
        self.assigns.update(values)
        return self

    # =========================================================================
    # RESPONSE MUTATION
    # =========================================================================

    def _ensure_open(self, what: str) -> None:
        if self.committed:
            raise DoubleCommitError(
                f"Cannot {what}: response already committed for {self.method} {self.path}"
            )

    def put_status(self, status: StatusLike) -> "Context":
        """
        Set the response status (code, HTTPStatus, or symbolic name).

        Always accepted here; validated by the finalizer at commit. Setting
        a 3xx or 4xx status has no other effect.
        """
        self._ensure_open("set status")
        self.status = status
        return self

    def put_resp_header(self, name: str, value: str) -> "Context":
        self._ensure_open("set header")
        self.resp_headers.put(name, value)
        return self

    def add_resp_header(self, name: str, value: str) -> "Context":
        self._ensure_open("add header")
        self.resp_headers.add(name, value)
        return self

    def delete_resp_header(self, name: str) -> "Context":
        self._ensure_open("delete header")
        self.resp_headers.delete(name)
        return self

    def get_resp_header(self, name: str) -> List[str]:
        return self.resp_headers.get_all(name)

    def put_resp_content_type(self, mime_type: str, charset: Optional[str] = "utf-8") -> "Context":
        """Set Content-Type, adding charset for text types."""
        if charset and is_text_type(mime_type):
            return self.put_resp_header("Content-Type", f"{mime_type}; charset={charset}")
        return self.put_resp_header("Content-Type", mime_type)

    def put_resp_body(self, body: Any) -> "Context":
        self._ensure_open("set body")
        self.resp_body = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        return self

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def halt(self) -> "Context":
        """Stop the pipeline after the current stage without committing."""
        self.halted = True
        return self

    def register_before_commit(self, callback: BeforeCommit) -> "Context":
        """
        Run callback right before the response is committed.

        Callbacks run last-registered first, so a stage registered early in
        the pipeline sees the effects of later ones.
        """
        self._ensure_open("register a before-commit callback")
        self._before_commit.append(callback)
        return self

    def pop_before_commit(self) -> List[BeforeCommit]:
        """Take the pending callbacks in execution order (used by the finalizer)."""
        callbacks = list(reversed(self._before_commit))
        self._before_commit.clear()
        return callbacks

    def register_after_commit(self, callback: BeforeCommit) -> "Context":
        """Run callback once the response is final (read-only; e.g. access logs)."""
        self._ensure_open("register an after-commit callback")
        self._after_commit.append(callback)
        return self

    def pop_after_commit(self) -> List[BeforeCommit]:
        callbacks = list(self._after_commit)
        self._after_commit.clear()
        return callbacks

    def cancel(self) -> None:
        """Mark the request cancelled; observed at the next stage boundary."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()


def _decode_body(content_type: str, body: bytes) -> Dict[str, Any]:
    if not body:
        return {}

    mime = content_type.split(";")[0].strip().lower()

    if mime == "application/json":
        try:
            data = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BadRequestError(f"Invalid JSON body: {e}") from e
        # Non-object JSON has no keys to merge; keep it under "_json".
        return data if isinstance(data, dict) else {"_json": data}

    if mime == "application/x-www-form-urlencoded":
        try:
            parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
        except UnicodeDecodeError as e:
            raise BadRequestError(f"Invalid form body: {e}") from e
        return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}

    return {}
