"""
=============================================================================
SESSION STORES
=============================================================================

The controller layer reads and writes the session only through this
interface:

    load(ctx)        -> dict        called by FetchSession at pipeline start
    save(ctx, data)                 called right before the response commits

How the data survives between requests is the store's business:

    ┌─────────────────────┬───────────────────────────────────────────────┐
    │ CookieSessionStore  │ whole session in a signed cookie              │
    │                     │ base64(json) + "." + HMAC-SHA256 signature    │
    │                     │ tampered or unreadable cookie → empty session │
    ├─────────────────────┼───────────────────────────────────────────────┤
    │ MemorySessionStore  │ session id in a cookie, data in a dict        │
    │                     │ shared by all worker threads (locked)         │
    └─────────────────────┴───────────────────────────────────────────────┘

=============================================================================
"""

from abc import ABC, abstractmethod
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional
import base64
import copy
import hashlib
import hmac
import json
import logging
import threading
import uuid

from .context import Context


logger = logging.getLogger(__name__)


DEFAULT_COOKIE = "_httpcontroller_session"


def read_cookie(context: Context, name: str) -> Optional[str]:
    """Value of a request cookie, or None."""
    header = context.get_req_header("cookie")
    if not header:
        return None
    cookies = SimpleCookie()
    try:
        cookies.load(header)
    except CookieError:
        logger.debug("Ignoring malformed Cookie header")
        return None
    morsel = cookies.get(name)
    return morsel.value if morsel else None


def cookie_header(name: str, value: str, max_age: Optional[int] = None) -> str:
    """Build a Set-Cookie value with the attributes sessions always need."""
    parts = [f"{name}={value}", "Path=/", "HttpOnly", "SameSite=Lax"]
    if max_age is not None:
        parts.append(f"Max-Age={max_age}")
    return "; ".join(parts)


class SessionStore(ABC):
    """Where sessions come from and go to."""

    def __init__(self, cookie_name: str = DEFAULT_COOKIE):
        self.cookie_name = cookie_name

    @abstractmethod
    def load(self, context: Context) -> Dict[str, Any]:
        ...

    @abstractmethod
    def save(self, context: Context, data: Dict[str, Any]) -> None:
        ...


class CookieSessionStore(SessionStore):
    """
    Session kept client-side in a signed cookie.

    The payload is readable by the client (it is only signed, not
    encrypted); keep secrets out of it.
    """

    def __init__(self, secret: str, cookie_name: str = DEFAULT_COOKIE):
        super().__init__(cookie_name)
        if not secret:
            raise ValueError("CookieSessionStore needs a non-empty secret")
        self._secret = secret.encode("utf-8")

    def _sign(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("ascii"), hashlib.sha256).hexdigest()

    def encode(self, data: Dict[str, Any]) -> str:
        raw = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
        payload = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
        return f"{payload}.{self._sign(payload)}"

    def decode(self, value: str) -> Dict[str, Any]:
        """Verify and decode a cookie value; anything suspicious gives {}."""
        payload, _, signature = value.partition(".")
        # Client input: non-ASCII would break both the HMAC and compare_digest.
        if not value.isascii() or not payload or not hmac.compare_digest(
            signature, self._sign(payload)
        ):
            logger.warning("Session cookie signature mismatch; starting a new session")
            return {}
        try:
            padded = payload + "=" * (-len(payload) % 4)
            data = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, context: Context) -> Dict[str, Any]:
        value = read_cookie(context, self.cookie_name)
        return self.decode(value) if value else {}

    def save(self, context: Context, data: Dict[str, Any]) -> None:
        had_cookie = read_cookie(context, self.cookie_name) is not None
        if data:
            context.add_resp_header("Set-Cookie", cookie_header(self.cookie_name, self.encode(data)))
        elif had_cookie:
            # Session emptied: tell the browser to drop the cookie.
            context.add_resp_header("Set-Cookie", cookie_header(self.cookie_name, "", max_age=0))


class MemorySessionStore(SessionStore):
    """
    Server-side sessions in process memory.

    Only the session id travels in the cookie. Sessions vanish on restart;
    suitable for development and tests.
    """

    def __init__(self, cookie_name: str = DEFAULT_COOKIE):
        super().__init__(cookie_name)
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, context: Context) -> Dict[str, Any]:
        session_id = read_cookie(context, self.cookie_name)
        with self._lock:
            data = self._sessions.get(session_id) if session_id else None
        if data is None:
            return {}
        context.private["session_id"] = session_id
        # Deep copy: the request must not mutate the stored session in place.
        return copy.deepcopy(data)

    def save(self, context: Context, data: Dict[str, Any]) -> None:
        session_id = context.private.get("session_id")

        if not data:
            if session_id:
                with self._lock:
                    self._sessions.pop(session_id, None)
                context.add_resp_header("Set-Cookie", cookie_header(self.cookie_name, "", max_age=0))
            return

        if session_id is None:
            session_id = uuid.uuid4().hex
            context.private["session_id"] = session_id
            context.add_resp_header("Set-Cookie", cookie_header(self.cookie_name, session_id))

        with self._lock:
            self._sessions[session_id] = copy.deepcopy(data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
