"""
=============================================================================
FLASH MESSAGES
=============================================================================

Short-lived, keyed, user-facing messages ("Item saved.", "Login failed.")
layered on the session.

=============================================================================
LIFECYCLE
=============================================================================

    request N                                   request N+1
    ─────────                                   ───────────
    FetchFlash: hydrate from session            FetchFlash: hydrate
        │                                           │  sees "info" ◄──┐
    action: put("info", "Saved")                    │                 │
            persist("info")                     action reads or not   │
        │                                           │                 │
    commit: to_session()  ── session["_flash"] ─────┘                 │
            writes "info" only                  commit: nothing       │
                                                persisted, entry gone ┘

Only persisted keys are written back, and hydration consumes the session
entry. A persisted message is therefore visible to exactly one following
request and disappears afterwards whether or not anybody read it.

The store is mutated in place; it belongs to a single request.

=============================================================================
"""

from typing import Any, Dict, Iterator, List, MutableMapping, Optional, Set


SESSION_KEY = "_flash"


class FlashStore:
    """
    Keyed accumulator of flash messages.

    An absent key and a key with no messages are indistinguishable:

        >>> store = FlashStore()
        >>> store.get_all("error")
        []
        >>> store.get("error") is None
        True
    """

    def __init__(self, messages: Optional[Dict[str, List[str]]] = None):
        self._messages: Dict[str, List[str]] = {}
        self._persisted: Set[str] = set()
        for key, values in (messages or {}).items():
            for value in values:
                self.put(key, value)

    # =========================================================================
    # MUTATION
    # =========================================================================

    def put(self, key: str, message: str) -> "FlashStore":
        """Append a message under key. Returns self for chaining."""
        self._messages.setdefault(key, []).append(str(message))
        return self

    def pop_all(self, key: str) -> List[str]:
        """
        Return every message for key and remove the key.

        A popped key is also no longer persisted.
        """
        self._persisted.discard(key)
        return self._messages.pop(key, [])

    def persist(self, key: str) -> "FlashStore":
        """
        Keep key's messages for exactly one more request.

        Marking a key with no messages does nothing.
        """
        if key in self._messages:
            self._persisted.add(key)
        return self

    def persist_all(self) -> "FlashStore":
        self._persisted.update(self._messages)
        return self

    def clear(self) -> "FlashStore":
        """Remove all keys, persisted or not."""
        self._messages.clear()
        self._persisted.clear()
        return self

    # =========================================================================
    # READS (non-destructive)
    # =========================================================================

    def get(self, key: str) -> Optional[str]:
        """First message for key, or None."""
        values = self._messages.get(key)
        return values[0] if values else None

    def get_all(self, key: str) -> List[str]:
        """All messages for key in insertion order (a copy)."""
        return list(self._messages.get(key, ()))

    def is_persisted(self, key: str) -> bool:
        return key in self._persisted and key in self._messages

    def keys(self) -> List[str]:
        return list(self._messages)

    def to_dict(self) -> Dict[str, List[str]]:
        return {key: list(values) for key, values in self._messages.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._messages

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def __repr__(self) -> str:
        return f"FlashStore({self._messages!r}, persisted={sorted(self._persisted)!r})"

    # =========================================================================
    # SESSION SERIALIZATION
    # =========================================================================

    @classmethod
    def from_session(cls, session: MutableMapping[str, Any]) -> "FlashStore":
        """
        Hydrate a store from the session, consuming the session entry.

        Malformed entries (anything but a mapping of string lists) are
        dropped rather than trusted.
        """
        raw = session.pop(SESSION_KEY, None)
        store = cls()
        if not isinstance(raw, dict):
            return store
        for key, values in raw.items():
            if isinstance(key, str) and isinstance(values, list):
                for value in values:
                    if isinstance(value, str):
                        store.put(key, value)
        return store

    def to_session(self, session: MutableMapping[str, Any]) -> None:
        """Write persisted messages into the session (or remove the entry)."""
        payload = {
            key: list(self._messages[key])
            for key in self._messages
            if key in self._persisted
        }
        if payload:
            session[SESSION_KEY] = payload
        else:
            session.pop(SESSION_KEY, None)
