"""
Session and flash hydration stages.

FetchSession loads ctx.session from a SessionStore; FetchFlash builds
ctx.flash from it. Both register before-commit callbacks that write the
state back just before the response goes out. Callbacks run in reverse
registration order, so with the usual order

    FetchSession(store), FetchFlash()

the flash is serialized into the session first and the session is saved
afterwards.
"""

from typing import Optional
import logging

from ..context import Context
from ..flash import FlashStore
from ..http.status_codes import resolve_status
from ..pipeline import Stage
from ..session import SessionStore


logger = logging.getLogger(__name__)


class FetchSession(Stage):
    """Load the session and save it at commit."""

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store

    def _store(self, context: Context) -> SessionStore:
        store = self.store or context.private.get("session_store")
        if store is None:
            raise RuntimeError("FetchSession needs a SessionStore (argument or endpoint)")
        return store

    def __call__(self, context: Context) -> Context:
        store = self._store(context)
        context.session = store.load(context)
        context.private["session_fetched"] = True

        def save_session(ctx: Context) -> None:
            store.save(ctx, ctx.session)

        context.register_before_commit(save_session)
        return context


class FetchFlash(Stage):
    """
    Hydrate ctx.flash from the session.

    At commit, persisted keys are written back. With
    config.persist_flash_on_redirect, a 3xx response persists every key.
    """

    def __call__(self, context: Context) -> Context:
        if not context.private.get("session_fetched"):
            logger.warning("FetchFlash ran before FetchSession; flash will not survive the request")

        context.flash = FlashStore.from_session(context.session)

        def write_flash(ctx: Context) -> None:
            config = ctx.private.get("config")
            if config is not None and config.persist_flash_on_redirect and _is_redirect(ctx):
                ctx.flash.persist_all()
            ctx.flash.to_session(ctx.session)

        context.register_before_commit(write_flash)
        return context


def _is_redirect(context: Context) -> bool:
    if context.status is None:
        return False
    try:
        return resolve_status(context.status).is_redirect
    except ValueError:
        return False
