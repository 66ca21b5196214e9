"""Render the action's template when the action left the response open."""

from typing import Optional
import logging

from ..context import Context
from ..pipeline import Stage
from ..render import render


logger = logging.getLogger(__name__)


class AutoRender(Stage):
    """
    Place after Dispatch to let actions only assign values:

        stages = [Dispatch(), AutoRender()]

        @action
        def index(self, ctx, params):
            ctx.assign(items=load_items())

    Halted or committed contexts are left alone.
    """

    def __init__(self, template: Optional[str] = None):
        self.template = template

    def __call__(self, context: Context) -> Context:
        if context.committed or context.halted:
            return context
        logger.debug(f"Auto-rendering {self.template or context.action!r}")
        render(context, self.template)
        return context
