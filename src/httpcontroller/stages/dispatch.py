"""Action dispatch: the stage that calls the controller action."""

import logging

from ..context import Context
from ..pipeline import Stage


logger = logging.getLogger(__name__)


class Dispatch(Stage):
    """
    Call the action named by context.action on context.controller.

    Actions take (self, ctx, params). Whatever they return is ignored unless
    it is a Context, which then replaces the current one. A Controller
    appends this stage to its pipeline when it was not listed explicitly.
    """

    def __call__(self, context: Context) -> Context:
        controller = context.controller
        if controller is None:
            raise RuntimeError("Dispatch needs context.controller to be set")

        handler = controller.action_for(context.action)
        instance = context.private.get("controller_instance")
        if instance is None:
            instance = controller()
            context.private["controller_instance"] = instance

        logger.debug(f"Dispatching {controller.__name__}.{context.action}")
        result = handler(instance, context, context.params)
        return result if isinstance(result, Context) else context
