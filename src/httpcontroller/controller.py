"""
=============================================================================
CONTROLLERS
=============================================================================

A controller groups actions with the pipeline that runs in front of them.

    class PageController(Controller):
        accepted_formats = ("html", "text")
        stages = [
            AcceptFormats(),
            FetchSession(),
            FetchFlash(),
            plug(require_user, except_=["index"]),
            Dispatch(),
        ]

        @action
        def index(self, ctx, params):
            render(ctx, assigns={"title": "Home"})

        @action
        def show(self, ctx, params):
            ...

=============================================================================
DEFINITION TIME
=============================================================================

Everything that can be checked without a request is checked when the class
statement runs, and raises ControllerDefinitionError:

    - accepted_formats names only registered formats
    - only(...) / except_actions(...) name actions the class has
    - every entry in stages is a Stage, a StageEntry or a callable

Dispatch is appended when it is missing, and the pipeline is frozen. A
malformed controller therefore fails at import, never halfway through a
request.

=============================================================================
REQUEST TIME
=============================================================================

    PageController.call(ctx, "show")
        │
        ├─ "show" not an action?  ──► UnknownActionError (404)
        ├─ ctx.controller, ctx.action, layout, accepted_formats
        └─ pipeline.run(ctx, "show")

=============================================================================
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging
import re

from .context import Context
from .errors import ControllerDefinitionError, UnknownActionError
from .http.mime_types import is_known_format
from .pipeline import ActionPredicate, Pipeline, StageEntry, _as_stage
from .stages.dispatch import Dispatch


logger = logging.getLogger(__name__)


ACTION_ATTR = "__action_name__"


def action(func: Optional[Callable] = None, *, name: Optional[str] = None):
    """
    Mark a method as a controller action.

        @action
        def index(self, ctx, params): ...

        @action(name="new")
        def new_item(self, ctx, params): ...
    """
    def mark(method: Callable) -> Callable:
        setattr(method, ACTION_ATTR, name or method.__name__)
        return method

    if func is not None:
        return mark(func)
    return mark


def _default_namespace(class_name: str) -> str:
    # PageController -> page, AdminUserController -> admin_user
    base = class_name[: -len("Controller")] if class_name.endswith("Controller") else class_name
    return re.sub(r"(?<!^)(?=[A-Z])", "_", base).lower()


class Controller:
    """Base class for controllers; see the module docstring."""

    accepted_formats: Optional[Tuple[str, ...]] = None
    """Formats this controller serves; None means the endpoint's config."""

    layout: Any = None
    """Layout for html responses: a name, False for none, None for the default."""

    namespace: str = ""
    """Template namespace; derived from the class name unless set."""

    stages: Sequence[Any] = ()

    pipeline: Pipeline = Pipeline().freeze()
    _actions: Dict[str, Callable] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        if "namespace" not in cls.__dict__:
            cls.namespace = _default_namespace(cls.__name__)

        cls._actions = cls._collect_actions()
        cls._check_formats()
        cls.pipeline = cls._build_pipeline()

        logger.debug(
            f"Defined {cls.__name__}: actions={list(cls._actions)} "
            f"stages={cls.pipeline.names()}"
        )

    # =========================================================================
    # DEFINITION
    # =========================================================================

    @classmethod
    def _collect_actions(cls) -> Dict[str, Callable]:
        actions: Dict[str, Callable] = {}
        # Walk base classes first so subclasses can override inherited actions.
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                name = getattr(value, ACTION_ATTR, None)
                if name is not None:
                    actions[name] = value
        return actions

    @classmethod
    def _check_formats(cls) -> None:
        if cls.accepted_formats is None:
            return
        if isinstance(cls.accepted_formats, str):
            cls.accepted_formats = (cls.accepted_formats,)
        cls.accepted_formats = tuple(cls.accepted_formats)
        unknown = [f for f in cls.accepted_formats if not is_known_format(f)]
        if unknown:
            raise ControllerDefinitionError(
                f"{cls.__name__}.accepted_formats has unknown formats: {unknown}"
            )

    @classmethod
    def _build_pipeline(cls) -> Pipeline:
        pipeline = Pipeline()
        has_dispatch = False

        for item in cls.stages:
            try:
                entry = item if isinstance(item, StageEntry) else StageEntry(_as_stage(item))
            except TypeError as e:
                raise ControllerDefinitionError(f"{cls.__name__}.stages: {e}") from e

            predicate = entry.predicate
            if isinstance(predicate, ActionPredicate):
                unknown = sorted(predicate.actions - set(cls._actions))
                if unknown:
                    raise ControllerDefinitionError(
                        f"{cls.__name__}: {entry.name} is restricted to unknown "
                        f"action(s) {unknown}; actions are {sorted(cls._actions)}"
                    )

            if isinstance(entry.stage, Dispatch):
                has_dispatch = True
            pipeline.add(entry)

        if not has_dispatch:
            pipeline.register(Dispatch())

        return pipeline.freeze()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    @classmethod
    def action_names(cls) -> List[str]:
        return list(cls._actions)

    @classmethod
    def action_for(cls, name: Optional[str]) -> Callable:
        """
        Look up the function implementing an action.

        Raises:
            UnknownActionError: If the controller has no such action
        """
        try:
            return cls._actions[name]
        except KeyError:
            raise UnknownActionError(f"{cls.__name__} has no action {name!r}") from None

    @classmethod
    def call(cls, context: Context, action: str) -> Context:
        """
        Run the pipeline for action.

        Returns:
            The context after the pipeline stopped (committed, halted, or
            out of stages)

        Raises:
            UnknownActionError: Before any stage runs, for unknown actions
        """
        cls.action_for(action)

        context.controller = cls
        context.action = action
        if cls.layout is not None and "layout" not in context.private:
            context.private["layout"] = cls.layout
        if cls.accepted_formats is not None and context.accepted_formats is None:
            context.accepted_formats = cls.accepted_formats
        context.private["controller_instance"] = cls()

        return cls.pipeline.run(context, action)
