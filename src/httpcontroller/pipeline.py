"""
=============================================================================
STAGE PIPELINE
=============================================================================

A controller's request handling is an ordered list of stages. Each stage
takes the Context and returns it (possibly changed). Action dispatch and
automatic rendering are stages like any other, so they can be ordered,
and made conditional, the same way.

=============================================================================
EXECUTION MODEL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │              PIPELINE RUN FOR ACTION "show"                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ctx ──► AcceptFormats ──► FetchFlash ──► Dispatch ──► AutoRender   │
    │           always            always        always       only(index)  │
    │             │                 │             │               │        │
    │             ▼                 ▼             ▼               ▼        │
    │            run               run           run            SKIPPED    │
    │                                             │                        │
    │                          action rendered ───┘                        │
    │                          ctx.committed ──► stop                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

For every registered entry, in registration order:

    1. cancelled?   ──► raise RequestCancelledError (nothing committed)
    2. predicate(action) false ──► skip; the stage is never called
    3. call the stage
    4. halted or committed ──► stop, later stages don't run

Unlike nested middleware there is no "after" phase. Work that must happen
right before the response goes out registers a before-commit callback on
the Context instead.

Exceptions raised by a stage propagate to the caller untouched; nothing
is retried, because the Context may already be partly mutated.

=============================================================================
SHARING
=============================================================================

A pipeline is built once, when the controller class is defined, then
frozen. From that point it is read-only and is shared by every request
routed to the controller, on any worker thread, without locking.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple
import logging

from .context import Context
from .errors import PipelineFrozenError, RequestCancelledError


logger = logging.getLogger(__name__)


# A predicate decides, from the resolved action name, whether a stage runs.
Predicate = Callable[[str], bool]


class Stage(ABC):
    """
    Abstract base class for pipeline stages.

        class RequireUser(Stage):
            def __call__(self, ctx: Context) -> Context:
                if "user_id" not in ctx.session:
                    redirect(ctx, to="/login")   # commits, pipeline stops
                return ctx

    A stage returns the Context it was given (returning None means the
    same thing). To stop the pipeline without producing a response, call
    ctx.halt().
    """

    @abstractmethod
    def __call__(self, context: Context) -> Optional[Context]:
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__


class FunctionStage(Stage):
    """Wraps a plain function as a stage."""

    def __init__(self, func: Callable[[Context], Optional[Context]], name: Optional[str] = None):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, context: Context) -> Optional[Context]:
        return self._func(context)

    @property
    def name(self) -> str:
        return self._name


def stage(func: Callable[[Context], Optional[Context]]) -> FunctionStage:
    """
    Decorator turning a function into a stage.

        @stage
        def put_locale(ctx):
            ctx.assign(locale=ctx.get_query("locale", "en"))
    """
    return FunctionStage(func)


# =============================================================================
# PREDICATES
# =============================================================================

def always(action: str) -> bool:
    return True


class ActionPredicate:
    """
    Predicate over a fixed set of action names.

    Keeps the names around so a controller can check, when it is defined,
    that every name refers to an action it actually has.
    """

    def __init__(self, actions: Iterable[str], include: bool):
        self.actions = frozenset(actions)
        self.include = include

    def __call__(self, action: str) -> bool:
        return (action in self.actions) == self.include

    def __repr__(self) -> str:
        kind = "only" if self.include else "except_actions"
        return f"{kind}({', '.join(sorted(self.actions))})"


def only(*actions: str) -> ActionPredicate:
    """Run the stage for these actions only."""
    return ActionPredicate(actions, include=True)


def except_actions(*actions: str) -> ActionPredicate:
    """Run the stage for every action but these."""
    return ActionPredicate(actions, include=False)


# =============================================================================
# REGISTRATION
# =============================================================================

@dataclass(frozen=True)
class StageEntry:
    """A stage together with its inclusion predicate."""

    stage: Stage
    predicate: Predicate = always

    @property
    def name(self) -> str:
        return self.stage.name


def _as_stage(candidate) -> Stage:
    if isinstance(candidate, Stage):
        return candidate
    if callable(candidate):
        return FunctionStage(candidate)
    raise TypeError(f"Not a stage: {candidate!r}")


def plug(
    stage: Stage,
    only: Optional[Iterable[str]] = None,
    except_: Optional[Iterable[str]] = None,
    when: Optional[Predicate] = None,
) -> StageEntry:
    """
    Build a pipeline entry.

    At most one of only / except_ / when may be given:

        plug(AutoRender(), only=["index"])
        plug(LoadItem(), except_=["index", "new"])
        plug(Audit(), when=lambda action: action.startswith("admin_"))
    """
    given = [option for option in (only, except_, when) if option is not None]
    if len(given) > 1:
        raise TypeError("plug() accepts only one of only=, except_=, when=")

    if only is not None:
        predicate: Predicate = ActionPredicate(_names(only), include=True)
    elif except_ is not None:
        predicate = ActionPredicate(_names(except_), include=False)
    else:
        predicate = when or always

    return StageEntry(_as_stage(stage), predicate)


def _names(actions) -> Tuple[str, ...]:
    # A bare string is one action, not a sequence of characters.
    if isinstance(actions, str):
        return (actions,)
    return tuple(actions)


class Pipeline:
    """
    Ordered, conditional chain of stages.

        pipeline = Pipeline()
        pipeline.register(AcceptFormats("html", "text"))
        pipeline.register(Dispatch())
        pipeline.register(AutoRender(), only("index"))
        pipeline.freeze()

        pipeline.run(ctx, "index")
    """

    def __init__(self, entries: Iterable[StageEntry] = ()):
        self._entries: List[StageEntry] = []
        self._frozen = False
        for entry in entries:
            self._append(entry)

    def _append(self, entry: StageEntry) -> None:
        if self._frozen:
            raise PipelineFrozenError(f"Cannot register {entry.name}: pipeline is frozen")
        self._entries.append(entry)
        logger.debug(f"Registered stage: {entry.name} ({entry.predicate!r})")

    def register(self, stage: Stage, predicate: Predicate = always) -> "Pipeline":
        """
        Append a stage with an optional inclusion predicate.

        Returns:
            Self for chaining
        """
        self._append(StageEntry(_as_stage(stage), predicate))
        return self

    def add(self, entry: StageEntry) -> "Pipeline":
        """Append a prebuilt entry (see plug())."""
        self._append(entry)
        return self

    def use(self, *stages) -> "Pipeline":
        """Append several stages or entries at once."""
        for item in stages:
            if isinstance(item, StageEntry):
                self.add(item)
            else:
                self.register(item)
        return self

    def freeze(self) -> "Pipeline":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def run(self, context: Context, action: str) -> Context:
        """
        Run the stages for action against context.

        Returns:
            The context after the last stage that ran

        Raises:
            RequestCancelledError: If the request was cancelled between stages
        """
        for entry in self._entries:
            if context.cancelled:
                logger.info(f"Request cancelled before {entry.name}: {context.method} {context.path}")
                raise RequestCancelledError(f"Request cancelled before stage {entry.name}")

            if not entry.predicate(action):
                logger.debug(f"Skipping {entry.name} for action {action!r}")
                continue

            logger.debug(f"Running {entry.name} for action {action!r}")
            result = entry.stage(context)
            if result is not None:
                context = result

            if context.halted or context.committed:
                logger.debug(
                    f"Pipeline stopped after {entry.name} "
                    f"({'halted' if context.halted else 'committed'})"
                )
                break

        return context

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[StageEntry]:
        return iter(self._entries)


def run(pipeline: Pipeline, context: Context, action: str) -> Context:
    """Module-level form of Pipeline.run()."""
    return pipeline.run(context, action)
