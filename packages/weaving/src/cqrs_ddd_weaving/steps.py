"""Step descriptors produced by weaving.

Steps are pure data: they describe *what* the execution engine must run
around a chain's handler, never run anything themselves. A fresh set of
steps is built for every chain.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .utils import resolve_type_hints

if TYPE_CHECKING:
    from .classifier import LifecycleMethod


def _type_name(tp: Any) -> str:
    return getattr(tp, "__qualname__", None) or repr(tp)


class ConstructionMode(str, Enum):
    """How the execution engine should scope a constructed middleware."""

    NEW = "new"
    """Plain construction, no release on exit."""

    SCOPED = "scoped"
    """Context-manager construction, released on every exit path."""


class Step:
    """Base class for all woven steps."""

    def describe(self) -> str:
        """One-line human readable description."""
        return type(self).__name__

    def children(self) -> list[Step]:
        """Nested steps, in execution order."""
        return []


@dataclass(eq=False)
class CommentStep(Step):
    """No-op placeholder carrying a comment."""

    text: str

    def describe(self) -> str:
        return f"# {self.text}"


@dataclass(eq=False)
class ConstructStep(Step):
    """Build one middleware instance for the duration of the chain.

    ``dependencies`` maps constructor parameter names to their annotated
    types; the container behind the execution engine supplies them.
    """

    middleware_type: type[Any]
    mode: ConstructionMode = ConstructionMode.NEW
    dependencies: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_type(
        cls, middleware_type: type[Any], mode: ConstructionMode = ConstructionMode.NEW
    ) -> ConstructStep:
        """Create a construct step, capturing the constructor's dependencies."""
        dependencies: dict[str, Any] = {}
        try:
            signature = inspect.signature(middleware_type)
        except (TypeError, ValueError):
            return cls(middleware_type=middleware_type, mode=mode)
        init = middleware_type.__init__
        hints = resolve_type_hints(init) if inspect.isfunction(init) else {}
        for name, param in signature.parameters.items():
            if param.kind in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ):
                continue
            # unresolved names keep their raw annotation
            dependencies[name] = hints.get(name, param.annotation)
        return cls(middleware_type=middleware_type, mode=mode, dependencies=dependencies)

    def describe(self) -> str:
        verb = "with" if self.mode is ConstructionMode.SCOPED else "new"
        return f"{verb} {_type_name(self.middleware_type)}()"


@dataclass(eq=False)
class InvokeStep(Step):
    """Call one lifecycle method of a middleware.

    When the method was matched by message type, ``message_type`` is the
    chain input type the message argument is bound to. ``continuation`` is
    an optional check the execution engine runs right after the call,
    inside any protected region that wraps it.
    """

    method: LifecycleMethod
    message_type: type[Any] | None = None
    continuation: Step | None = None

    @property
    def middleware_type(self) -> type[Any]:
        return self.method.owner

    @property
    def creates(self) -> tuple[Any, ...]:
        return self.method.creates

    @property
    def is_static(self) -> bool:
        return self.method.is_static

    def describe(self) -> str:
        prefix = "await " if self.method.is_async else ""
        text = f"{prefix}{self.method}"
        if self.creates:
            created = ", ".join(_type_name(tp) for tp in self.creates)
            text = f"{created} = {text}"
        return text

    def children(self) -> list[Step]:
        return [self.continuation] if self.continuation is not None else []


@dataclass(eq=False)
class ProtectedStep(Step):
    """Run ``inner`` and then always run ``cleanup`` (try/finally)."""

    inner: Step
    cleanup: list[Step] = field(default_factory=list)

    def describe(self) -> str:
        return "try/finally"

    def children(self) -> list[Step]:
        return [self.inner, *self.cleanup]


@dataclass(eq=False)
class ContinuationStep(Step):
    """Short-circuit check on the value produced by ``call``.

    The execution engine stops the chain when the produced value of
    ``value_type`` equals ``stop_value``.
    """

    call: InvokeStep
    value_type: Any
    stop_value: Any

    def describe(self) -> str:
        return (
            f"if {_type_name(self.value_type)} == {self.stop_value!r}: "
            "stop the chain"
        )


@dataclass(eq=False)
class HandlerStep(Step):
    """The chain's primary handling call."""

    handler_type: type[Any]
    method_name: str = "handle"

    def describe(self) -> str:
        return f"{_type_name(self.handler_type)}.{self.method_name}()"


__all__ = [
    "CommentStep",
    "ConstructStep",
    "ConstructionMode",
    "ContinuationStep",
    "HandlerStep",
    "InvokeStep",
    "ProtectedStep",
    "Step",
]
