"""Chain abstraction consumed by the weaver."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .steps import HandlerStep, Step
from .utils import resolve_type_hints

if TYPE_CHECKING:
    from collections.abc import Iterable


@runtime_checkable
class IChain(Protocol):
    """Protocol for one processing pipeline of a message type.

    Handler discovery produces chains; weaving only mutates their
    ``middleware`` (pre-steps) and ``postprocessors`` (post-steps) lists.
    """

    @property
    def input_type(self) -> type[Any] | None:
        """The message type the chain handles, if any."""
        ...

    middleware: list[Step]
    postprocessors: list[Step]


@dataclass(eq=False)
class HandlerChain:
    """Default :class:`IChain` implementation.

    ``handler_steps`` hold the primary handling call(s); woven pre-steps
    run before them and woven post-steps after them.
    """

    input_type: type[Any] | None = None
    handler_steps: list[Step] = field(default_factory=list)
    middleware: list[Step] = field(default_factory=list)
    postprocessors: list[Step] = field(default_factory=list)
    name: str | None = None

    @classmethod
    def for_handler(
        cls, handler_cls: type[Any], method_name: str = "handle"
    ) -> HandlerChain:
        """Build a chain for *handler_cls*.

        The input type is the annotation of the first parameter of
        ``handler_cls.<method_name>`` after ``self``.
        """
        method = getattr(handler_cls, method_name)
        hints = resolve_type_hints(method)
        params = list(inspect.signature(method).parameters.values())
        if params and params[0].name in ("self", "cls"):
            params = params[1:]

        input_type: type[Any] | None = None
        if params:
            candidate = hints.get(params[0].name)
            if isinstance(candidate, type):
                input_type = candidate

        return cls(
            input_type=input_type,
            handler_steps=[HandlerStep(handler_cls, method_name)],
            name=handler_cls.__qualname__,
        )

    def all_steps(self) -> list[Step]:
        """Top-level steps in execution order."""
        return [*self.middleware, *self.handler_steps, *self.postprocessors]

    def __repr__(self) -> str:
        input_name = self.input_type.__qualname__ if self.input_type else None
        return (
            f"HandlerChain(name={self.name!r}, input_type={input_name}, "
            f"middleware={len(self.middleware)}, "
            f"postprocessors={len(self.postprocessors)})"
        )


def _render(steps: Iterable[Step], depth: int, lines: list[str]) -> None:
    indent = "    " * depth
    for step in steps:
        lines.append(f"{indent}{step.describe()}")
        _render(step.children(), depth + 1, lines)


def render_steps(chain: IChain) -> str:
    """Return an indented outline of *chain*'s steps, for logs and debugging."""
    lines: list[str] = []
    _render(chain.middleware, 0, lines)
    handler_steps = getattr(chain, "handler_steps", None)
    if handler_steps:
        _render(handler_steps, 0, lines)
    else:
        lines.append("# handler")
    _render(chain.postprocessors, 0, lines)
    return "\n".join(lines)


__all__ = ["HandlerChain", "IChain", "render_steps"]
