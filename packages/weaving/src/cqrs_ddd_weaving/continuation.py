"""Continuation hooks — let the execution engine short-circuit a chain.

After each before call the weaver asks the configured
:class:`GenerationRules` whether the call's outcome needs a follow-up
check. Strategies decide from the call's declared produced values.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .steps import ContinuationStep

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .steps import InvokeStep, Step

logger = logging.getLogger("cqrs_ddd.weaving.continuation")


class HandlerContinuation(str, Enum):
    """Value a before call may return to stop or continue the chain."""

    CONTINUE = "continue"
    STOP = "stop"


@runtime_checkable
class IContinuationStrategy(Protocol):
    """Protocol for execution-engine continuation rules."""

    def find_continuation(self, call: InvokeStep) -> Step | None:
        """Return a step to run right after *call*, or ``None``."""
        ...


class HandlerContinuationStrategy:
    """Stop the chain when a call returns ``HandlerContinuation.STOP``."""

    def find_continuation(self, call: InvokeStep) -> Step | None:
        if HandlerContinuation in call.creates:
            return ContinuationStep(
                call=call,
                value_type=HandlerContinuation,
                stop_value=HandlerContinuation.STOP,
            )
        return None


class GenerationRules:
    """Ordered set of continuation strategies; first match wins.

    Defaults to a single :class:`HandlerContinuationStrategy`. Pass an
    empty iterable to disable continuation checks entirely.
    """

    def __init__(self, strategies: Iterable[IContinuationStrategy] | None = None) -> None:
        if strategies is None:
            strategies = [HandlerContinuationStrategy()]
        self._strategies: list[IContinuationStrategy] = list(strategies)

    def add_strategy(self, strategy: IContinuationStrategy) -> None:
        """Append *strategy*; it is consulted after the existing ones."""
        self._strategies.append(strategy)

    @property
    def strategies(self) -> list[IContinuationStrategy]:
        return list(self._strategies)

    def find_continuation(self, call: InvokeStep) -> Step | None:
        for strategy in self._strategies:
            step = strategy.find_continuation(call)
            if step is not None:
                logger.debug(
                    "Continuation for %s supplied by %s",
                    call.method,
                    type(strategy).__name__,
                )
                return step
        return None


__all__ = [
    "GenerationRules",
    "HandlerContinuation",
    "HandlerContinuationStrategy",
    "IContinuationStrategy",
]
