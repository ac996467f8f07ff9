"""MiddlewareRegistration — one validated middleware class and its step builders."""

from __future__ import annotations

import contextlib
import inspect
import logging
from typing import TYPE_CHECKING, Any

from typing_extensions import get_overloads

from .classifier import classify_type
from .conventions import DEFAULT_CONVENTIONS
from .exceptions import InvalidMiddlewareError
from .guards import assert_no_duplicate_results
from .markers import LifecycleRole
from .steps import (
    CommentStep,
    ConstructionMode,
    ConstructStep,
    InvokeStep,
    ProtectedStep,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .chain import IChain
    from .classifier import LifecycleMethod
    from .continuation import GenerationRules
    from .conventions import LifecycleConventions
    from .steps import Step

logger = logging.getLogger("cqrs_ddd.weaving.registration")


def _always(_chain: IChain) -> bool:
    return True


def _is_public(cls: type[Any]) -> bool:
    return not any(
        part.startswith("_") for part in cls.__qualname__.split(".") if part != "<locals>"
    )


def _constructor_count(cls: type[Any]) -> int:
    if inspect.isabstract(cls) or getattr(cls, "_is_protocol", False):
        return 0
    init = cls.__init__
    if not inspect.isfunction(init):
        return 1  # inherited from a builtin
    overloads = get_overloads(init)
    return len(overloads) if overloads else 1


def _is_disposable(cls: type[Any]) -> bool:
    return issubclass(
        cls, (contextlib.AbstractContextManager, contextlib.AbstractAsyncContextManager)
    )


class MiddlewareRegistration:
    """A middleware class validated for weaving.

    Parameters
    ----------
    middleware_type:
        The middleware class. It needs no base class; its lifecycle methods
        are discovered by name or by marker decorator.
    filter:
        Predicate over a chain; the middleware only applies to chains it
        accepts. Defaults to always-true.
    match_by_message_type:
        When ``True``, a lifecycle method only applies to chains whose input
        type is a subclass of the method's annotated message argument.
    priority:
        Lower values are woven first (outermost). Equal priorities keep
        registration order.
    conventions:
        Allow-listed lifecycle method names.

    Raises
    ------
    InvalidMiddlewareError
        If the class is private, if an instance-based class does not have
        exactly one constructor, or if no lifecycle method is found.
    """

    def __init__(
        self,
        middleware_type: type[Any],
        filter: Callable[[IChain], bool] | None = None,  # noqa: A002
        *,
        match_by_message_type: bool = False,
        priority: int = 0,
        conventions: LifecycleConventions = DEFAULT_CONVENTIONS,
    ) -> None:
        if not inspect.isclass(middleware_type):
            msg = f"Middleware must be a class, got {middleware_type!r}"
            raise InvalidMiddlewareError(msg)
        if not _is_public(middleware_type):
            raise InvalidMiddlewareError("middleware classes must be public", middleware_type)

        methods = classify_type(middleware_type, conventions)
        self._befores: tuple[LifecycleMethod, ...] = methods[LifecycleRole.BEFORE]
        self._afters: tuple[LifecycleMethod, ...] = methods[LifecycleRole.AFTER]
        self._finals: tuple[LifecycleMethod, ...] = methods[LifecycleRole.FINALLY]
        all_methods = (*self._befores, *self._afters, *self._finals)

        self.is_static = bool(all_methods) and all(m.is_static for m in all_methods)
        if not self.is_static:
            count = _constructor_count(middleware_type)
            if count != 1:
                raise InvalidMiddlewareError(
                    f"instance middleware must expose exactly one constructor, "
                    f"found {count}",
                    middleware_type,
                )

        if not all_methods:
            raise InvalidMiddlewareError(
                "no before, after or finally methods found", middleware_type
            )

        self.middleware_type = middleware_type
        self.filter: Callable[[IChain], bool] = filter or _always
        self.match_by_message_type = match_by_message_type
        self.priority = priority

    # ── Introspection ────────────────────────────────────────────

    @property
    def befores(self) -> tuple[LifecycleMethod, ...]:
        return self._befores

    @property
    def afters(self) -> tuple[LifecycleMethod, ...]:
        return self._afters

    @property
    def finals(self) -> tuple[LifecycleMethod, ...]:
        return self._finals

    def applies_to(self, chain: IChain) -> bool:
        return bool(self.filter(chain))

    def __repr__(self) -> str:
        return (
            f"MiddlewareRegistration({self.middleware_type.__qualname__}, "
            f"befores={len(self._befores)}, afters={len(self._afters)}, "
            f"finals={len(self._finals)}, priority={self.priority})"
        )

    # ── Step building ────────────────────────────────────────────

    def build_before_steps(
        self, chain: IChain, rules: GenerationRules, *, applies: bool | None = None
    ) -> list[Step]:
        """Steps to prepend to *chain*, construction first.

        *applies* is the already evaluated filter result for *chain*; the
        filter is called when it is omitted.
        """
        if applies is None:
            applies = self.applies_to(chain)
        if not applies:
            return []
        steps = self._build_befores(chain, rules)
        if steps and not self.is_static:
            mode = (
                ConstructionMode.SCOPED
                if _is_disposable(self.middleware_type)
                else ConstructionMode.NEW
            )
            steps.insert(0, ConstructStep.for_type(self.middleware_type, mode))
        return steps

    def build_after_steps(
        self, chain: IChain, *, applies: bool | None = None
    ) -> list[Step]:
        """Steps to append to *chain*.

        A construct step is only added when none for this middleware exists
        among the chain's pre-steps. *applies* works as in
        :meth:`build_before_steps`.
        """
        if applies is None:
            applies = self.applies_to(chain)
        if not applies:
            return []
        steps: list[Step] = list(self._matching_calls(chain, self._afters))
        if steps and not self.is_static:
            constructed = any(
                isinstance(step, ConstructStep)
                and step.middleware_type is self.middleware_type
                for step in chain.middleware
            )
            if not constructed:
                steps.insert(0, ConstructStep.for_type(self.middleware_type))
        return steps

    def _call_for(self, chain: IChain, method: LifecycleMethod) -> InvokeStep | None:
        if not self.match_by_message_type:
            return InvokeStep(method)

        input_type = chain.input_type
        if (
            method.message_type is not None
            and input_type is not None
            and issubclass(input_type, method.message_type)
        ):
            return InvokeStep(method, message_type=input_type)

        logger.debug(
            "Skipping %s for %r: message type %s does not accept %s",
            method,
            chain,
            getattr(method.message_type, "__qualname__", None),
            getattr(input_type, "__qualname__", None),
        )
        return None

    def _matching_calls(
        self, chain: IChain, methods: Sequence[LifecycleMethod]
    ) -> list[InvokeStep]:
        calls = (self._call_for(chain, method) for method in methods)
        return [call for call in calls if call is not None]

    def _build_befores(self, chain: IChain, rules: GenerationRules) -> list[Step]:
        """Before steps without construction.

        A finally-only middleware wraps the chain in an empty protected
        region. When message-type matching leaves it no finally method for
        this chain it contributes nothing at all: no protected region and
        no construction.
        """
        if not self._befores and self._finals:
            finals: list[Step] = list(self._matching_calls(chain, self._finals))
            if not finals:
                return []
            return [ProtectedStep(CommentStep("Wrapped by middleware"), finals)]

        steps: list[Step] = []
        for call in self._matching_calls(chain, self._befores):
            assert_no_duplicate_results(call)
            steps.extend(self._wrap_before(call, rules))
        return steps

    def _wrap_before(self, call: InvokeStep, rules: GenerationRules) -> list[Step]:
        continuation = rules.find_continuation(call)
        if self._finals:
            call.continuation = continuation
            cleanup: list[Step] = [InvokeStep(final) for final in self._finals]
            return [ProtectedStep(call, cleanup)]

        if continuation is None:
            return [call]
        return [call, continuation]


__all__ = ["MiddlewareRegistration"]
