"""MiddlewarePolicy — registers middleware classes and weaves them into chains."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .chain import render_steps
from .continuation import GenerationRules
from .conventions import DEFAULT_CONVENTIONS
from .guards import assert_input_not_shadowed
from .markers import LifecycleRole
from .registration import MiddlewareRegistration
from .steps import InvokeStep

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from .chain import IChain
    from .conventions import LifecycleConventions
    from .steps import Step

logger = logging.getLogger("cqrs_ddd.weaving")


def _before_calls(steps: Iterable[Step]) -> list[InvokeStep]:
    calls: list[InvokeStep] = []
    for step in steps:
        if isinstance(step, InvokeStep) and step.method.role is LifecycleRole.BEFORE:
            calls.append(step)
        calls.extend(_before_calls(step.children()))
    return calls


def weave_chain(
    chain: IChain,
    registrations: Sequence[MiddlewareRegistration],
    rules: GenerationRules | None = None,
) -> list[MiddlewareRegistration]:
    """Weave every applicable middleware of *registrations* into *chain*.

    Pre-steps are inserted ahead of the chain's existing middleware in
    registration order; post-steps are appended in **reverse** registration
    order so the last middleware opened is the first one closed.

    Each registration's filter is evaluated once. Returns the
    registrations the filter accepted, in registration order.

    Weaving is not idempotent: run it exactly once per chain.

    Raises:
        InvalidMiddlewareError: if a before call produces two values of one
            type or produces the chain's input type. The chain is left
            untouched in both cases.
    """
    rules = rules if rules is not None else GenerationRules()
    applicable = [r for r in registrations if r.applies_to(chain)]

    befores: list[Step] = []
    for registration in applicable:
        befores.extend(registration.build_before_steps(chain, rules, applies=True))

    assert_input_not_shadowed(chain.input_type, _before_calls(befores))

    chain.middleware[0:0] = befores

    afters: list[Step] = []
    for registration in reversed(applicable):
        afters.extend(registration.build_after_steps(chain, applies=True))

    chain.postprocessors.extend(afters)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Woven %d pre-step(s) and %d post-step(s) into %r:\n%s",
            len(befores),
            len(afters),
            chain,
            render_steps(chain),
        )
    return applicable


class MiddlewarePolicy:
    """Ordered set of middleware registrations applied to handler chains.

    Registration order matters: earlier middleware wraps later middleware.
    A ``priority`` can move a registration ahead (lower) or behind (higher);
    equal priorities keep registration order.

    Usage::

        policy = MiddlewarePolicy()
        policy.register(StopwatchMiddleware)
        policy.register(
            TenantMiddleware,
            filter=lambda chain: chain.input_type is not None,
        )

        @policy.add(match_by_message_type=True)
        class AccountLoader:
            def load(self, command: AccountCommand) -> Account: ...

        policy.apply(chains)
    """

    def __init__(
        self,
        *,
        conventions: LifecycleConventions = DEFAULT_CONVENTIONS,
        match_by_message_type: bool = False,
    ) -> None:
        self._conventions = conventions
        self._match_by_message_type = match_by_message_type
        self._registrations: list[MiddlewareRegistration] = []
        self._ordered: tuple[MiddlewareRegistration, ...] | None = None  # cache

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        middleware_type: type[Any],
        filter: Callable[[IChain], bool] | None = None,  # noqa: A002
        *,
        match_by_message_type: bool | None = None,
        priority: int = 0,
    ) -> MiddlewareRegistration:
        """Validate and register a middleware class.

        Parameters
        ----------
        middleware_type:
            The middleware class.
        filter:
            Optional chain predicate; defaults to every chain.
        match_by_message_type:
            Overrides the policy default for this middleware.
        priority:
            Lower = woven first (outermost). Default ``0``.

        Raises
        ------
        InvalidMiddlewareError
            If the class is not valid middleware.
        """
        if match_by_message_type is None:
            match_by_message_type = self._match_by_message_type

        registration = MiddlewareRegistration(
            middleware_type,
            filter,
            match_by_message_type=match_by_message_type,
            priority=priority,
            conventions=self._conventions,
        )
        self._registrations.append(registration)
        self._ordered = None  # invalidate cache
        logger.debug(
            "Registered middleware %s (priority=%d, static=%s, "
            "befores=%d, afters=%d, finals=%d)",
            middleware_type.__qualname__,
            priority,
            registration.is_static,
            len(registration.befores),
            len(registration.afters),
            len(registration.finals),
        )
        return registration

    def add(
        self,
        middleware_type: type[Any] | None = None,
        *,
        filter: Callable[[IChain], bool] | None = None,  # noqa: A002
        match_by_message_type: bool | None = None,
        priority: int = 0,
    ) -> Any:
        """Decorator-style registration.

        Usage::

            @policy.add
            class AuditMiddleware: ...

            @policy.add(priority=10, filter=is_command_chain)
            class RetryMiddleware: ...
        """
        if middleware_type is None:

            def wrapper(cls: type[Any]) -> type[Any]:
                self.register(
                    cls,
                    filter,
                    match_by_message_type=match_by_message_type,
                    priority=priority,
                )
                return cls

            return wrapper

        self.register(
            middleware_type,
            filter,
            match_by_message_type=match_by_message_type,
            priority=priority,
        )
        return middleware_type

    # ── Retrieval ────────────────────────────────────────────────

    @property
    def registrations(self) -> tuple[MiddlewareRegistration, ...]:
        """Registrations in weaving order (priority, then registration order)."""
        if self._ordered is None:
            self._ordered = tuple(
                sorted(self._registrations, key=lambda r: r.priority)
            )
        return self._ordered

    # ── Weaving ──────────────────────────────────────────────────

    def apply(
        self,
        chains: Iterable[IChain],
        rules: GenerationRules | None = None,
    ) -> None:
        """Weave the registered middleware into every chain of *chains*.

        All chains see the same ordered snapshot of registrations. The first
        invalid chain aborts the batch with ``InvalidMiddlewareError``.
        """
        chains = list(chains)
        registrations = self.registrations
        rules = rules if rules is not None else GenerationRules()

        used: set[MiddlewareRegistration] = set()
        for chain in chains:
            used.update(weave_chain(chain, registrations, rules))

        for registration in registrations:
            if chains and registration not in used:
                logger.warning(
                    "Middleware %s did not apply to any of %d chain(s)",
                    registration.middleware_type.__qualname__,
                    len(chains),
                )

    # ── Cleanup ──────────────────────────────────────────────────

    def clear(self) -> None:
        """Remove all registrations (testing utility)."""
        self._registrations.clear()
        self._ordered = None


__all__ = ["MiddlewarePolicy", "weave_chain"]
