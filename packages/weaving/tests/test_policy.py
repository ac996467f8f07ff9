import logging
from unittest.mock import Mock

import pytest

from cqrs_ddd_weaving.chain import HandlerChain
from cqrs_ddd_weaving.continuation import GenerationRules
from cqrs_ddd_weaving.conventions import LifecycleConventions
from cqrs_ddd_weaving.exceptions import InvalidMiddlewareError
from cqrs_ddd_weaving.policy import MiddlewarePolicy
from cqrs_ddd_weaving.steps import InvokeStep


class Command:
    pass


class PlaceOrder(Command):
    pass


class CancelOrder(Command):
    pass


class Middleware1:
    def before(self) -> None:
        pass

    def after(self) -> None:
        pass


class Middleware2:
    def before(self) -> None:
        pass

    def after(self) -> None:
        pass


class Middleware3:
    def before(self) -> None:
        pass

    def after(self) -> None:
        pass


class PlaceOrderOnly:
    def before(self, command: PlaceOrder) -> None:
        pass


class Interceptor:
    def on_enter(self) -> None:
        pass


class Empty:
    pass


def _before_owners(chain: HandlerChain) -> list[type]:
    return [s.middleware_type for s in chain.middleware if isinstance(s, InvokeStep)]


def test_registration_order_is_weaving_order() -> None:
    policy = MiddlewarePolicy()
    policy.register(Middleware2)
    policy.register(Middleware1)

    assert [r.middleware_type for r in policy.registrations] == [
        Middleware2,
        Middleware1,
    ]


def test_priority_reorders_and_keeps_ties_stable() -> None:
    policy = MiddlewarePolicy()
    policy.register(Middleware2, priority=10)
    policy.register(Middleware1)
    policy.register(Middleware3)

    assert [r.middleware_type for r in policy.registrations] == [
        Middleware1,
        Middleware3,
        Middleware2,
    ]


def test_invalid_middleware_is_not_registered() -> None:
    policy = MiddlewarePolicy()

    with pytest.raises(InvalidMiddlewareError):
        policy.register(Empty)

    assert policy.registrations == ()


def test_decorator_registration() -> None:
    policy = MiddlewarePolicy()

    @policy.add
    class Decorated:
        def before(self) -> None:
            pass

    @policy.add(priority=-1, filter=lambda chain: chain.input_type is PlaceOrder)
    class DecoratedWithOptions:
        def after(self) -> None:
            pass

    first, second = policy.registrations
    assert first.middleware_type is DecoratedWithOptions
    assert first.priority == -1
    assert first.applies_to(HandlerChain(input_type=PlaceOrder)) is True
    assert first.applies_to(HandlerChain(input_type=CancelOrder)) is False
    assert second.middleware_type is Decorated


def test_apply_weaves_every_chain_with_the_same_registrations() -> None:
    policy = MiddlewarePolicy()
    policy.register(Middleware1)
    policy.register(Middleware2)
    chains = [HandlerChain(input_type=PlaceOrder), HandlerChain(input_type=CancelOrder)]

    policy.apply(chains)

    for chain in chains:
        assert _before_owners(chain) == [Middleware1, Middleware2]
        assert [s.middleware_type for s in chain.postprocessors] == [
            Middleware2,
            Middleware1,
        ]


def test_policy_default_for_message_type_matching() -> None:
    policy = MiddlewarePolicy(match_by_message_type=True)
    policy.register(PlaceOrderOnly)
    policy.register(Middleware1, match_by_message_type=False)
    place = HandlerChain(input_type=PlaceOrder)
    cancel = HandlerChain(input_type=CancelOrder)

    policy.apply([place, cancel])

    assert _before_owners(place) == [PlaceOrderOnly, Middleware1]
    assert _before_owners(cancel) == [Middleware1]


def test_custom_conventions() -> None:
    policy = MiddlewarePolicy(conventions=LifecycleConventions(before_names=("on_enter",)))
    policy.register(Interceptor)
    chain = HandlerChain()

    policy.apply([chain])

    assert _before_owners(chain) == [Interceptor]


def test_apply_uses_supplied_rules() -> None:
    policy = MiddlewarePolicy()
    policy.register(Middleware1)
    strategy = Mock()
    strategy.find_continuation.return_value = None

    policy.apply([HandlerChain()], GenerationRules(strategies=[strategy]))

    strategy.find_continuation.assert_called_once()


def test_unused_middleware_is_reported(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="cqrs_ddd.weaving")
    policy = MiddlewarePolicy()
    policy.register(Middleware1, filter=lambda chain: False)
    policy.register(Middleware2)

    policy.apply([HandlerChain()])

    assert "Middleware1 did not apply to any of 1 chain(s)" in caplog.text
    assert "Middleware2" not in caplog.text


def test_filters_are_evaluated_once_per_chain(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="cqrs_ddd.weaving")
    accepting = Mock(return_value=True)
    rejecting = Mock(return_value=False)
    policy = MiddlewarePolicy()
    policy.register(Middleware1, filter=accepting)
    policy.register(Middleware2, filter=rejecting)
    chains = [HandlerChain(input_type=PlaceOrder), HandlerChain(input_type=CancelOrder)]

    policy.apply(chains)

    assert accepting.call_count == 2
    assert rejecting.call_count == 2
    assert "Middleware2 did not apply to any of 2 chain(s)" in caplog.text
    assert "Middleware1" not in caplog.text


def test_weave_summary_is_logged_at_debug(caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="cqrs_ddd.weaving")
    policy = MiddlewarePolicy()
    policy.register(Middleware1)

    policy.apply([HandlerChain(name="PlaceOrderHandler")])

    assert "Registered middleware Middleware1" in caplog.text
    assert "Woven 2 pre-step(s) and 1 post-step(s)" in caplog.text
    assert "Middleware1.before()" in caplog.text


def test_clear() -> None:
    policy = MiddlewarePolicy()
    policy.register(Middleware1)
    policy.clear()
    assert policy.registrations == ()
