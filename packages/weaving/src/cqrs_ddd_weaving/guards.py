"""Validation of woven calls' produced values."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidMiddlewareError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .steps import InvokeStep


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or repr(tp)


def assert_no_duplicate_results(call: InvokeStep) -> None:
    """Reject a call that returns a tuple holding the same type twice.

    The execution engine binds produced values by type, so two values of
    one type cannot be told apart.
    """
    if not call.method.returns_tuple:
        return

    counts = Counter(call.creates)
    duplicates = [tp for tp, count in counts.items() if count > 1]
    if duplicates:
        raise InvalidMiddlewareError(
            "middleware cannot produce multiple values of the same type. "
            f"Method {call.method}, duplicated types: "
            f"{', '.join(_type_name(tp) for tp in duplicates)}",
            call.middleware_type,
        )


def assert_input_not_shadowed(
    input_type: type[Any] | None, calls: Iterable[InvokeStep]
) -> None:
    """Reject before calls that return the chain's own message type.

    A produced message would shadow the message the chain was invoked with.
    """
    if input_type is None:
        return
    for call in calls:
        if input_type in call.creates:
            raise InvalidMiddlewareError(
                "returning the message type from middleware is not allowed "
                f"({call.method} returns {input_type.__qualname__})",
                call.middleware_type,
            )


__all__ = ["assert_input_not_shadowed", "assert_no_duplicate_results"]
