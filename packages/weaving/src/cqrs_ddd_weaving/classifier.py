"""Lifecycle method discovery and classification.

A middleware class never inherits from a shared base; any public method
whose name is on a role's allow-list, or that carries the role's marker
decorator, takes part in weaving. Methods marked with
:func:`~cqrs_ddd_weaving.markers.ignore_middleware` never do.
"""

from __future__ import annotations

import collections.abc
import inspect
import typing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidMiddlewareError
from .markers import LifecycleRole, get_marked_roles, is_ignored
from .utils import resolve_type_hints

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .conventions import LifecycleConventions

_AWAITABLE_ORIGINS = (
    collections.abc.Awaitable,
    collections.abc.Coroutine,
)


@dataclass(frozen=True)
class LifecycleMethod:
    """One discovered lifecycle method of a middleware class.

    Attributes:
        owner: The middleware class the method was discovered on.
        name: Attribute name of the method.
        role: Position of the call relative to the handler.
        function: The plain function (descriptors unwrapped).
        is_static: ``True`` for ``staticmethod`` / ``classmethod`` members,
            which can be called without constructing the middleware.
        message_type: Annotated type of the first argument after
            ``self`` / ``cls``, or ``None`` when absent or not a class.
        creates: Types of the values the call produces, in order.
        returns_tuple: ``True`` when the return annotation is a tuple, i.e.
            the call produces several values at once.
    """

    owner: type[Any]
    name: str
    role: LifecycleRole
    function: Callable[..., Any]
    is_static: bool = False
    message_type: type[Any] | None = None
    creates: tuple[Any, ...] = field(default_factory=tuple)
    returns_tuple: bool = False

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.function)

    def __str__(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}()"


def iter_public_methods(cls: type[Any]) -> list[tuple[str, Any]]:
    """Return ``(name, raw_member)`` pairs for public methods of *cls*.

    Members are collected along the MRO (``object`` excluded) in declaration
    order; overrides keep the position of the base declaration.
    """
    members: dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, member in vars(klass).items():
            if name.startswith("_"):
                continue
            if isinstance(member, (staticmethod, classmethod)) or inspect.isfunction(
                member
            ):
                members[name] = member
            else:
                members.pop(name, None)
    return list(members.items())


def filter_methods(
    members: Iterable[tuple[str, Any]],
    valid_names: Iterable[str],
    role: LifecycleRole,
) -> list[tuple[str, Any]]:
    """Select the members that play *role*.

    A member qualifies when its name is in *valid_names* or it carries the
    *role* marker; ignored members never qualify.
    """
    allowed = set(valid_names)
    return [
        (name, member)
        for name, member in members
        if not is_ignored(member)
        and (name in allowed or role in get_marked_roles(member))
    ]


def _unwrap_awaitable(hint: Any) -> Any:
    while typing.get_origin(hint) in _AWAITABLE_ORIGINS:
        args = typing.get_args(hint)
        hint = args[-1] if args else None
    return hint


def _created_types(hint: Any) -> tuple[tuple[Any, ...], bool]:
    hint = _unwrap_awaitable(hint)
    if hint is None or hint is type(None):
        return (), False
    if typing.get_origin(hint) is tuple:
        args = tuple(a for a in typing.get_args(hint) if a is not Ellipsis)
        return args, True
    return (hint,), False


def describe_method(
    cls: type[Any], name: str, member: Any, role: LifecycleRole
) -> LifecycleMethod:
    """Build the :class:`LifecycleMethod` descriptor for one raw member."""
    is_static = isinstance(member, (staticmethod, classmethod))
    func = getattr(member, "__func__", member)
    hints = resolve_type_hints(func)

    params = list(inspect.signature(func).parameters.values())
    if not isinstance(member, staticmethod) and params:
        params = params[1:]  # self / cls

    message_type: type[Any] | None = None
    if params and params[0].kind in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        candidate = hints.get(params[0].name)
        if isinstance(candidate, type):
            message_type = candidate

    creates, returns_tuple = _created_types(hints.get("return"))
    return LifecycleMethod(
        owner=cls,
        name=name,
        role=role,
        function=func,
        is_static=is_static,
        message_type=message_type,
        creates=creates,
        returns_tuple=returns_tuple,
    )


def classify_type(
    cls: type[Any], conventions: LifecycleConventions
) -> dict[LifecycleRole, tuple[LifecycleMethod, ...]]:
    """Partition the public methods of *cls* into lifecycle roles.

    Raises:
        InvalidMiddlewareError: if one method qualifies for two roles.
    """
    members = iter_public_methods(cls)
    selected = {
        role: filter_methods(members, conventions.names_for(role), role)
        for role in LifecycleRole
    }

    owners: dict[str, LifecycleRole] = {}
    for role, matches in selected.items():
        for name, _ in matches:
            previous = owners.setdefault(name, role)
            if previous is not role:
                raise InvalidMiddlewareError(
                    f"method {name}() is classified as both "
                    f"'{previous.value}' and '{role.value}'",
                    cls,
                )

    return {
        role: tuple(describe_method(cls, name, member, role) for name, member in matches)
        for role, matches in selected.items()
    }


__all__ = [
    "LifecycleMethod",
    "classify_type",
    "describe_method",
    "filter_methods",
    "iter_public_methods",
]
