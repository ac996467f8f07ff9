"""Decorators that assign lifecycle roles to middleware methods.

Methods are classified by name (see
:class:`~cqrs_ddd_weaving.conventions.LifecycleConventions`) **or** by
one of the markers below. The markers only attach metadata; they do not
change the decorated function.

Example::

    class AuditMiddleware:
        @before_middleware
        def open_audit_scope(self, command: PlaceOrder) -> AuditScope:
            ...

        @ignore_middleware
        def before(self) -> None:
            ...  # helper that happens to share a lifecycle name
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

F = TypeVar("F")

_ROLE_ATTR = "_middleware_roles"
_IGNORE_ATTR = "_middleware_ignored"


class LifecycleRole(str, Enum):
    """Position of a middleware call relative to the chain's handler."""

    BEFORE = "before"
    AFTER = "after"
    FINALLY = "finally"


def _underlying(member: Any) -> Any:
    """Unwrap ``staticmethod`` / ``classmethod`` descriptors."""
    return getattr(member, "__func__", member)


def _mark(func: F, role: LifecycleRole) -> F:
    target = _underlying(func)
    roles: frozenset[LifecycleRole] = getattr(target, _ROLE_ATTR, frozenset())
    setattr(target, _ROLE_ATTR, roles | {role})
    return func


def before_middleware(func: F) -> F:
    """Mark *func* as a before call regardless of its name."""
    return _mark(func, LifecycleRole.BEFORE)


def after_middleware(func: F) -> F:
    """Mark *func* as an after call regardless of its name."""
    return _mark(func, LifecycleRole.AFTER)


def finally_middleware(func: F) -> F:
    """Mark *func* as a finally (guaranteed cleanup) call regardless of its name."""
    return _mark(func, LifecycleRole.FINALLY)


def ignore_middleware(func: F) -> F:
    """Exclude *func* from lifecycle classification, even if its name matches."""
    setattr(_underlying(func), _IGNORE_ATTR, True)
    return func


def get_marked_roles(member: Any) -> frozenset[LifecycleRole]:
    """Return the roles explicitly assigned to *member* by a marker."""
    return getattr(_underlying(member), _ROLE_ATTR, frozenset())


def is_ignored(member: Any) -> bool:
    return bool(getattr(_underlying(member), _IGNORE_ATTR, False))


__all__ = [
    "LifecycleRole",
    "after_middleware",
    "before_middleware",
    "finally_middleware",
    "get_marked_roles",
    "ignore_middleware",
    "is_ignored",
]
