"""Common utility functions and helpers."""

from __future__ import annotations

import logging
import typing
from typing import Any

logger = logging.getLogger("cqrs_ddd.weaving.utils")


def _annotation_carrier() -> None:
    """Carrier for evaluating one annotation at a time."""


def resolve_type_hints(func: Any) -> dict[str, Any]:
    """Return the resolved annotations of *func*.

    Annotations that cannot be resolved, typically names imported only
    under ``if TYPE_CHECKING:``, are left out instead of failing the
    whole lookup.
    """
    func = getattr(func, "__func__", func)
    try:
        return typing.get_type_hints(func)
    except (NameError, TypeError):
        pass

    raw: dict[str, Any] = dict(getattr(func, "__annotations__", None) or {})
    globalns = getattr(func, "__globals__", {})
    hints: dict[str, Any] = {}
    for name, annotation in raw.items():
        _annotation_carrier.__annotations__ = {name: annotation}
        try:
            hints[name] = typing.get_type_hints(_annotation_carrier, globalns=globalns)[
                name
            ]
        except (NameError, TypeError) as exc:
            logger.debug(
                "Unresolved annotation %r on %s: %s",
                annotation,
                getattr(func, "__qualname__", func),
                exc,
            )
        finally:
            _annotation_carrier.__annotations__ = {}
    return hints


__all__ = ["resolve_type_hints"]
