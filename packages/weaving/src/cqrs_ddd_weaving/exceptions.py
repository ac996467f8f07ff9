"""Exceptions for cqrs-ddd-weaving."""

from __future__ import annotations

from typing import Any


class WeavingError(Exception):
    """Root exception for the middleware weaving package."""


class InvalidMiddlewareError(WeavingError):
    """Raised when a middleware class cannot be composed into a chain.

    All causes are configuration-time defects: a private class, a class
    without exactly one constructor, a class with no lifecycle methods,
    a lifecycle call returning the same type twice, or a before call
    returning the chain's message type.
    """

    def __init__(
        self,
        reason: str,
        middleware_type: type[Any] | None = None,
    ) -> None:
        self.reason = reason
        self.middleware_type = middleware_type
        if middleware_type is not None:
            message = f"Invalid middleware {middleware_type.__qualname__}: {reason}"
        else:
            message = reason
        super().__init__(message)


class ConventionError(WeavingError, ValueError):
    """Raised when lifecycle naming conventions are inconsistent.

    Inherits from ``ValueError`` so pydantic validators surface it as a
    ``pydantic.ValidationError``.
    """
