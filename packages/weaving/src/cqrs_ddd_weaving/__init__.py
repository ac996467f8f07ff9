"""cqrs-ddd-weaving — compose middleware lifecycle calls around handler chains.

Middleware classes contribute ``before`` / ``after`` / ``finally`` calls,
discovered by name or by marker decorator. A :class:`MiddlewarePolicy`
weaves them into each chain as pure step descriptors; running the steps is
left to the execution engine.
"""

from __future__ import annotations

from .chain import HandlerChain, IChain, render_steps
from .classifier import LifecycleMethod, classify_type, filter_methods
from .continuation import (
    GenerationRules,
    HandlerContinuation,
    HandlerContinuationStrategy,
    IContinuationStrategy,
)
from .conventions import DEFAULT_CONVENTIONS, LifecycleConventions
from .exceptions import ConventionError, InvalidMiddlewareError, WeavingError
from .guards import assert_input_not_shadowed, assert_no_duplicate_results
from .markers import (
    LifecycleRole,
    after_middleware,
    before_middleware,
    finally_middleware,
    ignore_middleware,
)
from .policy import MiddlewarePolicy, weave_chain
from .registration import MiddlewareRegistration
from .steps import (
    CommentStep,
    ConstructionMode,
    ConstructStep,
    ContinuationStep,
    HandlerStep,
    InvokeStep,
    ProtectedStep,
    Step,
)

__all__: list[str] = [
    # Chains
    "HandlerChain",
    "IChain",
    "render_steps",
    # Classification
    "DEFAULT_CONVENTIONS",
    "LifecycleConventions",
    "LifecycleMethod",
    "LifecycleRole",
    "after_middleware",
    "before_middleware",
    "classify_type",
    "filter_methods",
    "finally_middleware",
    "ignore_middleware",
    # Weaving
    "MiddlewarePolicy",
    "MiddlewareRegistration",
    "assert_input_not_shadowed",
    "assert_no_duplicate_results",
    "weave_chain",
    # Continuations
    "GenerationRules",
    "HandlerContinuation",
    "HandlerContinuationStrategy",
    "IContinuationStrategy",
    # Steps
    "CommentStep",
    "ConstructStep",
    "ConstructionMode",
    "ContinuationStep",
    "HandlerStep",
    "InvokeStep",
    "ProtectedStep",
    "Step",
    # Errors
    "ConventionError",
    "InvalidMiddlewareError",
    "WeavingError",
]
