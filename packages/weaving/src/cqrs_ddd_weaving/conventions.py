"""LifecycleConventions — name allow-lists used to classify middleware methods."""

from __future__ import annotations

from itertools import combinations

from pydantic import BaseModel, ConfigDict, model_validator

from .exceptions import ConventionError
from .markers import LifecycleRole


class LifecycleConventions(BaseModel):
    """Method names recognised as before / after / finally calls.

    Matching is exact and case-sensitive. ``finally`` is a Python keyword,
    so the default finally names carry a trailing underscore.

    The three name sets must be disjoint; a name shared by two roles would
    classify one method into both positions.
    """

    model_config = ConfigDict(frozen=True)

    before_names: tuple[str, ...] = ("before", "before_async", "load", "load_async")
    after_names: tuple[str, ...] = (
        "after",
        "after_async",
        "post_process",
        "post_process_async",
    )
    finally_names: tuple[str, ...] = ("finally_", "finally_async")

    @model_validator(mode="after")
    def _check_disjoint(self) -> LifecycleConventions:
        named = {
            LifecycleRole.BEFORE: set(self.before_names),
            LifecycleRole.AFTER: set(self.after_names),
            LifecycleRole.FINALLY: set(self.finally_names),
        }
        for (role_a, names_a), (role_b, names_b) in combinations(named.items(), 2):
            shared = names_a & names_b
            if shared:
                raise ConventionError(
                    f"Lifecycle names {sorted(shared)} are allowed for both "
                    f"'{role_a.value}' and '{role_b.value}'"
                )
        return self

    def names_for(self, role: LifecycleRole) -> tuple[str, ...]:
        if role is LifecycleRole.BEFORE:
            return self.before_names
        if role is LifecycleRole.AFTER:
            return self.after_names
        return self.finally_names


DEFAULT_CONVENTIONS = LifecycleConventions()

__all__ = ["DEFAULT_CONVENTIONS", "LifecycleConventions"]
