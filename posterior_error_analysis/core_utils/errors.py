"""Exception types raised by the posterior error analysis engine.

Empty input is not an error: every stage returns an empty result for it.
"""

from __future__ import annotations


class InvalidInputError(ValueError):
    """Raised when a record, prior, threshold or budget violates its contract."""


class NumericInstabilityError(ArithmeticError):
    """Raised when a numerical routine cannot guarantee its precision bound."""


def preview_ids(ids: list, limit: int = 5) -> str:
    """Format the first ``limit`` identifiers for an error message."""
    return ", ".join(map(repr, ids[:limit]))


__all__ = ["InvalidInputError", "NumericInstabilityError", "preview_ids"]
