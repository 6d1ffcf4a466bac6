"""Largest discovery set whose expected false discovery rate fits a budget."""

from __future__ import annotations

from typing import Any

import numpy as np

from posterior_error_analysis.core_utils.errors import InvalidInputError
from .qvalues import QValueResult


def validate_budget(budget: float) -> float:
    """Return ``budget`` as float, requiring it to lie strictly in (0, 1).

    Budgets of 0 or 1 describe degenerate policies (select nothing, select
    everything) and are rejected rather than accepted silently.
    """
    try:
        b = float(budget)
    except (TypeError, ValueError):
        raise InvalidInputError(f"FDR budget must be a number (got {budget!r})") from None
    if not 0.0 < b < 1.0:
        raise InvalidInputError(f"FDR budget must lie strictly in (0, 1) (got {budget!r})")
    return b


def select_discoveries(qvalues: Any, budget: float) -> int:
    """Length of the longest rank prefix with every q-value below ``budget``.

    Parameters
    ----------
    qvalues : array-like
        Q-values in rank order (non-decreasing).
    budget : float
        Target false discovery rate, strictly in (0, 1).

    Returns
    -------
    int
        ``k*`` such that ``qvalues[k* - 1] < budget`` and either
        ``k* == len(qvalues)`` or ``qvalues[k*] >= budget``. Zero when even
        the best entity misses the budget, or when there are no entities.

    Raises
    ------
    InvalidInputError
        If the budget is outside (0, 1), or the q-values are not finite and
        non-decreasing.

    Examples
    --------
    >>> select_discoveries([0.0, 0.01, 0.04, 0.07], budget=0.05)
    3
    """
    b = validate_budget(budget)
    q = np.asarray(qvalues, dtype=np.float64).ravel()
    if q.size == 0:
        return 0
    if not np.isfinite(q).all():
        raise InvalidInputError("q-values must be finite")
    if np.any(np.diff(q) < 0.0):
        raise InvalidInputError("q-values must be non-decreasing in rank order")

    return int(np.searchsorted(q, b, side="left"))


def discovery_mask(result: QValueResult, budget: float) -> np.ndarray:
    """Boolean inclusion flags aligned to the input order of ``result``."""
    k = select_discoveries(result.qvalues_in_rank_order, budget)
    return result.rank <= k


__all__ = ["validate_budget", "select_discoveries", "discovery_mask"]
