"""Closed-form starting values for the population Beta prior.

The engine treats the prior as an external input. This helper offers the
method-of-moments estimate for callers without a dedicated fitting step;
it performs no iterative optimisation.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np

from posterior_error_analysis import config
from posterior_error_analysis.core_utils.data_utils import validate_count_arrays
from posterior_error_analysis.core_utils.errors import InvalidInputError
from .conjugate_update import BetaPrior

logger = logging.getLogger(__name__)


def estimate_beta_prior_moments(
    successes: Any,
    trials: Any,
    min_trials: int = config.PRIOR_MIN_TRIALS,
) -> BetaPrior:
    """Estimate ``Beta(a0, b0)`` from observed rates by the method of moments.

    Matches the sample mean ``mu`` and variance ``var`` of the raw rates
    ``s / n``, using ``var = mu (1 - mu) / (a0 + b0 + 1)``.

    Parameters
    ----------
    successes, trials : array-like
        Per-entity counts.
    min_trials : int
        Entities with fewer trials are ignored; their raw rates are too noisy
        to describe the population.

    Returns
    -------
    BetaPrior

    Raises
    ------
    InvalidInputError
        If fewer than two entities qualify, the mean rate is 0 or 1, or the
        rate variance is zero or at least ``mu (1 - mu)``.
    """
    s, n = validate_count_arrays(successes, trials)
    keep = n >= max(int(min_trials), 1)
    if int(keep.sum()) < 2:
        raise InvalidInputError(
            f"At least two entities with >= {min_trials} trials are required "
            f"to estimate a prior (got {int(keep.sum())})."
        )

    rates = s[keep] / n[keep]
    mu = float(np.mean(rates))
    var = float(np.var(rates, ddof=1))

    if mu <= 0.0 or mu >= 1.0:
        raise InvalidInputError(f"Mean rate {mu:.6g} lies on the boundary of [0, 1].")
    if var <= 0.0:
        raise InvalidInputError("Observed rates have zero variance.")
    if var >= mu * (1.0 - mu):
        raise InvalidInputError(
            f"Rate variance {var:.6g} exceeds the Beta maximum {mu * (1.0 - mu):.6g}."
        )

    common = mu * (1.0 - mu) / var - 1.0
    prior = BetaPrior(alpha=mu * common, beta=(1.0 - mu) * common)

    logger.info(
        "Method-of-moments prior from %d entities: alpha=%.4f, beta=%.4f "
        "(mean=%.4f, strength=%.1f)",
        int(keep.sum()),
        prior.alpha,
        prior.beta,
        prior.mean,
        prior.strength,
    )
    return prior


__all__ = ["estimate_beta_prior_moments"]
