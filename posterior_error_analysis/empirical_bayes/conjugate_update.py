"""Beta-Bernoulli conjugate updating and posterior summaries.

A population-level prior ``Beta(a0, b0)`` combined with an entity's
``s`` successes out of ``n`` trials yields the posterior

    Beta(a1, b1),  a1 = s + a0,  b1 = (n - s) + b0

in closed form. The posterior mean ``a1 / (a1 + b1)`` is the shrinkage
estimate: entities with few trials are pulled toward the prior mean
``a0 / (a0 + b0)``, entities with many trials keep close to their raw rate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Tuple

import numpy as np
from scipy.special import betaincinv

from posterior_error_analysis.core_utils.data_utils import validate_count_arrays
from posterior_error_analysis.core_utils.errors import InvalidInputError


@dataclass(frozen=True)
class BetaPrior:
    """Population-level Beta prior over per-entity success probabilities.

    Attributes
    ----------
    alpha : float
        First shape parameter (pseudo-successes), must be positive.
    beta : float
        Second shape parameter (pseudo-failures), must be positive.
    """

    alpha: float
    beta: float

    def __post_init__(self) -> None:
        for name in ("alpha", "beta"):
            value = getattr(self, name)
            if not isinstance(value, (int, float, np.integer, np.floating)) or isinstance(
                value, bool
            ):
                raise InvalidInputError(f"prior {name} must be a number (got {value!r})")
            if not math.isfinite(value) or value <= 0:
                raise InvalidInputError(
                    f"prior {name} must be positive and finite (got {value!r})"
                )
            object.__setattr__(self, name, float(value))

    @property
    def mean(self) -> float:
        return self.alpha / (self.alpha + self.beta)

    @property
    def strength(self) -> float:
        """Total pseudo-count ``a0 + b0``."""
        return self.alpha + self.beta


@dataclass
class PosteriorParameters:
    """Per-entity posterior shape parameters, aligned to the input order.

    Attributes
    ----------
    alpha : np.ndarray
        Posterior ``a1`` values.
    beta : np.ndarray
        Posterior ``b1`` values.
    """

    alpha: np.ndarray
    beta: np.ndarray

    def __len__(self) -> int:
        return int(self.alpha.size)

    @property
    def mean(self) -> np.ndarray:
        """Shrinkage point estimates ``a1 / (a1 + b1)``."""
        return self.alpha / (self.alpha + self.beta)


def update_posteriors(
    prior: BetaPrior, successes: Any, trials: Any
) -> PosteriorParameters:
    """Compute each entity's Beta posterior from its counts.

    Parameters
    ----------
    prior : BetaPrior
        Fixed population prior, shared by every entity.
    successes : array-like
        Non-negative integer success counts.
    trials : array-like
        Integer trial counts with ``trials >= successes``. Zero trials are
        legal and return the prior unchanged.

    Returns
    -------
    PosteriorParameters
        One posterior per record, same order and length as the input.

    Raises
    ------
    InvalidInputError
        If any count is negative, non-integer, non-finite, or ``s > n``.

    Examples
    --------
    >>> post = update_posteriors(BetaPrior(10, 20), [400, 3], [1000, 10])
    >>> post.alpha, post.beta
    (array([410.,  13.]), array([620.,  27.]))
    """
    s, n = validate_count_arrays(successes, trials)
    return PosteriorParameters(alpha=s + prior.alpha, beta=(n - s) + prior.beta)


def shrinkage_factor(prior: BetaPrior, trials: Any) -> np.ndarray:
    """Weight the posterior mean places on the prior mean.

    ``(a0 + b0) / (a0 + b0 + n)``: 1 for entities without evidence,
    approaching 0 as the trial count grows.
    """
    n = np.asarray(trials, dtype=np.float64)
    return prior.strength / (prior.strength + n)


def credible_intervals(
    posterior: PosteriorParameters, level: float = 0.95
) -> Tuple[np.ndarray, np.ndarray]:
    """Equal-tailed credible intervals for each posterior.

    Parameters
    ----------
    posterior : PosteriorParameters
        Posterior shape parameters.
    level : float, default=0.95
        Probability mass inside the interval, strictly in (0, 1).

    Returns
    -------
    lower, upper : np.ndarray
        Interval bounds aligned to the posterior order.
    """
    if not 0.0 < level < 1.0:
        raise InvalidInputError(f"credible level must be in (0, 1) (got {level!r})")

    tail = (1.0 - level) / 2.0
    lower = betaincinv(posterior.alpha, posterior.beta, tail)
    upper = betaincinv(posterior.alpha, posterior.beta, 1.0 - tail)
    return np.asarray(lower, dtype=np.float64), np.asarray(upper, dtype=np.float64)


__all__ = [
    "BetaPrior",
    "PosteriorParameters",
    "update_posteriors",
    "shrinkage_factor",
    "credible_intervals",
]
