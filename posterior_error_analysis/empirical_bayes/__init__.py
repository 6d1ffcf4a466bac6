"""Empirical-Bayes Beta-Bernoulli model.

Modules
-------
conjugate_update
    Prior type, closed-form posterior update and posterior summaries
prior_estimation
    Method-of-moments starting values for the prior
"""

from .conjugate_update import (
    BetaPrior,
    PosteriorParameters,
    credible_intervals,
    shrinkage_factor,
    update_posteriors,
)
from .prior_estimation import estimate_beta_prior_moments

__all__ = [
    "BetaPrior",
    "PosteriorParameters",
    "update_posteriors",
    "shrinkage_factor",
    "credible_intervals",
    "estimate_beta_prior_moments",
]
