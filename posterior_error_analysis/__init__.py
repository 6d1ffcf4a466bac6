"""
Empirical-Bayes posterior error probabilities with q-value FDR control.

This package provides:
- Beta-Bernoulli conjugate updating and shrinkage estimates
- Posterior error probabilities backed by a stable incomplete beta evaluator
- Cumulative-mean q-values and FDR-budgeted discovery selection
- An end-to-end pipeline producing a rank-ordered result table
"""

import logging

from .core_utils import EntityRecord, InvalidInputError, NumericInstabilityError
from .empirical_bayes import (
    BetaPrior,
    PosteriorParameters,
    credible_intervals,
    estimate_beta_prior_moments,
    shrinkage_factor,
    update_posteriors,
)
from .error_probability import (
    ContinuedFractionIncompleteBeta,
    IncompleteBetaEvaluator,
    ScipyIncompleteBeta,
    compute_error_probabilities,
    error_probability,
    get_incomplete_beta_evaluator,
)
from .multiple_testing import (
    QValueResult,
    aggregate,
    compute_qvalues,
    discovery_mask,
    select_discoveries,
)
from .pipeline import run_posterior_error_analysis

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "EntityRecord",
    "InvalidInputError",
    "NumericInstabilityError",
    "BetaPrior",
    "PosteriorParameters",
    "update_posteriors",
    "shrinkage_factor",
    "credible_intervals",
    "estimate_beta_prior_moments",
    "IncompleteBetaEvaluator",
    "ContinuedFractionIncompleteBeta",
    "ScipyIncompleteBeta",
    "get_incomplete_beta_evaluator",
    "error_probability",
    "compute_error_probabilities",
    "QValueResult",
    "compute_qvalues",
    "aggregate",
    "select_discoveries",
    "discovery_mask",
    "run_posterior_error_analysis",
]
