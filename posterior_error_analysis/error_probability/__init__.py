"""Posterior error probabilities and their incomplete beta backends.

Modules
-------
incomplete_beta
    Regularized incomplete beta capability interface and backends
posterior_error
    Per-entity and batch posterior error probabilities
"""

from .incomplete_beta import (
    ContinuedFractionIncompleteBeta,
    IncompleteBetaEvaluator,
    ScipyIncompleteBeta,
    get_incomplete_beta_evaluator,
)
from .posterior_error import compute_error_probabilities, error_probability

__all__ = [
    "IncompleteBetaEvaluator",
    "ContinuedFractionIncompleteBeta",
    "ScipyIncompleteBeta",
    "get_incomplete_beta_evaluator",
    "error_probability",
    "compute_error_probabilities",
]
