"""Tests for the regularized incomplete beta backends.

The continued-fraction evaluator is checked against ``scipy.special`` across
shape parameters from below one to several thousand, the range produced by
realistic trial counts.
"""

from __future__ import annotations

import itertools
import math

import numpy as np
import pytest
from scipy.special import betainc, betaincc

from posterior_error_analysis.core_utils.errors import (
    InvalidInputError,
    NumericInstabilityError,
)
from posterior_error_analysis.error_probability.incomplete_beta import (
    ContinuedFractionIncompleteBeta,
    IncompleteBetaEvaluator,
    ScipyIncompleteBeta,
    get_incomplete_beta_evaluator,
)

SHAPES = [0.5, 1.0, 3.0, 13.0, 27.0, 410.0, 620.0, 2500.0, 8000.0]
POINTS = [0.001, 0.05, 0.3, 0.5, 0.7, 0.95, 0.999]
GRID = list(itertools.product(SHAPES, SHAPES, POINTS))

RTOL = 1e-9
# Reference values below this are subnormal or zero in scipy as well.
ATOL = 1e-300


@pytest.fixture(scope="module")
def evaluator() -> ContinuedFractionIncompleteBeta:
    return ContinuedFractionIncompleteBeta()


def _grid_values(fn) -> np.ndarray:
    return np.array([math.exp(fn(a, b, x)) for a, b, x in GRID])


def test_cdf_matches_scipy_across_grid(evaluator):
    ours = _grid_values(evaluator.log_cdf)
    reference = np.array([betainc(a, b, x) for a, b, x in GRID])
    np.testing.assert_allclose(ours, reference, rtol=RTOL, atol=ATOL)


def test_sf_matches_scipy_across_grid(evaluator):
    ours = _grid_values(evaluator.log_sf)
    reference = np.array([betaincc(a, b, x) for a, b, x in GRID])
    np.testing.assert_allclose(ours, reference, rtol=RTOL, atol=ATOL)


@pytest.mark.parametrize("a, b, x", [(410.0, 620.0, 0.3), (13.0, 27.0, 0.3), (2.0, 3.0, 0.4)])
def test_tails_sum_to_one(evaluator, a, b, x):
    total = math.exp(evaluator.log_cdf(a, b, x)) + math.exp(evaluator.log_sf(a, b, x))
    assert total == pytest.approx(1.0, abs=1e-14)


def test_closed_form_uniform_and_power_cases(evaluator):
    # Beta(1, 1) is uniform; Beta(a, 1) has CDF x**a.
    assert math.exp(evaluator.log_cdf(1.0, 1.0, 0.37)) == pytest.approx(0.37, rel=1e-13)
    assert math.exp(evaluator.log_cdf(3.0, 1.0, 0.5)) == pytest.approx(0.125, rel=1e-13)
    assert math.exp(evaluator.log_sf(1.0, 4.0, 0.5)) == pytest.approx(0.0625, rel=1e-13)


def test_tiny_tail_keeps_its_magnitude_in_log_space(evaluator):
    # x**a with a = 5000 and x = 0.01: far below the double range.
    log_p = evaluator.log_cdf(5000.0, 1.0, 0.01)
    assert math.isfinite(log_p)
    assert log_p == pytest.approx(5000.0 * math.log(0.01), rel=1e-12)


def test_exact_limits(evaluator):
    assert evaluator.log_cdf(2.0, 3.0, 0.0) == -math.inf
    assert evaluator.log_sf(2.0, 3.0, 0.0) == 0.0
    assert evaluator.log_cdf(2.0, 3.0, 1.0) == 0.0
    assert evaluator.log_sf(2.0, 3.0, 1.0) == -math.inf


@pytest.mark.parametrize(
    "a, b, x",
    [(0.0, 1.0, 0.5), (1.0, -2.0, 0.5), (math.inf, 1.0, 0.5), (1.0, 1.0, -0.1), (1.0, 1.0, 1.1)],
)
def test_invalid_arguments_raise(evaluator, a, b, x):
    with pytest.raises(InvalidInputError):
        evaluator.log_cdf(a, b, x)


def test_non_convergence_raises_numeric_instability():
    capped = ContinuedFractionIncompleteBeta(max_iterations=2)
    with pytest.raises(NumericInstabilityError, match="did not converge"):
        capped.log_cdf(500.0, 500.0, 0.49)


@pytest.mark.parametrize("kwargs", [{"tolerance": 0.0}, {"max_iterations": 0}])
def test_invalid_settings_raise(kwargs):
    with pytest.raises(InvalidInputError):
        ContinuedFractionIncompleteBeta(**kwargs)


class TestDispatcher:
    def test_default_is_continued_fraction(self):
        assert isinstance(get_incomplete_beta_evaluator(), ContinuedFractionIncompleteBeta)

    def test_scipy_backend(self):
        backend = get_incomplete_beta_evaluator("scipy")
        assert isinstance(backend, ScipyIncompleteBeta)
        assert math.exp(backend.log_cdf(13.0, 27.0, 0.3)) == pytest.approx(
            betainc(13.0, 27.0, 0.3), rel=1e-14
        )

    def test_backends_satisfy_protocol(self):
        for method in ("continued_fraction", "scipy"):
            assert isinstance(get_incomplete_beta_evaluator(method), IncompleteBetaEvaluator)

    def test_unknown_method_raises(self):
        with pytest.raises(InvalidInputError, match="Unknown incomplete beta method"):
            get_incomplete_beta_evaluator("series")
