from __future__ import annotations

import math

import numpy as np
import pytest
from scipy.special import betainc

from posterior_error_analysis.core_utils.errors import InvalidInputError
from posterior_error_analysis.empirical_bayes.conjugate_update import (
    BetaPrior,
    credible_intervals,
    shrinkage_factor,
    update_posteriors,
)


def _random_counts(n: int = 200, seed: int = 7) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    trials = rng.integers(0, 5000, size=n)
    successes = rng.binomial(trials, 0.3)
    return successes, trials


class TestBetaPrior:
    def test_mean_and_strength(self):
        prior = BetaPrior(10, 20)
        assert prior.alpha == 10.0
        assert prior.beta == 20.0
        assert prior.mean == pytest.approx(1.0 / 3.0)
        assert prior.strength == 30.0

    @pytest.mark.parametrize(
        "alpha, beta",
        [(0.0, 1.0), (1.0, 0.0), (-1.0, 2.0), (math.inf, 1.0), (1.0, math.nan), (True, 1.0)],
    )
    def test_invalid_parameters_raise(self, alpha, beta):
        with pytest.raises(InvalidInputError):
            BetaPrior(alpha, beta)

    def test_prior_is_immutable(self):
        prior = BetaPrior(1.0, 1.0)
        with pytest.raises(AttributeError):
            prior.alpha = 2.0  # type: ignore[misc]


class TestUpdatePosteriors:
    def test_concrete_scenario(self):
        post = update_posteriors(BetaPrior(10, 20), [400, 3], [1000, 10])
        np.testing.assert_array_equal(post.alpha, [410.0, 13.0])
        np.testing.assert_array_equal(post.beta, [620.0, 27.0])
        assert len(post) == 2

    def test_invariants_hold_on_random_counts(self):
        prior = BetaPrior(2.5, 7.5)
        s, n = _random_counts()
        post = update_posteriors(prior, s, n)

        assert len(post) == len(s)
        np.testing.assert_allclose(post.alpha, s + prior.alpha)
        np.testing.assert_allclose(post.beta, (n - s) + prior.beta)
        assert np.all(post.alpha >= prior.alpha)
        assert np.all(post.alpha[s > 0] > prior.alpha)
        assert np.all(post.beta >= prior.beta)
        np.testing.assert_allclose(post.alpha + post.beta, n + prior.strength)

    def test_zero_trials_returns_prior(self):
        prior = BetaPrior(3.0, 4.0)
        post = update_posteriors(prior, [0], [0])
        assert post.alpha[0] == prior.alpha
        assert post.beta[0] == prior.beta
        assert post.mean[0] == pytest.approx(prior.mean)
        assert np.isfinite(post.mean).all()

    def test_empty_input_gives_empty_posterior(self):
        post = update_posteriors(BetaPrior(1, 1), [], [])
        assert len(post) == 0

    def test_shrinkage_pulls_toward_prior_mean(self):
        prior = BetaPrior(10, 20)
        post = update_posteriors(prior, [9, 900], [10, 1000])
        # Same raw rate of 0.9; the small entity is pulled much further down.
        assert post.mean[0] < post.mean[1] < 0.9
        assert abs(post.mean[1] - 0.9) < abs(post.mean[0] - 0.9)

    @pytest.mark.parametrize(
        "successes, trials",
        [([-1], [5]), ([3], [-2]), ([6], [5]), ([1.5], [4]), ([np.nan], [4]), (["x"], [4])],
    )
    def test_invalid_counts_raise(self, successes, trials):
        with pytest.raises(InvalidInputError):
            update_posteriors(BetaPrior(1, 1), successes, trials)

    @pytest.mark.parametrize(
        "successes, trials",
        [([True], [2]), ([1], [True]), (np.array([False, True]), [3, 3])],
    )
    def test_boolean_counts_raise(self, successes, trials):
        with pytest.raises(InvalidInputError, match="not booleans"):
            update_posteriors(BetaPrior(1, 1), successes, trials)

    def test_length_mismatch_raises(self):
        with pytest.raises(InvalidInputError, match="same length"):
            update_posteriors(BetaPrior(1, 1), [1, 2], [3])


class TestPosteriorSummaries:
    def test_shrinkage_factor(self):
        prior = BetaPrior(10, 20)
        factor = shrinkage_factor(prior, [0, 30, 970])
        np.testing.assert_allclose(factor, [1.0, 0.5, 0.03])

    def test_credible_interval_bounds_have_requested_mass(self):
        post = update_posteriors(BetaPrior(10, 20), [400, 3, 0], [1000, 10, 0])
        lower, upper = credible_intervals(post, level=0.9)

        assert np.all(lower < post.mean) and np.all(post.mean < upper)
        np.testing.assert_allclose(betainc(post.alpha, post.beta, lower), 0.05, rtol=1e-8)
        np.testing.assert_allclose(betainc(post.alpha, post.beta, upper), 0.95, rtol=1e-8)

    def test_more_evidence_narrows_interval(self):
        post = update_posteriors(BetaPrior(10, 20), [3, 300], [10, 1000])
        lower, upper = credible_intervals(post)
        width = upper - lower
        assert width[1] < width[0]

    @pytest.mark.parametrize("level", [0.0, 1.0, -0.5, 1.5])
    def test_invalid_level_raises(self, level):
        post = update_posteriors(BetaPrior(1, 1), [1], [2])
        with pytest.raises(InvalidInputError):
            credible_intervals(post, level=level)
