from __future__ import annotations

import numpy as np
import pytest

from posterior_error_analysis.core_utils.errors import InvalidInputError
from posterior_error_analysis.multiple_testing.qvalues import compute_qvalues
from posterior_error_analysis.multiple_testing.selection import (
    discovery_mask,
    select_discoveries,
)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("budget", [0.01, 0.05, 0.2, 0.5])
def test_selected_prefix_is_maximal(seed, budget):
    rng = np.random.default_rng(seed)
    peps = rng.beta(0.3, 1.5, size=400)
    q = compute_qvalues(peps).qvalues_in_rank_order

    k = select_discoveries(q, budget)

    if k > 0:
        assert q[k - 1] < budget
    assert k == q.size or q[k] >= budget


def test_concrete_selection():
    assert select_discoveries([0.0, 0.01, 0.04, 0.07], budget=0.05) == 3
    assert select_discoveries([0.0, 0.01, 0.05], budget=0.05) == 2
    assert select_discoveries([0.0, 0.01, 0.04], budget=0.05) == 3


def test_nothing_selected_when_best_misses_budget():
    assert select_discoveries([0.2, 0.3], budget=0.1) == 0


def test_empty_sequence_selects_nothing():
    assert select_discoveries([], budget=0.1) == 0


def test_single_zero_pep_included_at_any_positive_budget():
    q = compute_qvalues([0.0]).qvalues_in_rank_order
    for budget in (1e-12, 0.05, 0.999):
        assert select_discoveries(q, budget) == 1


def test_single_certain_error_never_included():
    q = compute_qvalues([1.0]).qvalues_in_rank_order
    for budget in (1e-12, 0.5, 0.999999):
        assert select_discoveries(q, budget) == 0


@pytest.mark.parametrize("budget", [0.0, 1.0, -0.1, 1.5, float("nan"), None])
def test_out_of_range_budget_raises(budget):
    with pytest.raises(InvalidInputError):
        select_discoveries([0.0, 0.1], budget)


def test_non_monotone_qvalues_raise():
    with pytest.raises(InvalidInputError, match="non-decreasing"):
        select_discoveries([0.1, 0.05], budget=0.2)


def test_non_finite_qvalues_raise():
    with pytest.raises(InvalidInputError, match="finite"):
        select_discoveries([0.1, np.nan], budget=0.2)


def test_discovery_mask_aligned_to_input():
    result = compute_qvalues([0.3, 0.0, 0.02, 0.9])
    mask = discovery_mask(result, budget=0.05)
    np.testing.assert_array_equal(mask, [False, True, True, False])
