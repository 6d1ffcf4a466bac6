"""Q-values from posterior error probabilities.

Ranking entities by ascending PEP and averaging the PEPs of the best ``k``
gives the expected false discovery proportion of that candidate set: by
linearity of expectation the expected number of wrong inclusions is the sum
of the included PEPs. This cumulative mean is the q-value of the entity at
rank ``k``.

References
----------
Storey, J. D. (2003). The positive false discovery rate: a Bayesian
interpretation and the q-value. Annals of Statistics, 31(6), 2013-2035.
Käll, L., Storey, J. D., MacCoss, M. J., and Noble, W. S. (2008).
Posterior error probabilities and false discovery rates: two sides of the
same coin. Journal of Proteome Research, 7(1), 40-44.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Sequence

import numpy as np
import pandas as pd

from posterior_error_analysis.core_utils.errors import InvalidInputError, preview_ids


@dataclass
class QValueResult:
    """Ranks and q-values of a set of entities.

    Attributes
    ----------
    order : np.ndarray
        Input positions in rank order (``order[0]`` is the lowest PEP).
    rank : np.ndarray
        1-based rank of each entity, aligned to the input.
    qvalue : np.ndarray
        Q-value of each entity, aligned to the input.
    """

    order: np.ndarray
    rank: np.ndarray
    qvalue: np.ndarray

    def __len__(self) -> int:
        return int(self.order.size)

    @property
    def qvalues_in_rank_order(self) -> np.ndarray:
        return self.qvalue[self.order]


def _validate_peps(peps: Any) -> np.ndarray:
    pep_array = np.asarray(peps, dtype=np.float64).ravel()
    bad = ~np.isfinite(pep_array) | (pep_array < 0.0) | (pep_array > 1.0)
    if bad.any():
        positions = np.flatnonzero(bad).tolist()
        raise InvalidInputError(
            f"Posterior error probabilities must be finite and in [0, 1]; "
            f"invalid at positions: {preview_ids(positions)}."
        )
    return pep_array


def compute_qvalues(peps: Any) -> QValueResult:
    """Rank entities by PEP and compute their q-values.

    Parameters
    ----------
    peps : array-like
        Posterior error probabilities in [0, 1].

    Returns
    -------
    QValueResult
        Ranks and q-values aligned to the input.

    Notes
    -----
    The sort is stable, so tied PEPs keep their input order. Which of several
    tied entities sits at a selection boundary does not change any q-value;
    the stable order only makes the choice reproducible.

    Rounding in the cumulative sum can make the mean of a run of equal PEPs
    dip by one ulp; a running maximum restores the non-decreasing order the
    exact arithmetic guarantees.

    Examples
    --------
    >>> result = compute_qvalues([0.2, 0.0, 0.4])
    >>> result.rank
    array([2, 1, 3])
    >>> result.qvalues_in_rank_order
    array([0. , 0.1, 0.2])
    """
    pep_array = _validate_peps(peps)
    n = pep_array.size
    if n == 0:
        empty_int = np.zeros(0, dtype=np.int64)
        return QValueResult(order=empty_int, rank=empty_int.copy(), qvalue=np.zeros(0))

    order = np.argsort(pep_array, kind="stable")
    sorted_peps = pep_array[order]

    cumulative_mean = np.cumsum(sorted_peps) / np.arange(1, n + 1, dtype=np.float64)
    cumulative_mean = np.maximum.accumulate(cumulative_mean)
    np.clip(cumulative_mean, 0.0, 1.0, out=cumulative_mean)

    rank = np.empty(n, dtype=np.int64)
    rank[order] = np.arange(1, n + 1, dtype=np.int64)
    qvalue = np.empty(n, dtype=np.float64)
    qvalue[order] = cumulative_mean

    return QValueResult(order=order, rank=rank, qvalue=qvalue)


def aggregate(entity_ids: Sequence[Hashable], peps: Any) -> pd.DataFrame:
    """Rank-ordered table of ``entity_id, pep, rank, qvalue``.

    Zero entities give an empty table rather than an error.
    """
    pep_array = _validate_peps(peps)
    ids = list(entity_ids)
    if len(ids) != pep_array.size:
        raise InvalidInputError(
            f"entity_ids and peps must have the same length "
            f"(got {len(ids)} and {pep_array.size})"
        )

    result = compute_qvalues(pep_array)
    return pd.DataFrame(
        {
            "entity_id": [ids[i] for i in result.order],
            "pep": pep_array[result.order],
            "rank": result.rank[result.order],
            "qvalue": result.qvalue[result.order],
        }
    )


__all__ = ["QValueResult", "compute_qvalues", "aggregate"]
