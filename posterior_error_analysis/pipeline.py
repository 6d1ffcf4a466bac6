"""
End-to-end posterior error analysis.

counts -> conjugate posterior -> posterior error probability -> q-value ->
FDR-controlled discovery set, returned as one rank-ordered table.

All run parameters (prior, threshold, direction, budget) are explicit
arguments, so independent runs with different settings can execute
concurrently without sharing state.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Hashable, Iterable, Optional

import numpy as np
import pandas as pd

from posterior_error_analysis import config
from posterior_error_analysis.core_utils.data_utils import (
    EntityRecord,
    coerce_records,
    ensure_unique_ids,
    find_invalid_records,
)
from posterior_error_analysis.core_utils.errors import (
    InvalidInputError,
    NumericInstabilityError,
    preview_ids,
)
from posterior_error_analysis.empirical_bayes.conjugate_update import (
    BetaPrior,
    PosteriorParameters,
    credible_intervals,
    shrinkage_factor,
    update_posteriors,
)
from posterior_error_analysis.error_probability.incomplete_beta import (
    IncompleteBetaEvaluator,
    get_incomplete_beta_evaluator,
)
from posterior_error_analysis.error_probability.posterior_error import (
    compute_error_probabilities,
    error_probability,
    validate_direction,
    validate_threshold,
)
from posterior_error_analysis.multiple_testing.qvalues import compute_qvalues
from posterior_error_analysis.multiple_testing.selection import (
    select_discoveries,
    validate_budget,
)

# Configure logger (library-friendly: leave handlers/levels to callers)
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


OUTPUT_COLUMNS = [
    "entity_id",
    "successes",
    "trials",
    "posterior_alpha",
    "posterior_beta",
    "point_estimate",
    "credible_lower",
    "credible_upper",
    "shrinkage",
    "pep",
    "rank",
    "qvalue",
]


def _split_valid_records(
    frame: pd.DataFrame, strict: bool
) -> tuple[pd.DataFrame, Dict[Hashable, str]]:
    """Separate invalid records, raising on the first one in strict mode."""
    failures = find_invalid_records(frame)
    if not failures:
        return frame, {}

    if strict:
        bad_ids = list(failures)
        first = bad_ids[0]
        raise InvalidInputError(
            f"Invalid entity records ({failures[first]} for {first!r}): "
            f"{preview_ids(bad_ids)}."
        )

    logger.warning(
        "Dropping %d invalid entity records: %s",
        len(failures),
        preview_ids(list(failures)),
    )
    keep = ~frame["entity_id"].isin(list(failures))
    return frame.loc[keep].reset_index(drop=True), failures


def _error_probabilities_per_entity(
    posterior: PosteriorParameters,
    ids: list,
    threshold: float,
    direction: str,
    evaluator: IncompleteBetaEvaluator,
) -> tuple[np.ndarray, Dict[Hashable, str]]:
    """Sequential fallback that isolates entities the backend cannot evaluate."""
    peps = np.full(len(posterior), np.nan, dtype=np.float64)
    unstable: Dict[Hashable, str] = {}
    for i, (a, b) in enumerate(zip(posterior.alpha.tolist(), posterior.beta.tolist())):
        try:
            peps[i] = error_probability(a, b, threshold, direction, evaluator)
        except NumericInstabilityError as exc:
            unstable[ids[i]] = f"numeric instability: {exc}"
    return peps, unstable


def _empty_result() -> pd.DataFrame:
    return pd.DataFrame({column: [] for column in OUTPUT_COLUMNS})


def run_posterior_error_analysis(
    records: pd.DataFrame | Iterable[EntityRecord | tuple[Any, Any, Any]],
    prior: BetaPrior,
    threshold: float,
    direction: str = config.DEFAULT_DIRECTION,
    fdr_budget: Optional[float] = None,
    *,
    strict: bool = True,
    method: str = config.INCOMPLETE_BETA_METHOD,
    credible_level: float = config.CREDIBLE_INTERVAL_LEVEL,
    n_jobs: Optional[int] = None,
) -> pd.DataFrame:
    """Classify entities by posterior error probability under FDR control.

    Parameters
    ----------
    records
        Entity counts as a DataFrame (``entity_id``, ``successes``,
        ``trials``) or an iterable of :class:`EntityRecord` /
        ``(id, s, n)`` tuples.
    prior : BetaPrior
        Fixed population prior.
    threshold : float
        Decision threshold on the true rate, strictly in (0, 1).
    direction : {"below", "above"}
        Side of the threshold that counts as an error. With "below", an
        entity qualifies when its rate exceeds the threshold.
    fdr_budget : float, optional
        Target FDR in (0, 1). When given, an ``included`` column marks the
        largest rank prefix whose q-value stays below it.
    strict : bool, default=True
        If True, any invalid record raises :class:`InvalidInputError`. If
        False, invalid or numerically unstable entities are dropped and
        listed in ``result.attrs["validation_failures"]``.
    method : str
        Incomplete beta backend, see
        :func:`~posterior_error_analysis.error_probability.get_incomplete_beta_evaluator`.
    credible_level : float
        Mass of the reported equal-tailed credible interval.
    n_jobs : int, optional
        joblib workers for the per-entity stage.

    Returns
    -------
    pd.DataFrame
        One row per valid entity, sorted by rank, with columns
        ``entity_id, successes, trials, posterior_alpha, posterior_beta,
        point_estimate, credible_lower, credible_upper, shrinkage, pep,
        rank, qvalue`` and ``included`` when a budget is given.
        ``attrs["posterior_error_audit"]`` records the run settings and
        counts.

    Examples
    --------
    >>> table = run_posterior_error_analysis(
    ...     [("A", 400, 1000), ("B", 3, 10)],
    ...     prior=BetaPrior(10, 20),
    ...     threshold=0.3,
    ...     fdr_budget=0.05,
    ... )
    >>> table["entity_id"].tolist(), table["included"].tolist()
    (['A', 'B'], [True, False])
    """
    t0 = time.perf_counter()
    t = validate_threshold(threshold)
    validate_direction(direction)
    budget = validate_budget(fdr_budget) if fdr_budget is not None else None
    evaluator = get_incomplete_beta_evaluator(method)

    frame = coerce_records(records)
    ensure_unique_ids(frame)
    n_input = len(frame)
    frame, failures = _split_valid_records(frame, strict)

    successes = frame["successes"].to_numpy(dtype=np.float64)
    trials = frame["trials"].to_numpy(dtype=np.float64)
    posterior = update_posteriors(prior, successes, trials)

    try:
        peps = compute_error_probabilities(
            posterior, t, direction, evaluator=evaluator, n_jobs=n_jobs
        )
    except NumericInstabilityError:
        if strict:
            raise
        peps, unstable = _error_probabilities_per_entity(
            posterior, frame["entity_id"].tolist(), t, direction, evaluator
        )
        logger.warning(
            "Dropping %d numerically unstable entities: %s",
            len(unstable),
            preview_ids(list(unstable)),
        )
        failures.update(unstable)
        stable = ~np.isnan(peps)
        frame = frame.loc[stable].reset_index(drop=True)
        peps = peps[stable]
        successes, trials = successes[stable], trials[stable]
        posterior = PosteriorParameters(
            alpha=posterior.alpha[stable], beta=posterior.beta[stable]
        )

    if len(frame) == 0:
        result = _empty_result()
        if budget is not None:
            result["included"] = pd.Series([], dtype=bool)
    else:
        lower, upper = credible_intervals(posterior, credible_level)
        qresult = compute_qvalues(peps)
        result = pd.DataFrame(
            {
                "entity_id": frame["entity_id"].to_numpy(),
                "successes": successes.astype(np.int64),
                "trials": trials.astype(np.int64),
                "posterior_alpha": posterior.alpha,
                "posterior_beta": posterior.beta,
                "point_estimate": posterior.mean,
                "credible_lower": lower,
                "credible_upper": upper,
                "shrinkage": shrinkage_factor(prior, trials),
                "pep": peps,
                "rank": qresult.rank,
                "qvalue": qresult.qvalue,
            }
        )
        result = result.iloc[qresult.order].reset_index(drop=True)
        if budget is not None:
            k = select_discoveries(result["qvalue"].to_numpy(), budget)
            result["included"] = result["rank"].to_numpy() <= k

    n_selected = int(result["included"].sum()) if budget is not None else None
    result.attrs["validation_failures"] = failures
    result.attrs["posterior_error_audit"] = {
        "prior_alpha": prior.alpha,
        "prior_beta": prior.beta,
        "threshold": t,
        "direction": direction,
        "fdr_budget": budget,
        "method": method,
        "input_entities": n_input,
        "evaluated_entities": len(result),
        "failed_entities": len(failures),
        "selected_entities": n_selected,
    }

    logger.info(
        "Posterior error analysis: %d/%d entities evaluated, %s selected "
        "(direction=%s, t=%.4g, budget=%s) [%.2fs]",
        len(result),
        n_input,
        "-" if n_selected is None else n_selected,
        direction,
        t,
        budget,
        time.perf_counter() - t0,
    )
    return result


__all__ = ["run_posterior_error_analysis", "OUTPUT_COLUMNS"]
