"""
Central configuration for the posterior error analysis library.
"""

import logging
import os

logger = logging.getLogger(__name__)

# --- Decision Parameters ---

# Default side of the threshold on which an entity counts as an error.
# "below": the entity fails if its true rate is below the threshold.
# "above": the entity fails if its true rate is above the threshold.
DEFAULT_DIRECTION: str = "below"

# Supported directions for error probability evaluation.
DIRECTIONS: tuple[str, ...] = ("below", "above")

# Default false discovery rate budget used when selecting a discovery set.
DEFAULT_FDR_BUDGET: float = 0.05

# --- Posterior Summaries ---

# Probability mass covered by the equal-tailed credible interval.
CREDIBLE_INTERVAL_LEVEL: float = 0.95

# --- Incomplete Beta Evaluation ---

# Default backend for the regularized incomplete beta function.
# Options: "continued_fraction", "scipy"
INCOMPLETE_BETA_METHOD: str = "continued_fraction"

# Convergence tolerance for the modified Lentz continued fraction.
# Kept well below the 1e-9 relative error guaranteed to callers.
CONTINUED_FRACTION_TOLERANCE: float = 1e-15

# Hard cap on continued fraction iterations. Convergence takes roughly
# O(sqrt(max(a, b))) steps, so this covers shape parameters far beyond
# realistic trial counts before NumericInstabilityError is raised.
CONTINUED_FRACTION_MAX_ITERATIONS: int = 10_000

# Floor protecting Lentz denominators from exact zero.
CONTINUED_FRACTION_TINY: float = 1e-300

# --- Prior Estimation ---

# Minimum trials for an entity to contribute to method-of-moments prior fits.
PRIOR_MIN_TRIALS: int = 1

# --- Parallelism ---

# Environment variable overriding the number of joblib workers
# (e.g. "1" to disable parallelism).
N_JOBS_ENV_VAR: str = "PEP_FDR_N_JOBS"

# Below this many entities the per-entity map phase runs sequentially.
MIN_ENTITIES_FOR_PARALLEL: int = 2_000

# Number of entities handed to each worker task.
PARALLEL_CHUNK_SIZE: int = 1_000


def resolve_n_jobs(n_tasks: int, n_jobs: int | None = None) -> int:
    """Resolve the number of parallel workers.

    An explicit ``n_jobs`` wins, then a non-zero integer in
    ``PEP_FDR_N_JOBS`` (joblib semantics, so ``-1`` means all cores).
    Otherwise returns 1 (sequential) when the number of tasks is small.
    An unusable environment value is logged and ignored.
    """
    if n_jobs is not None:
        return n_jobs
    env = os.environ.get(N_JOBS_ENV_VAR)
    if env is not None:
        try:
            value = int(env)
        except ValueError:
            value = 0
        if value != 0:
            return value
        logger.warning(
            "Ignoring %s=%r: expected a non-zero integer worker count.",
            N_JOBS_ENV_VAR,
            env,
        )
    if n_tasks < MIN_ENTITIES_FOR_PARALLEL:
        return 1
    return -1  # joblib: use all available cores
