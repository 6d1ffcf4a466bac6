"""False discovery rate control from posterior error probabilities.

Modules
-------
qvalues
    Stable ranking and cumulative-mean q-values
selection
    Largest rank prefix under an FDR budget
"""

from .qvalues import QValueResult, aggregate, compute_qvalues
from .selection import discovery_mask, select_discoveries, validate_budget

__all__ = [
    "QValueResult",
    "compute_qvalues",
    "aggregate",
    "select_discoveries",
    "discovery_mask",
    "validate_budget",
]
