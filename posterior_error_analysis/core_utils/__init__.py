"""Shared record handling and error types."""

from .errors import InvalidInputError, NumericInstabilityError
from .data_utils import (
    EntityRecord,
    coerce_records,
    ensure_unique_ids,
    find_invalid_records,
    validate_count_arrays,
)

__all__ = [
    "InvalidInputError",
    "NumericInstabilityError",
    "EntityRecord",
    "coerce_records",
    "ensure_unique_ids",
    "find_invalid_records",
    "validate_count_arrays",
]
