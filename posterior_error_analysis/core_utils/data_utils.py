from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterable

import numpy as np
import pandas as pd

from .errors import InvalidInputError, preview_ids

RECORD_COLUMNS: list[str] = ["entity_id", "successes", "trials"]


@dataclass(frozen=True)
class EntityRecord:
    """Observed binary-trial counts for a single entity."""

    entity_id: Hashable
    successes: int
    trials: int


def coerce_records(
    records: pd.DataFrame | Iterable[EntityRecord | tuple[Any, Any, Any]],
) -> pd.DataFrame:
    """Normalize entity records into a DataFrame.

    Parameters
    ----------
    records
        Either a DataFrame with ``entity_id``, ``successes`` and ``trials``
        columns, or an iterable of :class:`EntityRecord` / ``(id, s, n)``
        tuples.

    Returns
    -------
    pd.DataFrame
        Three-column frame in input order with a fresh ``RangeIndex``.
        Counts are not validated here; see :func:`find_invalid_records`.

    Raises
    ------
    InvalidInputError
        If required columns are missing or a tuple does not have three fields.
    """
    if isinstance(records, pd.DataFrame):
        missing = [c for c in RECORD_COLUMNS if c not in records.columns]
        if missing:
            raise InvalidInputError(
                f"Missing required record columns: {preview_ids(missing)}."
            )
        return records.loc[:, RECORD_COLUMNS].reset_index(drop=True)

    rows = []
    for idx, record in enumerate(records):
        if isinstance(record, EntityRecord):
            rows.append((record.entity_id, record.successes, record.trials))
            continue
        if isinstance(record, (str, bytes)):
            raise InvalidInputError(
                f"records[{idx}] must be (entity_id, successes, trials), "
                f"got {type(record).__name__} {record!r}"
            )
        fields = tuple(record)
        if len(fields) != 3:
            raise InvalidInputError(
                f"records[{idx}] must be (entity_id, successes, trials), "
                f"got {len(fields)} fields"
            )
        rows.append(fields)

    return pd.DataFrame.from_records(rows, columns=RECORD_COLUMNS)


def _count_violations(
    successes: np.ndarray, trials: np.ndarray, boolean: np.ndarray
) -> list[tuple[np.ndarray, str]]:
    """Return (mask, reason) pairs for every count constraint, in priority order."""
    finite = np.isfinite(successes) & np.isfinite(trials)
    with np.errstate(invalid="ignore"):
        s = np.where(finite, successes, 0.0)
        n = np.where(finite, trials, 0.0)
        return [
            (boolean, "counts must be numbers, not booleans"),
            (~boolean & ~finite, "counts must be finite numbers"),
            (finite & ((s < 0) | (n < 0)), "counts must be non-negative"),
            (
                finite & ((s != np.floor(s)) | (n != np.floor(n))),
                "counts must be integers",
            ),
            (finite & (s > n), "successes must not exceed trials"),
        ]


def _as_float_counts(values: Any) -> tuple[np.ndarray, np.ndarray]:
    """Coerce counts to float64, flagging booleans (which would read as 0/1)."""
    series = pd.Series(values, dtype=object)
    boolean = series.map(lambda v: isinstance(v, (bool, np.bool_))).to_numpy(dtype=bool)
    floats = pd.to_numeric(series.where(~boolean), errors="coerce").to_numpy(
        dtype=np.float64
    )
    return floats, boolean


def validate_count_arrays(successes: Any, trials: Any) -> tuple[np.ndarray, np.ndarray]:
    """Validate success/trial counts and return them as float64 arrays.

    Raises
    ------
    InvalidInputError
        If the arrays differ in length, or any position holds a boolean,
        negative, non-integer or non-finite count, or ``successes > trials``.
    """
    s, s_bool = _as_float_counts(np.atleast_1d(np.asarray(successes, dtype=object)))
    n, n_bool = _as_float_counts(np.atleast_1d(np.asarray(trials, dtype=object)))
    if s.shape != n.shape:
        raise InvalidInputError(
            f"successes and trials must have the same length "
            f"(got {s.size} and {n.size})"
        )

    for mask, reason in _count_violations(s, n, s_bool | n_bool):
        if mask.any():
            bad = np.flatnonzero(mask).tolist()
            raise InvalidInputError(f"{reason} at positions: {preview_ids(bad)}.")

    return s, n


def find_invalid_records(frame: pd.DataFrame) -> dict[Hashable, str]:
    """Map each invalid record's id to the first constraint it violates.

    Used in batch mode so that bad entities can be reported without
    discarding the rest of the run.
    """
    s, s_bool = _as_float_counts(frame["successes"].to_numpy())
    n, n_bool = _as_float_counts(frame["trials"].to_numpy())
    ids = frame["entity_id"].tolist()

    failures: dict[Hashable, str] = {}
    for mask, reason in _count_violations(s, n, s_bool | n_bool):
        for i in np.flatnonzero(mask):
            failures.setdefault(ids[i], reason)
    return failures


def ensure_unique_ids(frame: pd.DataFrame) -> None:
    """Raise if any entity identifier occurs more than once."""
    duplicated = frame["entity_id"].duplicated(keep="first")
    if duplicated.any():
        dupes = frame.loc[duplicated, "entity_id"].tolist()
        raise InvalidInputError(f"Duplicate entity ids: {preview_ids(dupes)}.")


__all__ = [
    "EntityRecord",
    "RECORD_COLUMNS",
    "coerce_records",
    "validate_count_arrays",
    "find_invalid_records",
    "ensure_unique_ids",
]
