from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

import numpy as np
import pandas as pd

from .errors import ValidationError, diagnostic
from .intervals import INTERVAL_COLUMNS, natural_sort_key

logger = logging.getLogger(__name__)

MAX_CATEGORIES = 50


class AggregationMethod(str, Enum):
    """How loci sharing a category are reduced.

    true_mean: all loci of a category treated as one concatenated region
        (length-weighted mean of the per-locus values).
    mean: unweighted mean of the per-locus values.
    median: median of the per-locus values.
    """

    MEAN = "mean"
    MEDIAN = "median"
    TRUE_MEAN = "true_mean"

    @classmethod
    def parse(cls, value: "AggregationMethod | str") -> "AggregationMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"Function not implemented as aggregate_by: {value!r} (allowed: {allowed})") from None


def validate_categories(values: pd.Series) -> int:
    """Warn when a category column looks like unique IDs rather than categories."""
    ncat = int(values.nunique(dropna=True))
    if ncat > MAX_CATEGORIES:
        diagnostic(
            f"Number of values in group column field very large: {ncat} "
            "(does the interval file have unique IDs instead of categories?)",
            logger,
        )
    return ncat


def score_columns(table: pd.DataFrame, group_col: str) -> list[str]:
    skip = set(INTERVAL_COLUMNS) | {group_col, "width", "score"}
    return [c for c in table.columns if c not in skip and pd.api.types.is_numeric_dtype(table[c])]


def natural_sort_index(df: pd.DataFrame) -> pd.DataFrame:
    """Rows in natural order of their index; a missing category sorts last."""
    idx = df.index
    order = sorted(range(len(idx)), key=lambda i: (bool(pd.isna(idx[i])), natural_sort_key(idx[i])))
    return df.iloc[order]


def _reduce(values: pd.DataFrame, keys: pd.Series, func) -> pd.DataFrame:
    # numpy reductions so that NaN values propagate to their category
    return values.groupby(keys, sort=False, dropna=False).agg(lambda s: func(s.to_numpy(dtype=np.float64)))


def aggregate_scores(
    table: pd.DataFrame,
    group_col: str = "name",
    method: AggregationMethod | str = AggregationMethod.MEAN,
    labels: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Aggregate per-locus scores by a category column.

    Args:
        table: scored interval table (1-based inclusive start/end)
        group_col: category column, usually `name`
        method: mean, median or true_mean
        labels: score columns to reduce; defaults to every numeric non-coordinate column

    Returns:
        one row per category (index named `group_col`), natural-sort ordered
    """

    if group_col not in table.columns:
        raise ValidationError(f"Invalid group column not present in table: {group_col!r}")
    method = AggregationMethod.parse(method)
    labels = list(labels) if labels is not None else score_columns(table, group_col)
    missing = [c for c in labels if c not in table.columns]
    if missing:
        raise ValidationError(f"Score columns not present in table: {missing}")

    validate_categories(table[group_col])
    # loci without a category form their own group
    keys = table[group_col].map(lambda v: v if pd.isna(v) else str(v)).rename(group_col)
    values = table[labels].astype(np.float64)

    if method is AggregationMethod.TRUE_MEAN:
        # GRanges-style inclusive coordinates
        length = (table["end"] - table["start"] + 1).astype(np.float64)
        sums = _reduce(values.mul(length, axis=0), keys, np.sum)
        total = length.groupby(keys, sort=False, dropna=False).sum()
        # same keys and flags, so both reductions list groups in the same order
        df = sums.div(total.to_numpy(), axis=0)
    elif method is AggregationMethod.MEAN:
        df = _reduce(values, keys, np.mean)
    else:
        df = _reduce(values, keys, np.median)

    df.index.name = group_col
    df.columns = labels
    return natural_sort_index(df)
