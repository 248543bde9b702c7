from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

import numpy as np
import pandas as pd

from .errors import ValidationError
from .intervals import (
    INTERVAL_COLUMNS,
    as_intervals,
    assert_same_loci,
    iter_intervals,
    sort_intervals,
    subset_by_overlaps,
)
from .tracks import Stat, TrackHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Sequence[T], *, max_workers: int | None = None) -> list[R]:
    """Apply `func` to every item in a thread pool; results keep input order."""
    if len(items) <= 1 or max_workers == 1:
        return [func(x) for x in items]
    with ThreadPoolExecutor(max_workers=max_workers or min(len(items), 8)) as ex:
        return list(ex.map(func, items))


def validate_labels(tracks: Sequence, labels: Sequence[str]) -> list[str]:
    labels = [str(x) for x in labels]
    if len(tracks) == 0:
        raise ValidationError("Track list provided is empty.")
    if len(tracks) != len(labels):
        raise ValidationError(
            f"Track list and labels must have the same length ({len(tracks)} != {len(labels)})."
        )
    dup = sorted({x for x in labels if labels.count(x) > 1})
    if dup:
        raise ValidationError(f"Duplicate labels: {dup}")
    clash = sorted(set(labels) & set(INTERVAL_COLUMNS))
    if clash:
        raise ValidationError(f"Labels clash with interval columns: {clash}")
    return labels


def score_track(track: TrackHandle, loci: pd.DataFrame, stat: Stat) -> pd.DataFrame:
    """Query one track for `stat` over every locus.

    Returns:
        (chrom, start, end, strand, score) frame in the order the loci were given
    """

    scores = np.array([track.query_stat(iv, stat) for iv in iter_intervals(loci)], dtype=np.float64)
    out = loci[INTERVAL_COLUMNS].copy()
    out["score"] = scores
    return out


def cbind_scores(reference: pd.DataFrame, scored: Sequence[pd.DataFrame], labels: Sequence[str]) -> pd.DataFrame:
    """Join per-track score frames column-wise onto the sorted reference loci.

    Each frame is sorted into canonical order and its row identity checked against
    the reference before its scores are placed.
    """

    result = reference[INTERVAL_COLUMNS].copy()
    for label, frame in zip(labels, scored):
        frame = sort_intervals(frame)
        assert_same_loci(result, frame, what=f"track {label!r}")
        result[label] = frame["score"].to_numpy()
    return result


def score_intervals(
    tracks: Sequence[TrackHandle],
    labels: Sequence[str],
    loci: pd.DataFrame,
    stat: Stat | str = Stat.MEAN,
    *,
    selection: pd.DataFrame | None = None,
    max_workers: int | None = None,
) -> pd.DataFrame:
    """Build a row-aligned (locus x track) table of one statistic per cell.

    Args:
        tracks: open track handles
        labels: one unique column name per track
        loci: interval table (1-based inclusive)
        stat: mean, min, max or stdev
        selection: optional intervals; only loci overlapping them are scored

    Returns:
        interval columns + one column per label + extra `loci` columns (e.g. `name`)
    """

    labels = validate_labels(tracks, labels)
    stat = Stat.parse(stat)

    loci = sort_intervals(as_intervals(loci))
    extra = [c for c in loci.columns if c not in INTERVAL_COLUMNS]
    clash = sorted(set(labels) & set(extra))
    if clash:
        raise ValidationError(f"Labels clash with interval columns: {clash}")
    if selection is not None:
        loci = subset_by_overlaps(loci, as_intervals(selection))
    logger.debug("Scoring %d loci over %d tracks (%s)", len(loci), len(tracks), stat.value)

    scored = fan_out(lambda t: score_track(t, loci, stat), list(tracks), max_workers=max_workers)
    result = cbind_scores(loci, scored, labels)

    for col in extra:
        result[col] = loci[col].to_numpy()
    return result
