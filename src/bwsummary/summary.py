from __future__ import annotations

import logging
import re
from contextlib import ExitStack
from pathlib import Path
from typing import Sequence, Union

import pandas as pd

from .aggregate import AggregationMethod, aggregate_scores
from .binning import build_bins
from .errors import NotFoundError, ValidationError
from .intervals import load_intervals
from .normalize import Transform, check_background, normalize, resolve_transform
from .profile import ProfileParams, calculate_profile
from .scoring import fan_out, score_intervals, validate_labels
from .tracks import Stat, TrackHandle, open_track

logger = logging.getLogger(__name__)

TrackSource = Union[str, Path, TrackHandle]
IntervalSource = Union[str, Path, pd.DataFrame]


def _as_list(x) -> list:
    if x is None:
        return []
    if isinstance(x, (str, Path)) or not isinstance(x, Sequence):
        return [x]
    return list(x)


def validate_filelist(sources: Sequence) -> None:
    """Check that a track list is not empty and that every path in it exists."""
    if len(sources) == 0:
        raise ValidationError("File list provided is empty.")
    missing = [str(s) for s in sources if isinstance(s, (str, Path)) and not Path(s).exists()]
    if missing:
        raise NotFoundError(f"Files not found: {', '.join(missing)}")


def make_names(names: Sequence[str]) -> list[str]:
    """Turn names into valid identifiers ("1-a.bw" -> "X1.a.bw")."""
    out = []
    for n in names:
        n = re.sub(r"[^0-9A-Za-z_.]", ".", str(n))
        if not n or not re.match(r"[A-Za-z.]", n) or re.match(r"\.[0-9]", n):
            n = "X" + n
        out.append(n)
    return out


def default_labels(sources: Sequence[TrackSource]) -> list[str]:
    labels = []
    for i, s in enumerate(sources):
        path = s if isinstance(s, (str, Path)) else getattr(s, "path", None)
        labels.append(Path(path).name if path is not None else f"track{i + 1}")
    return labels


def _open_all(stack: ExitStack, sources: Sequence[TrackSource]) -> list[TrackHandle]:
    handles = []
    for s in sources:
        if isinstance(s, (str, Path)):
            handles.append(stack.enter_context(open_track(s)))
        else:
            handles.append(s)
    return handles


def _prepare(tracks, background, labels, *, valid_names: bool = False):
    tracks = _as_list(tracks)
    validate_filelist(tracks)
    background = _as_list(background) if background is not None else None
    check_background(tracks, background)
    if background is not None:
        validate_filelist(background)
    if labels is None:
        labels = default_labels(tracks)
        if valid_names:
            labels = make_names(labels)
    labels = validate_labels(tracks, _as_list(labels))
    return tracks, background, labels


def score_by_regions(
    tracks: TrackSource | Sequence[TrackSource],
    intervals: IntervalSource,
    *,
    background: TrackSource | Sequence[TrackSource] | None = None,
    labels: Sequence[str] | None = None,
    stat: Stat | str = Stat.MEAN,
    aggregate_by: AggregationMethod | str | None = None,
    group_col: str = "name",
    transform: Transform | str | None = None,
    max_workers: int | None = None,
) -> pd.DataFrame:
    """Score a set of loci against one or more tracks.

    Without `aggregate_by`, returns one row per locus; a background, if given, is
    divided out per locus. With `aggregate_by`, returns one row per `group_col`
    category and the background ratio is taken between the two aggregated tables:
    transform(aggregate(fg) / aggregate(bg)).
    """

    tracks, background, labels = _prepare(tracks, background, labels)
    stat = Stat.parse(stat)
    transform = resolve_transform(transform)
    method = AggregationMethod.parse(aggregate_by) if aggregate_by is not None else None

    loci = load_intervals(intervals)
    if method is not None and group_col not in loci.columns:
        raise ValidationError(f"Invalid group column not present in intervals: {group_col!r}")

    with ExitStack() as stack:
        fg = score_intervals(_open_all(stack, tracks), labels, loci, stat, max_workers=max_workers)
        bg = None
        if background is not None:
            bg = score_intervals(_open_all(stack, background), labels, loci, stat, max_workers=max_workers)

    if method is None:
        if bg is None:
            return fg
        return normalize(fg, bg, labels, transform)

    result = aggregate_scores(fg, group_col, method, labels)
    if bg is not None:
        bg_agg = aggregate_scores(bg, group_col, method, labels)
        result = normalize(result, bg_agg, labels, transform, per_locus=False)
    return result


def score_by_bins(
    tracks: TrackSource | Sequence[TrackSource],
    *,
    background: TrackSource | Sequence[TrackSource] | None = None,
    labels: Sequence[str] | None = None,
    stat: Stat | str = Stat.MEAN,
    bin_size: int = 10000,
    genome: str | Path | dict[str, int] = "mm9",
    selection: IntervalSource | None = None,
    transform: Transform | str | None = None,
    max_workers: int | None = None,
) -> pd.DataFrame:
    """Score genome-wide fixed-size bins against one or more tracks.

    `selection` restricts scoring to bins overlapping those intervals.
    """

    tracks, background, labels = _prepare(tracks, background, labels, valid_names=True)
    stat = Stat.parse(stat)
    transform = resolve_transform(transform)

    tiles = build_bins(bin_size=bin_size, genome=genome)
    sel = load_intervals(selection) if selection is not None else None

    with ExitStack() as stack:
        result = score_intervals(
            _open_all(stack, tracks), labels, tiles, stat, selection=sel, max_workers=max_workers
        )
        if background is None:
            return result
        bg = score_intervals(
            _open_all(stack, background), labels, tiles, stat, selection=sel, max_workers=max_workers
        )

    return normalize(result, bg, labels, transform)


def profile(
    tracks: TrackSource | Sequence[TrackSource],
    intervals: IntervalSource,
    *,
    background: TrackSource | Sequence[TrackSource] | None = None,
    labels: Sequence[str] | None = None,
    mode: str = "stretch",
    bin_size: int = 100,
    upstream: int = 2500,
    downstream: int = 2500,
    ignore_strand: bool = False,
    transform: Transform | str | None = None,
    max_workers: int | None = None,
) -> pd.DataFrame:
    """Profiles of each track over `intervals`, concatenated in long format.

    Returns:
        columns: mean, sderror, median, index, sample
    """

    params = ProfileParams(
        mode=mode,
        bin_size=int(bin_size),
        upstream=int(upstream),
        downstream=int(downstream),
        ignore_strand=bool(ignore_strand),
        transform=resolve_transform(transform),
    )
    tracks, background, labels = _prepare(tracks, background, labels)
    loci = load_intervals(intervals)
    logger.debug("Profiling %d loci over %d tracks (%s)", len(loci), len(tracks), params.mode.value)

    with ExitStack() as stack:
        fg = _open_all(stack, tracks)
        bg = _open_all(stack, background) if background is not None else [None] * len(fg)
        jobs = list(zip(fg, bg, labels))
        tables = fan_out(
            lambda job: calculate_profile(job[0], loci, params, bg_track=job[1], label=job[2]),
            jobs,
            max_workers=max_workers,
        )

    return pd.concat(tables, ignore_index=True)
