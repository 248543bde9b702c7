"""Positional signal profiles over a set of loci.

Each locus becomes one row of a profile matrix sampled at a fixed number of
points. Rows are aligned in one of four ways:

- stretch: upstream flank, locus body and downstream flank are sampled
  separately and concatenated; every body is squeezed or stretched to the
  point count implied by the median locus width.
- start / end / center: loci are reduced to one anchor base and a window of
  `upstream + downstream` bp around it is sampled.

Minus-strand rows are reversed so that all rows read 5' to 3'. The matrix is
finally summarized column-wise (mean, standard error, median) into a long table.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum

import numpy as np
import pandas as pd
from scipy import stats

from .errors import ConfigError, ValidationError, diagnostic
from .intervals import GenomicInterval, as_intervals
from .normalize import Transform, ratio
from .tracks import TrackHandle

logger = logging.getLogger(__name__)

MAX_MISSING = 100


class ProfileMode(str, Enum):
    STRETCH = "stretch"
    START = "start"
    END = "end"
    CENTER = "center"

    @classmethod
    def parse(cls, value: "ProfileMode | str") -> "ProfileMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown profile mode {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class ProfileParams:
    mode: ProfileMode | str = ProfileMode.STRETCH
    bin_size: int = 100
    upstream: int = 2500
    downstream: int = 2500
    ignore_strand: bool = False
    transform: Transform | str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", ProfileMode.parse(self.mode))
        if self.bin_size <= 0:
            raise ConfigError(f"bin size must be a positive value: {self.bin_size}")
        if self.upstream <= 0:
            raise ConfigError(f"upstream size must be a positive value: {self.upstream}")
        if self.downstream <= 0:
            raise ConfigError(f"downstream size must be a positive value: {self.downstream}")
        if self.bin_size > self.upstream or self.bin_size > self.downstream:
            raise ConfigError("bin size must be smaller than flanking regions")

    @property
    def window_points(self) -> int:
        return int((self.upstream + self.downstream) // self.bin_size)

    @property
    def left_points(self) -> int:
        return int(self.upstream // self.bin_size)

    @property
    def right_points(self) -> int:
        return int(self.downstream // self.bin_size)

    def middle_points(self, widths: np.ndarray) -> int:
        if len(widths) == 0:
            return 0
        return int(np.floor(np.median(widths) / self.bin_size))


def _minus_mask(loci: pd.DataFrame, ignore_strand: bool) -> np.ndarray:
    if ignore_strand:
        return np.zeros(len(loci), dtype=bool)
    return (loci["strand"] == "-").to_numpy()


def _windows(loci: pd.DataFrame, starts: np.ndarray, ends: np.ndarray) -> list[GenomicInterval]:
    return [
        GenomicInterval(chrom=str(c), start=int(s), end=int(e), strand=str(st))
        for c, s, e, st in zip(loci["chrom"], starts, ends, loci["strand"])
    ]


def anchor_windows(loci: pd.DataFrame, params: ProfileParams) -> list[GenomicInterval]:
    """Windows of upstream + downstream bp around each locus anchor (start, end or center)."""
    start = loci["start"].to_numpy(dtype=np.int64)
    end = loci["end"].to_numpy(dtype=np.int64)
    minus = _minus_mask(loci, params.ignore_strand)

    if params.mode is ProfileMode.START:
        anchor = np.where(minus, end, start)
    elif params.mode is ProfileMode.END:
        anchor = np.where(minus, start, end)
    else:
        anchor = start + (end - start) // 2

    w_start = np.where(minus, anchor - params.downstream + 1, anchor - params.upstream)
    w_end = np.where(minus, anchor + params.upstream, anchor + params.downstream - 1)
    return _windows(loci, w_start, w_end)


def flank_windows(loci: pd.DataFrame, width: int, *, upstream: bool, ignore_strand: bool) -> list[GenomicInterval]:
    """Flanks of `width` bp on the 5' (upstream=True) or 3' side of each locus."""
    start = loci["start"].to_numpy(dtype=np.int64)
    end = loci["end"].to_numpy(dtype=np.int64)
    minus = _minus_mask(loci, ignore_strand)
    before = minus != upstream  # genomic left side

    w_start = np.where(before, start - width, end + 1)
    w_end = np.where(before, start - 1, end + width)
    return _windows(loci, w_start, w_end)


def query_matrix(
    track: TrackHandle,
    windows: list[GenomicInterval],
    n_points: int,
    minus: np.ndarray,
) -> np.ndarray:
    """Sample `n_points` per window; rows flagged in `minus` are reversed."""
    if n_points <= 0:
        return np.empty((len(windows), 0), dtype=np.float64)
    m = np.empty((len(windows), n_points), dtype=np.float64)
    for i, w in enumerate(windows):
        row = np.asarray(track.query_profile(w, n_points), dtype=np.float64)
        if row.shape != (n_points,):
            raise ValidationError(f"Track returned {row.shape[0]} points for {w}; expected {n_points}")
        m[i] = row
    m[minus] = m[minus, ::-1]
    return m


def stretch_matrix(track: TrackHandle, loci: pd.DataFrame, params: ProfileParams) -> np.ndarray:
    widths = (loci["end"] - loci["start"] + 1).to_numpy()
    minus = _minus_mask(loci, params.ignore_strand)
    middle_n = params.middle_points(widths)
    if middle_n == 0:
        logger.debug("Median locus width below bin size; locus body contributes no columns")

    left = query_matrix(
        track,
        flank_windows(loci, params.upstream, upstream=True, ignore_strand=params.ignore_strand),
        params.left_points,
        minus,
    )
    middle = query_matrix(track, _windows(loci, loci["start"].to_numpy(), loci["end"].to_numpy()), middle_n, minus)
    right = query_matrix(
        track,
        flank_windows(loci, params.downstream, upstream=False, ignore_strand=params.ignore_strand),
        params.right_points,
        minus,
    )
    return np.hstack([left, middle, right])


def profile_matrix(track: TrackHandle, loci: pd.DataFrame, params: ProfileParams) -> np.ndarray:
    """Build the (n_loci, n_points) profile matrix of one track."""
    if params.mode is ProfileMode.STRETCH:
        return stretch_matrix(track, loci, params)
    return query_matrix(
        track,
        anchor_windows(loci, params),
        params.window_points,
        _minus_mask(loci, params.ignore_strand),
    )


def summarize_matrix(matrix: np.ndarray, label: str) -> pd.DataFrame:
    """Column-wise mean, standard error and median of a profile matrix, ignoring NaN/inf.

    Returns:
        columns: mean, sderror, median, index (1-based column), sample
    """

    m = np.array(matrix, dtype=np.float64)
    m[np.isinf(m)] = np.nan

    omitted = int(np.isnan(m).sum())
    if omitted > MAX_MISSING:
        per_locus = omitted / m.shape[0] if m.shape[0] else float("nan")
        diagnostic(f"Profile plot: {omitted} missing values generated ({per_locus:g} per locus)", logger)

    with warnings.catch_warnings():
        # all-NaN columns yield NaN summaries
        warnings.simplefilter("ignore", RuntimeWarning)
        mean = np.nanmean(m, axis=0)
        median = np.nanmedian(m, axis=0)
        sderror = np.ma.filled(stats.sem(m, axis=0, ddof=1, nan_policy="omit"), np.nan)

    return pd.DataFrame(
        {
            "mean": mean,
            "sderror": np.asarray(sderror, dtype=np.float64),
            "median": median,
            "index": np.arange(1, m.shape[1] + 1, dtype=np.int64),
            "sample": str(label),
        }
    )


def calculate_profile(
    track: TrackHandle,
    loci: pd.DataFrame,
    params: ProfileParams,
    *,
    bg_track: TrackHandle | None = None,
    label: str = "",
) -> pd.DataFrame:
    """Profile of one track (optionally over a background track) summarized across loci."""
    loci = as_intervals(loci)
    full = profile_matrix(track, loci, params)
    if bg_track is not None:
        bg = profile_matrix(bg_track, loci, params)
        full = ratio(full, bg, params.transform)
    return summarize_matrix(full, label)
