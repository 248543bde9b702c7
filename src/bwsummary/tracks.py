from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
import pandas as pd

from .errors import NotFoundError, ValidationError
from .intervals import GenomicInterval

logger = logging.getLogger(__name__)

BIGWIG_SUFFIXES = {".bw", ".bigwig"}


class Stat(str, Enum):
    """Per-locus statistic extracted from a track."""

    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    STDEV = "stdev"

    @classmethod
    def parse(cls, value: "Stat | str") -> "Stat":
        if isinstance(value, cls):
            return value
        key = str(value).lower()
        if key in ("sd", "std"):
            return cls.STDEV
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown statistic {value!r}; expected one of: {allowed}") from None


@runtime_checkable
class TrackHandle(Protocol):
    def query_stat(self, interval: GenomicInterval, stat: Stat) -> float: ...

    def query_profile(self, interval: GenomicInterval, n_points: int) -> np.ndarray: ...


def sample_edges(start0: int, end0: int, n_points: int) -> tuple[np.ndarray, np.ndarray]:
    """Split the 0-based half-open span [start0, end0) into `n_points` sub-bins.

    Sub-bins narrower than one base are widened to a single base.
    """

    edges = np.floor(np.linspace(start0, end0, n_points + 1)).astype(np.int64)
    lo = edges[:-1]
    hi = np.maximum(edges[1:], lo + 1)
    return lo, hi


def _weighted_stat(values: np.ndarray, weights: np.ndarray, stat: Stat) -> float:
    n = float(weights.sum())
    if n == 0:
        return float("nan")
    if stat is Stat.MEAN:
        return float((values * weights).sum() / n)
    if stat is Stat.MIN:
        return float(values.min())
    if stat is Stat.MAX:
        return float(values.max())
    if n < 2:
        return float("nan")
    s = float((values * weights).sum())
    ss = float((values * values * weights).sum())
    var = max((ss - s * s / n) / (n - 1), 0.0)
    return float(np.sqrt(var))


class BedGraphTrack:
    """Track backed by a bedGraph-like TSV (chrom, start, end, value; 0-based half-open).

    Uncovered bases carry no value and are excluded from every statistic.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.exists():
            raise NotFoundError(str(self.path))
        df = pd.read_csv(
            self.path,
            sep="\t",
            header=None,
            comment="#",
            names=["chrom", "start", "end", "value"],
            dtype={"chrom": str, "start": np.int64, "end": np.int64, "value": np.float64},
        )
        if (df["end"] <= df["start"]).any():
            bad = df.index[df["end"] <= df["start"]][0]
            raise ValidationError(f"Invalid interval with end<=start at row {bad} in {self.path}")

        self._chroms: dict[str, tuple[np.ndarray, np.ndarray, np.ndarray]] = {}
        for chrom, sub in df.groupby("chrom", sort=False):
            sub = sub.sort_values("start", kind="mergesort")
            self._chroms[str(chrom)] = (
                sub["start"].to_numpy(),
                sub["end"].to_numpy(),
                sub["value"].to_numpy(),
            )

    def __enter__(self) -> "BedGraphTrack":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        pass

    def _segments(self, chrom: str, a: int, b: int) -> tuple[np.ndarray, np.ndarray]:
        if chrom not in self._chroms or b <= a:
            return np.empty(0), np.empty(0)
        starts, ends, values = self._chroms[chrom]
        i0 = int(np.searchsorted(ends, a, side="right"))
        i1 = int(np.searchsorted(starts, b, side="left"))
        if i1 <= i0:
            return np.empty(0), np.empty(0)
        ov = np.minimum(ends[i0:i1], b) - np.maximum(starts[i0:i1], a)
        keep = ov > 0
        return values[i0:i1][keep], ov[keep].astype(np.float64)

    def query_stat(self, interval: GenomicInterval, stat: Stat) -> float:
        values, weights = self._segments(interval.chrom, interval.start - 1, interval.end)
        return _weighted_stat(values, weights, Stat.parse(stat))

    def query_profile(self, interval: GenomicInterval, n_points: int) -> np.ndarray:
        lo, hi = sample_edges(interval.start - 1, interval.end, n_points)
        out = np.empty(n_points, dtype=np.float64)
        for i, (a, b) in enumerate(zip(lo, hi)):
            values, weights = self._segments(interval.chrom, int(a), int(b))
            out[i] = _weighted_stat(values, weights, Stat.MEAN)
        return out


def _require_pybigwig():
    try:
        import pyBigWig  # type: ignore

        return pyBigWig
    except Exception as e:  # pragma: no cover
        raise ImportError(
            "Reading bigWig files requires the optional dependency 'pyBigWig'. "
            "Install with: pip install 'bigwig-summary-engine[tracks]' (or pip install pyBigWig)."
        ) from e


class BigWigTrack:
    """Track backed by a bigWig file through pyBigWig.

    Queries outside the chromosome bounds are clipped; fully out-of-bounds samples are NaN.
    """

    _STAT_TYPES = {Stat.MEAN: "mean", Stat.MIN: "min", Stat.MAX: "max", Stat.STDEV: "std"}

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if not self.path.exists():
            raise NotFoundError(str(self.path))
        pyBigWig = _require_pybigwig()
        self._bw = pyBigWig.open(str(self.path))
        if self._bw is None:
            raise ValidationError(f"Could not open bigWig file: {self.path}")
        self._sizes = dict(self._bw.chroms())

    def __enter__(self) -> "BigWigTrack":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._bw is not None:
            try:
                self._bw.close()
            finally:
                self._bw = None

    def _clip(self, chrom: str, a: int, b: int) -> tuple[int, int]:
        size = self._sizes.get(chrom)
        if size is None:
            return 0, 0
        return max(int(a), 0), min(int(b), int(size))

    def _stat(self, chrom: str, a: int, b: int, stat: Stat) -> float:
        a, b = self._clip(chrom, a, b)
        if b <= a:
            return float("nan")
        v = self._bw.stats(chrom, a, b, type=self._STAT_TYPES[stat], exact=True)[0]
        return float("nan") if v is None else float(v)

    def query_stat(self, interval: GenomicInterval, stat: Stat) -> float:
        return self._stat(interval.chrom, interval.start - 1, interval.end, Stat.parse(stat))

    def query_profile(self, interval: GenomicInterval, n_points: int) -> np.ndarray:
        a, b = interval.start - 1, interval.end
        if (a, b) == self._clip(interval.chrom, a, b) and b - a >= n_points:
            values = self._bw.stats(interval.chrom, a, b, type="mean", nBins=int(n_points), exact=True)
            return np.array([np.nan if v is None else v for v in values], dtype=np.float64)

        lo, hi = sample_edges(a, b, n_points)
        return np.array(
            [self._stat(interval.chrom, int(s), int(e), Stat.MEAN) for s, e in zip(lo, hi)],
            dtype=np.float64,
        )


def open_track(path: str | Path) -> BigWigTrack | BedGraphTrack:
    """Open a signal track, dispatching on file suffix (.bw/.bigWig or bedGraph)."""
    path = Path(path)
    if not path.exists():
        raise NotFoundError(str(path))
    if path.suffix.lower() in BIGWIG_SUFFIXES:
        return BigWigTrack(path)
    logger.debug("Reading %s as bedGraph", path)
    return BedGraphTrack(path)
