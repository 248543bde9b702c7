from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping

import numpy as np
import pandas as pd

from .errors import NotFoundError, ValidationError

COORD_COLUMNS = ["chrom", "start", "end"]
INTERVAL_COLUMNS = ["chrom", "start", "end", "strand"]
BED_COLUMNS = ["chrom", "start", "end", "name", "score", "strand"]
STRANDS = {"+", "-", "*"}


@dataclass(frozen=True)
class GenomicInterval:
    """A single locus in 1-based inclusive coordinates."""

    chrom: str
    start: int
    end: int
    strand: str = "*"
    name: str | None = None
    attrs: Mapping[str, float] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.end - self.start + 1


def natural_sort_key(value: object) -> tuple:
    """Sort key splitting digit runs so that "region2" sorts before "region10"."""
    parts = re.split(r"(\d+)", str(value))
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p.lower()) for p in parts if p)


def chrom_sort_key(chrom: str) -> tuple:
    """Canonical seqlevel rank: 1..N, then X, Y, M, then other contigs naturally sorted."""
    name = str(chrom)
    if name.lower().startswith("chr"):
        name = name[3:]
    if name.isdigit():
        return (0, int(name), ())
    upper = name.upper()
    if upper in ("X", "Y", "M", "MT"):
        return (1, ("X", "Y", "M", "MT").index(upper), ())
    return (2, 0, natural_sort_key(chrom))


def _chrom_ranks(chroms: pd.Series) -> np.ndarray:
    ordered = sorted(pd.unique(chroms), key=chrom_sort_key)
    rank = {c: i for i, c in enumerate(ordered)}
    return chroms.map(rank).to_numpy(dtype=np.int64)


def as_intervals(df: pd.DataFrame) -> pd.DataFrame:
    """Validate an interval DataFrame and fill in optional columns.

    Returns a copy with integer coordinates and a `strand` column ("*" when absent).
    """

    missing = [c for c in COORD_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(f"Interval table is missing required columns: {missing}")

    out = df.copy()
    out["chrom"] = out["chrom"].astype(str)
    out["start"] = out["start"].astype(np.int64)
    out["end"] = out["end"].astype(np.int64)
    if "strand" not in out.columns:
        out["strand"] = "*"
    out["strand"] = out["strand"].fillna("*").astype(str).replace({".": "*"})

    bad_strand = ~out["strand"].isin(STRANDS)
    if bad_strand.any():
        raise ValidationError(f"Invalid strand values: {sorted(out.loc[bad_strand, 'strand'].unique())}")
    if (out["start"] < 1).any():
        raise ValidationError("Interval starts must be >= 1 (1-based coordinates)")
    if (out["end"] < out["start"]).any():
        bad = out.index[out["end"] < out["start"]][0]
        raise ValidationError(f"Invalid interval with end<start at row {bad}")

    front = INTERVAL_COLUMNS + [c for c in out.columns if c not in INTERVAL_COLUMNS]
    return out[front]


def sort_intervals(df: pd.DataFrame) -> pd.DataFrame:
    """Sort by (chromosome rank, start, end, strand); the join key for multi-track tables."""
    if df.empty:
        return df.reset_index(drop=True)
    keys = pd.DataFrame(
        {
            "_rank": _chrom_ranks(df["chrom"]),
            "start": df["start"].to_numpy(),
            "end": df["end"].to_numpy(),
            "strand": df["strand"].to_numpy() if "strand" in df.columns else "*",
        }
    )
    order = keys.sort_values(["_rank", "start", "end", "strand"], kind="mergesort").index
    return df.iloc[order.to_numpy()].reset_index(drop=True)


def row_identity(df: pd.DataFrame) -> pd.DataFrame:
    return df[COORD_COLUMNS].reset_index(drop=True)


def assert_same_loci(reference: pd.DataFrame, other: pd.DataFrame, *, what: str = "table") -> None:
    """Raise ValidationError unless both tables have identical (chrom, start, end) rows."""
    a = row_identity(reference)
    b = row_identity(other)
    if len(a) != len(b):
        raise ValidationError(f"Row count mismatch for {what}: {len(a)} != {len(b)}")
    same = (
        (a["chrom"].to_numpy() == b["chrom"].to_numpy())
        & (a["start"].to_numpy() == b["start"].to_numpy())
        & (a["end"].to_numpy() == b["end"].to_numpy())
    )
    if not same.all():
        row = int(np.flatnonzero(~same)[0])
        raise ValidationError(f"Row identity mismatch for {what} at row {row}")


def subset_by_overlaps(loci: pd.DataFrame, selection: pd.DataFrame) -> pd.DataFrame:
    """Keep loci sharing at least one base with any selection interval, order preserved."""
    keep = np.zeros(len(loci), dtype=bool)
    chroms = loci["chrom"].to_numpy()
    starts = loci["start"].to_numpy()
    ends = loci["end"].to_numpy()

    for chrom, sel in selection.groupby("chrom", sort=False):
        sel = sel.sort_values("start", kind="mergesort")
        sel_starts = sel["start"].to_numpy()
        # running max of ends over selection intervals sorted by start
        reach = np.maximum.accumulate(sel["end"].to_numpy())
        rows = np.flatnonzero(chroms == chrom)
        if rows.size == 0:
            continue
        idx = np.searchsorted(sel_starts, ends[rows], side="right")
        hit = idx > 0
        hit[hit] = reach[idx[hit] - 1] >= starts[rows][hit]
        keep[rows[hit]] = True

    return loci[keep].reset_index(drop=True)


def iter_intervals(df: pd.DataFrame) -> Iterator[GenomicInterval]:
    """Yield one GenomicInterval per row; numeric extra columns land in `attrs`."""
    has_name = "name" in df.columns
    extras = [
        c
        for c in df.columns
        if c not in INTERVAL_COLUMNS and c != "name" and pd.api.types.is_numeric_dtype(df[c])
    ]
    for row in df.to_dict("records"):
        yield GenomicInterval(
            chrom=str(row["chrom"]),
            start=int(row["start"]),
            end=int(row["end"]),
            strand=str(row.get("strand", "*")),
            name=str(row["name"]) if has_name else None,
            attrs={c: float(row[c]) for c in extras},
        )


def read_bed(path: str | Path) -> pd.DataFrame:
    """Read a BED3-BED6 file into a sorted interval table.

    BED is 0-based half-open; starts are shifted by one so that the returned
    table is 1-based inclusive like the rest of the package.
    """

    path = Path(path)
    if not path.exists():
        raise NotFoundError(str(path))

    with path.open() as f:
        lines = [ln for ln in f if ln.strip() and not ln.startswith(("#", "track", "browser"))]
    if not lines:
        raise ValidationError(f"Interval file is empty: {path}")
    raw = pd.read_csv(io.StringIO("".join(lines)), sep="\t", header=None, dtype=str)
    if raw.shape[1] < 3:
        raise ValidationError(f"BED file needs at least 3 columns: {path}")

    raw = raw.iloc[:, : len(BED_COLUMNS)]
    raw.columns = BED_COLUMNS[: raw.shape[1]]
    df = pd.DataFrame(
        {
            "chrom": raw["chrom"].astype(str),
            "start": raw["start"].astype(np.int64) + 1,
            "end": raw["end"].astype(np.int64),
        }
    )
    df["strand"] = raw["strand"].to_numpy() if "strand" in raw.columns else "*"
    if "name" in raw.columns:
        df["name"] = raw["name"].to_numpy()
    if "score" in raw.columns:
        df["score"] = pd.to_numeric(raw["score"], errors="coerce").to_numpy()

    return sort_intervals(as_intervals(df))


def load_intervals(source: str | Path | pd.DataFrame) -> pd.DataFrame:
    """Accept a BED path or an interval DataFrame; return a sorted interval table."""
    if isinstance(source, pd.DataFrame):
        return sort_intervals(as_intervals(source))
    return read_bed(source)
