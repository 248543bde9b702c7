from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from .binning import GenomicBins
from .reporting import ensure_dir, write_json


def make_synthetic_signal(bins: GenomicBins, *, seed: int = 0, offset: float = 2.0) -> np.ndarray:
    """Create a positive per-bin signal with smooth structure (for end-to-end sanity checks)."""
    rng = np.random.default_rng(int(seed))
    x = np.linspace(0, 1, bins.n_bins, endpoint=False, dtype=np.float64)
    y = (
        offset
        + 1.2 * np.sin(2 * np.pi * x)
        + 0.6 * np.sin(6 * np.pi * x + 0.3)
        + 0.25 * rng.standard_normal(bins.n_bins)
    )
    return np.clip(y, 0.01, None).astype(np.float32)


def make_synthetic_loci(
    chrom_sizes: dict[str, int],
    *,
    n_loci: int = 40,
    n_categories: int = 4,
    min_width: int = 500,
    max_width: int = 3000,
    margin: int = 5000,
    seed: int = 0,
) -> pd.DataFrame:
    """Random stranded loci labelled region1..regionN, as a BED-style (0-based) frame."""
    rng = np.random.default_rng(int(seed))
    chroms = list(chrom_sizes)
    rows = []
    for i in range(int(n_loci)):
        chrom = chroms[i % len(chroms)]
        width = int(rng.integers(min_width, max_width + 1))
        start = int(rng.integers(margin, chrom_sizes[chrom] - margin - width))
        rows.append(
            {
                "chrom": chrom,
                "start": start,
                "end": start + width,
                "name": f"region{int(rng.integers(1, n_categories + 1))}",
                "score": 0,
                "strand": "+" if rng.random() < 0.5 else "-",
            }
        )
    return pd.DataFrame(rows)


def write_bedgraph_from_binned_signal(
    y: np.ndarray,
    bins: GenomicBins,
    out_path: str | Path,
    *,
    append: bool = False,
) -> None:
    out_path = Path(out_path)
    ensure_dir(out_path.parent)

    df = bins.to_dataframe()
    # bedGraph is 0-based half-open
    lines = []
    for s, e, v in zip(df["start"], df["end"], y):
        lines.append(f"{bins.chrom}\t{int(s) - 1}\t{int(e)}\t{float(v):.6f}\n")

    with out_path.open("a" if append else "w") as f:
        f.write("".join(lines))


def synth_dataset(
    out_dir: str | Path,
    *,
    chroms: dict[str, int] | None = None,
    binsize: int = 100,
    n_loci: int = 40,
    n_categories: int = 4,
    seed: int = 0,
) -> dict[str, Path]:
    """Write a small synthetic genome, signal and background tracks and a BED file."""
    out_dir = ensure_dir(out_dir)
    chroms = chroms or {"chr1": 200_000, "chr2": 150_000}

    sizes_path = out_dir / "genome.chrom.sizes"
    sizes_path.write_text("".join(f"{c}\t{n}\n" for c, n in chroms.items()))

    signal_path = out_dir / "signal.bedgraph"
    background_path = out_dir / "background.bedgraph"
    for i, (chrom, length) in enumerate(chroms.items()):
        bins = GenomicBins(chrom=chrom, length=int(length), binsize=int(binsize))
        write_bedgraph_from_binned_signal(
            make_synthetic_signal(bins, seed=seed + i), bins, signal_path, append=i > 0
        )
        write_bedgraph_from_binned_signal(
            make_synthetic_signal(bins, seed=seed + 100 + i, offset=3.0), bins, background_path, append=i > 0
        )

    loci = make_synthetic_loci(chroms, n_loci=n_loci, n_categories=n_categories, seed=seed)
    bed_path = out_dir / "loci.bed"
    loci.to_csv(bed_path, sep="\t", header=False, index=False)

    meta = {
        "chroms": chroms,
        "binsize": int(binsize),
        "n_loci": int(n_loci),
        "n_categories": int(n_categories),
        "seed": int(seed),
        "signal_format": "bedGraph (chrom, start, end, value; 0-based half-open)",
        "loci_format": "BED6",
    }
    write_json(meta, out_dir / "meta.json")

    return {
        "chrom_sizes": sizes_path,
        "signal": signal_path,
        "background": background_path,
        "loci": bed_path,
        "meta": out_dir / "meta.json",
    }
