from __future__ import annotations

from pathlib import Path

import pandas as pd

from .errors import ConfigError
from .intervals import chrom_sort_key

# Primary assembly chromosomes (UCSC naming).
_CHROM_SIZES: dict[str, dict[str, int]] = {
    "mm9": {
        "chr1": 197195432,
        "chr2": 181748087,
        "chr3": 159599783,
        "chr4": 155630120,
        "chr5": 152537259,
        "chr6": 149517037,
        "chr7": 152524553,
        "chr8": 131738871,
        "chr9": 124076172,
        "chr10": 129993255,
        "chr11": 121843856,
        "chr12": 121257530,
        "chr13": 120284312,
        "chr14": 125194864,
        "chr15": 103494974,
        "chr16": 98319150,
        "chr17": 95272651,
        "chr18": 90772031,
        "chr19": 61342430,
        "chrX": 166650296,
        "chrY": 15902555,
        "chrM": 16299,
    },
    "hg38": {
        "chr1": 248956422,
        "chr2": 242193529,
        "chr3": 198295559,
        "chr4": 190214555,
        "chr5": 181538259,
        "chr6": 170805979,
        "chr7": 159345973,
        "chr8": 145138636,
        "chr9": 138394717,
        "chr10": 133797422,
        "chr11": 135086622,
        "chr12": 133275309,
        "chr13": 114364328,
        "chr14": 107043718,
        "chr15": 101991189,
        "chr16": 90338345,
        "chr17": 83257441,
        "chr18": 80373285,
        "chr19": 58617616,
        "chr20": 64444167,
        "chr21": 46709983,
        "chr22": 50818468,
        "chrX": 156040895,
        "chrY": 57227415,
        "chrM": 16569,
    },
}

SUPPORTED_GENOMES = tuple(_CHROM_SIZES)


def _read_chrom_sizes(path: Path) -> dict[str, int]:
    df = pd.read_csv(path, sep="\t", header=None, usecols=[0, 1], names=["chrom", "length"], comment="#")
    if df.empty:
        raise ConfigError(f"Chromosome sizes file is empty: {path}")
    if (df["length"] <= 0).any():
        raise ConfigError(f"Non-positive chromosome length in {path}")
    return {str(c): int(n) for c, n in zip(df["chrom"], df["length"])}


def chrom_sizes(genome: str | Path | dict[str, int]) -> list[tuple[str, int]]:
    """Return (chromosome, length) pairs in canonical order.

    Args:
        genome: "mm9", "hg38", a path to a two-column chrom.sizes file, or a mapping.
    """

    if isinstance(genome, dict):
        sizes = {str(k): int(v) for k, v in genome.items()}
    elif str(genome) in _CHROM_SIZES:
        sizes = _CHROM_SIZES[str(genome)]
    elif Path(genome).is_file():
        sizes = _read_chrom_sizes(Path(genome))
    else:
        raise ConfigError(
            f"Unsupported genome {genome!r}; expected one of {', '.join(SUPPORTED_GENOMES)} "
            "or a chrom.sizes file"
        )

    return sorted(sizes.items(), key=lambda kv: chrom_sort_key(kv[0]))
