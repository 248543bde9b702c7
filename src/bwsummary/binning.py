from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from .errors import ConfigError
from .genome import chrom_sizes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenomicBins:
    """Fixed-width tiling of one chromosome, 1-based inclusive.

    The last tile is cut at the chromosome end when `length` is not a multiple of `binsize`.
    """

    chrom: str
    length: int
    binsize: int

    def __post_init__(self) -> None:
        if self.binsize <= 0:
            raise ConfigError(f"bin size must be a positive value: {self.binsize}")
        if self.length <= 0:
            raise ConfigError(f"chromosome length must be positive: {self.chrom}={self.length}")

    @property
    def n_bins(self) -> int:
        return -(-self.length // self.binsize)

    def to_dataframe(self) -> pd.DataFrame:
        starts = 1 + self.binsize * np.arange(self.n_bins, dtype=np.int64)
        ends = np.minimum(starts + self.binsize - 1, self.length)
        return pd.DataFrame(
            {
                "chrom": self.chrom,
                "start": starts,
                "end": ends,
                "strand": "*",
            }
        )


def build_bins(bin_size: int = 10000, genome: str | Path | dict[str, int] = "mm9") -> pd.DataFrame:
    """Tile every chromosome of `genome` into contiguous bins of `bin_size` bp.

    Returns:
        interval table (chrom, start, end, strand) in canonical chromosome order
    """

    if bin_size is None or int(bin_size) <= 0:
        raise ConfigError(f"bin size must be a positive value: {bin_size}")

    frames = [GenomicBins(chrom=c, length=n, binsize=int(bin_size)).to_dataframe() for c, n in chrom_sizes(genome)]
    tiles = pd.concat(frames, ignore_index=True)
    logger.debug("Built %d tiles of %d bp", len(tiles), bin_size)
    return tiles
