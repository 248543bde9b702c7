"""bigWig summary engine.

Core idea: score genomic intervals, genome-wide bins and positional profiles
against signal tracks, with background normalization and category aggregation.
"""

from .aggregate import AggregationMethod, aggregate_scores
from .binning import GenomicBins, build_bins
from .errors import BwSummaryError, ConfigError, NotFoundError, SummaryWarning, ValidationError
from .intervals import GenomicInterval, read_bed, sort_intervals
from .normalize import normalize
from .profile import ProfileMode, ProfileParams, calculate_profile
from .scoring import score_intervals
from .summary import profile, score_by_bins, score_by_regions
from .tracks import BedGraphTrack, BigWigTrack, Stat, open_track

__all__ = [
    "AggregationMethod",
    "BedGraphTrack",
    "BigWigTrack",
    "BwSummaryError",
    "ConfigError",
    "GenomicBins",
    "GenomicInterval",
    "NotFoundError",
    "ProfileMode",
    "ProfileParams",
    "Stat",
    "SummaryWarning",
    "ValidationError",
    "aggregate_scores",
    "build_bins",
    "calculate_profile",
    "normalize",
    "open_track",
    "profile",
    "read_bed",
    "score_by_bins",
    "score_by_regions",
    "score_intervals",
    "sort_intervals",
]
