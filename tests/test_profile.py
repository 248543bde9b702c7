import warnings

import numpy as np
import pandas as pd
import pytest

from bwsummary.errors import ConfigError, SummaryWarning, ValidationError
from bwsummary.intervals import as_intervals
from bwsummary.profile import (
    ProfileMode,
    ProfileParams,
    anchor_windows,
    calculate_profile,
    flank_windows,
    profile_matrix,
    summarize_matrix,
)


class RampTrack:
    """Returns 1..n for every query, independent of the window."""

    def __init__(self, scale=1.0):
        self.scale = scale
        self.windows = []

    def query_stat(self, interval, stat):
        return float("nan")

    def query_profile(self, interval, n_points):
        self.windows.append((interval.start, interval.end, n_points))
        return self.scale * np.arange(1, n_points + 1, dtype=float)


class ConstTrack(RampTrack):
    def query_profile(self, interval, n_points):
        return np.full(n_points, self.scale)


def _loci(strands=("+", "-"), widths=(1000, 1000)):
    starts = [10_001 + 10_000 * i for i in range(len(widths))]
    return as_intervals(
        pd.DataFrame(
            {
                "chrom": "chr1",
                "start": starts,
                "end": [s + w - 1 for s, w in zip(starts, widths)],
                "strand": list(strands),
            }
        )
    )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"bin_size": 0},
        {"upstream": 0},
        {"downstream": -5},
        {"bin_size": 3000},
        {"bin_size": 600, "upstream": 500, "downstream": 1000},
    ],
)
def test_profile_params_validation(kwargs):
    with pytest.raises(ConfigError):
        ProfileParams(**kwargs)


def test_config_error_is_validation_error():
    with pytest.raises(ValidationError):
        ProfileParams(bin_size=-1)


def test_unknown_mode():
    with pytest.raises(ValidationError, match="stretch, start, end, center"):
        ProfileParams(mode="middle")


def test_stretch_point_counts():
    params = ProfileParams(mode="stretch", bin_size=100, upstream=2500, downstream=2500)
    loci = _loci(strands=("+", "+", "+"), widths=(900, 1000, 1100))

    assert params.left_points == 25
    assert params.right_points == 25
    assert params.middle_points(np.array([900, 1000, 1100])) == 10

    m = profile_matrix(RampTrack(), loci, params)
    assert m.shape == (3, 60)


def test_stretch_reverses_each_block_on_minus_strand():
    params = ProfileParams(mode=ProfileMode.STRETCH, bin_size=100, upstream=300, downstream=200)
    m = profile_matrix(RampTrack(), _loci(), params)

    expected_plus = [1, 2, 3] + list(range(1, 11)) + [1, 2]
    expected_minus = [3, 2, 1] + list(range(10, 0, -1)) + [2, 1]
    assert m[0].tolist() == expected_plus
    assert m[1].tolist() == expected_minus


def test_stretch_flank_windows_follow_strand():
    params = ProfileParams(mode="stretch", bin_size=100, upstream=300, downstream=200)
    track = RampTrack()
    profile_matrix(track, _loci(), params)

    # left flanks, then bodies, then right flanks
    assert track.windows[0] == (9701, 10000, 3)
    assert track.windows[1] == (21001, 21300, 3)
    assert track.windows[4] == (11001, 11200, 2)
    assert track.windows[5] == (19801, 20000, 2)


@pytest.mark.parametrize("mode", ["start", "end", "center"])
def test_strand_correction_single_window(mode):
    params = ProfileParams(mode=mode, bin_size=100, upstream=200, downstream=200)
    m = profile_matrix(RampTrack(), _loci(), params)

    assert m[0].tolist() == [1, 2, 3, 4]
    assert m[1].tolist() == [4, 3, 2, 1]


def test_ignore_strand_keeps_order():
    params = ProfileParams(mode="start", bin_size=100, upstream=200, downstream=200, ignore_strand=True)
    m = profile_matrix(RampTrack(), _loci(), params)
    assert m[1].tolist() == [1, 2, 3, 4]


def test_anchor_windows():
    loci = as_intervals(
        pd.DataFrame({"chrom": "chr1", "start": [1001, 1001], "end": [2000, 2000], "strand": ["+", "-"]})
    )

    start = anchor_windows(loci, ProfileParams(mode="start", bin_size=100, upstream=500, downstream=300))
    assert (start[0].start, start[0].end) == (501, 1300)
    assert (start[1].start, start[1].end) == (1701, 2500)

    end = anchor_windows(loci, ProfileParams(mode="end", bin_size=100, upstream=500, downstream=300))
    assert (end[0].start, end[0].end) == (1500, 2299)
    assert (end[1].start, end[1].end) == (702, 1501)

    center = anchor_windows(loci, ProfileParams(mode="center", bin_size=100, upstream=500, downstream=300))
    assert (center[0].start, center[0].end) == (1000, 1799)

    ignored = anchor_windows(
        loci, ProfileParams(mode="start", bin_size=100, upstream=500, downstream=300, ignore_strand=True)
    )
    assert (ignored[1].start, ignored[1].end) == (501, 1300)


def test_flank_windows():
    loci = as_intervals(
        pd.DataFrame({"chrom": "chr1", "start": [1001, 1001], "end": [2000, 2000], "strand": ["+", "-"]})
    )
    up = flank_windows(loci, 500, upstream=True, ignore_strand=False)
    down = flank_windows(loci, 300, upstream=False, ignore_strand=False)

    assert [(w.start, w.end) for w in up] == [(501, 1000), (2001, 2500)]
    assert [(w.start, w.end) for w in down] == [(2001, 2300), (701, 1000)]


def test_summarize_matrix():
    m = np.array([[1.0, np.inf], [3.0, np.nan], [5.0, 2.0]])
    df = summarize_matrix(m, "s1")

    assert df.columns.tolist() == ["mean", "sderror", "median", "index", "sample"]
    assert df["index"].tolist() == [1, 2]
    assert df["sample"].tolist() == ["s1", "s1"]
    assert df.loc[0, "mean"] == pytest.approx(3.0)
    assert df.loc[0, "median"] == pytest.approx(3.0)
    assert df.loc[0, "sderror"] == pytest.approx(2.0 / np.sqrt(3.0))
    assert df.loc[1, "mean"] == pytest.approx(2.0)
    assert df.loc[1, "median"] == pytest.approx(2.0)


def test_missing_value_warning_fires_above_hundred():
    m = np.ones((101, 2))
    m[:, 0] = np.nan
    with pytest.warns(SummaryWarning, match="101"):
        df = summarize_matrix(m, "s1")
    assert df.loc[1, "mean"] == pytest.approx(1.0)


def test_missing_value_warning_silent_at_hundred():
    m = np.ones((100, 2))
    m[:, 0] = np.inf
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        summarize_matrix(m, "s1")
    assert not [w for w in caught if issubclass(w.category, SummaryWarning)]


def test_calculate_profile_with_background():
    params = ProfileParams(mode="center", bin_size=100, upstream=200, downstream=200, transform="log2")
    df = calculate_profile(ConstTrack(8.0), _loci(), params, bg_track=ConstTrack(2.0), label="x")

    assert len(df) == 4
    assert np.allclose(df["mean"], 2.0)
    assert (df["sample"] == "x").all()


def test_calculate_profile_background_zero_becomes_missing():
    params = ProfileParams(mode="start", bin_size=100, upstream=200, downstream=200)
    df = calculate_profile(ConstTrack(1.0), _loci(), params, bg_track=ConstTrack(0.0), label="x")
    assert df["mean"].isna().all()
