import numpy as np
import pandas as pd
import pytest

from bwsummary.errors import ValidationError
from bwsummary.intervals import as_intervals
from bwsummary.scoring import cbind_scores, fan_out, score_intervals
from bwsummary.tracks import Stat


class StartTrack:
    """Scores each locus with `scale * start` so rows are easy to identify."""

    def __init__(self, scale=1.0):
        self.scale = scale
        self.seen = []

    def query_stat(self, interval, stat):
        self.seen.append(stat)
        return self.scale * interval.start

    def query_profile(self, interval, n_points):
        return np.full(n_points, self.scale)


def _loci():
    return as_intervals(
        pd.DataFrame(
            {
                "chrom": ["chr2", "chr1", "chr10", "chr1"],
                "start": [5, 300, 1, 100],
                "end": [50, 400, 10, 200],
                "name": ["b", "c", "d", "a"],
            }
        )
    )


def test_score_intervals_rows_follow_canonical_order():
    out = score_intervals([StartTrack(1.0), StartTrack(10.0)], ["s1", "s2"], _loci(), "max")

    assert list(zip(out["chrom"], out["start"], out["end"])) == [
        ("chr1", 100, 200),
        ("chr1", 300, 400),
        ("chr2", 5, 50),
        ("chr10", 1, 10),
    ]
    assert np.allclose(out["s1"], [100, 300, 5, 1])
    assert np.allclose(out["s2"], [1000, 3000, 50, 10])
    assert out["name"].tolist() == ["a", "c", "b", "d"]


def test_score_intervals_invariant_to_input_order():
    loci = _loci()
    tracks = [StartTrack(1.0), StartTrack(2.0)]
    a = score_intervals(tracks, ["x", "y"], loci)
    b = score_intervals(tracks[::-1], ["y", "x"], loci.iloc[::-1])

    pd.testing.assert_frame_equal(a[["chrom", "start", "end", "x", "y"]], b[["chrom", "start", "end", "x", "y"]])


def test_score_intervals_passes_stat_enum():
    t = StartTrack()
    score_intervals([t], ["x"], _loci(), "sd")
    assert set(t.seen) == {Stat.STDEV}


def test_score_intervals_selection():
    sel = as_intervals(pd.DataFrame({"chrom": ["chr1"], "start": [150], "end": [160]}))
    out = score_intervals([StartTrack()], ["x"], _loci(), selection=sel)

    assert out["start"].tolist() == [100]
    assert out["x"].tolist() == [100.0]


def test_score_intervals_validation():
    with pytest.raises(ValidationError, match="same length"):
        score_intervals([StartTrack(), StartTrack()], ["x"], _loci())
    with pytest.raises(ValidationError, match="Duplicate"):
        score_intervals([StartTrack(), StartTrack()], ["x", "x"], _loci())
    with pytest.raises(ValidationError, match="empty"):
        score_intervals([], [], _loci())
    with pytest.raises(ValidationError, match="clash"):
        score_intervals([StartTrack()], ["name"], _loci())
    with pytest.raises(ValidationError, match="Unknown statistic"):
        score_intervals([StartTrack()], ["x"], _loci(), "median")


def test_cbind_scores_resorts_each_frame():
    ref = _loci().sort_values(["chrom", "start"]).reset_index(drop=True)
    ref = ref.iloc[[0, 1, 3, 2]].reset_index(drop=True)  # chr1, chr1, chr2, chr10

    shuffled = ref.iloc[[3, 1, 0, 2]][["chrom", "start", "end", "strand"]].copy()
    shuffled["score"] = shuffled["start"].astype(float)

    out = cbind_scores(ref, [shuffled], ["x"])
    assert np.allclose(out["x"], ref["start"])


def test_cbind_scores_rejects_mismatched_rows():
    ref = _loci().iloc[[3, 1, 0, 2]].reset_index(drop=True)
    other = ref[["chrom", "start", "end", "strand"]].copy()
    other.loc[0, "end"] = 999
    other["score"] = 1.0

    with pytest.raises(ValidationError, match="track 'x'"):
        cbind_scores(ref, [other], ["x"])


def test_fan_out_keeps_input_order():
    import time

    def slow(i):
        time.sleep(0.01 * (5 - i))
        return i * i

    assert fan_out(slow, list(range(5)), max_workers=5) == [0, 1, 4, 9, 16]
