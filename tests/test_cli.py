import json

import pandas as pd
import pytest

from bwsummary.cli import main


def test_cli_synth_then_bed(tmp_path, capsys):
    data = tmp_path / "data"
    main(["synth", "--out_dir", str(data), "--n_loci", "10"])

    out = tmp_path / "out" / "regions.tsv"
    main(
        [
            "bed",
            str(data / "signal.bedgraph"),
            "--background",
            str(data / "background.bedgraph"),
            "--labels",
            "s",
            "--bed",
            str(data / "loci.bed"),
            "--aggregate_by",
            "true_mean",
            "--out",
            str(out),
        ]
    )

    df = pd.read_csv(out, sep="\t")
    assert df.columns.tolist() == ["name", "s"]
    meta = json.loads((tmp_path / "out" / "regions.meta.json").read_text())
    assert meta["aggregate_by"] == "true_mean"
    assert "Wrote:" in capsys.readouterr().out


def test_cli_bins_and_profile(tmp_path):
    data = tmp_path / "data"
    main(["synth", "--out_dir", str(data), "--n_loci", "5"])

    bins_out = tmp_path / "bins.csv"
    main(
        [
            "bins",
            str(data / "signal.bedgraph"),
            "--genome",
            str(data / "genome.chrom.sizes"),
            "--bin_size",
            "50000",
            "--out",
            str(bins_out),
        ]
    )
    assert len(pd.read_csv(bins_out)) == 4 + 3

    prof_out = tmp_path / "profile.tsv"
    main(["profile", str(data / "signal.bedgraph"), "--bed", str(data / "loci.bed"), "--mode", "center", "--out", str(prof_out)])
    assert len(pd.read_csv(prof_out, sep="\t")) == 50


def test_cli_reports_errors(tmp_path):
    data = tmp_path / "data"
    main(["synth", "--out_dir", str(data), "--n_loci", "5"])
    with pytest.raises(SystemExit, match="bin size"):
        main(
            [
                "profile",
                str(data / "signal.bedgraph"),
                "--bed",
                str(data / "loci.bed"),
                "--bin_size",
                "0",
                "--out",
                str(tmp_path / "p.tsv"),
            ]
        )
