from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .errors import BwSummaryError
from .reporting import ensure_dir, write_json, write_table
from .summary import profile, score_by_bins, score_by_regions
from .synth import synth_dataset


def _add_track_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("tracks", nargs="+", help="bigWig or bedGraph tracks")
    p.add_argument("--background", nargs="+", default=None, help="Background tracks, one per track")
    p.add_argument("--labels", nargs="+", default=None)
    p.add_argument("--transform", type=str, default="identity", help="Applied after fg/bg: identity, log2, ...")
    p.add_argument("--out", type=str, required=True, help="Output table (.tsv or .csv)")
    p.add_argument("--workers", type=int, default=None)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bwsummary")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("synth", help="Generate synthetic bedGraph tracks, chrom sizes and a BED file")
    ps.add_argument("--out_dir", type=str, default="data/synthetic")
    ps.add_argument("--binsize", type=int, default=100)
    ps.add_argument("--n_loci", type=int, default=40)
    ps.add_argument("--n_categories", type=int, default=4)
    ps.add_argument("--seed", type=int, default=0)

    pb = sub.add_parser("bed", help="Score loci of a BED file, optionally aggregated by category")
    _add_track_args(pb)
    pb.add_argument("--bed", type=str, required=True)
    pb.add_argument("--stat", type=str, default="mean", choices=["mean", "min", "max", "stdev"])
    pb.add_argument("--aggregate_by", type=str, default=None, choices=["mean", "median", "true_mean"])
    pb.add_argument("--group_col", type=str, default="name")

    pn = sub.add_parser("bins", help="Score genome-wide fixed-size bins")
    _add_track_args(pn)
    pn.add_argument("--stat", type=str, default="mean", choices=["mean", "min", "max", "stdev"])
    pn.add_argument("--bin_size", type=int, default=10000)
    pn.add_argument("--genome", type=str, default="mm9", help="mm9, hg38 or a chrom.sizes file")
    pn.add_argument("--selection", type=str, default=None, help="BED file restricting the bins")

    pp = sub.add_parser("profile", help="Positional profile of tracks over BED loci")
    _add_track_args(pp)
    pp.add_argument("--bed", type=str, required=True)
    pp.add_argument("--mode", type=str, default="stretch", choices=["stretch", "start", "end", "center"])
    pp.add_argument("--bin_size", type=int, default=100)
    pp.add_argument("--upstream", type=int, default=2500)
    pp.add_argument("--downstream", type=int, default=2500)
    pp.add_argument("--ignore_strand", action=argparse.BooleanOptionalAction, default=False)

    return p


def _write(df, args) -> None:
    out = write_table(df, args.out)
    meta = {k: v for k, v in vars(args).items() if k not in {"verbose"}}
    write_json(meta, out.with_name(out.stem + ".meta.json"))
    print("Wrote:", out.as_posix())


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.captureWarnings(True)

    try:
        if args.cmd == "synth":
            ensure_dir(args.out_dir)
            paths = synth_dataset(
                out_dir=args.out_dir,
                binsize=int(args.binsize),
                n_loci=int(args.n_loci),
                n_categories=int(args.n_categories),
                seed=int(args.seed),
            )
            print("Wrote:")
            for k, v in paths.items():
                print(f"  {k}: {Path(v).as_posix()}")
            return

        if args.cmd == "bed":
            df = score_by_regions(
                args.tracks,
                args.bed,
                background=args.background,
                labels=args.labels,
                stat=args.stat,
                aggregate_by=args.aggregate_by,
                group_col=args.group_col,
                transform=args.transform,
                max_workers=args.workers,
            )
            _write(df, args)
            return

        if args.cmd == "bins":
            df = score_by_bins(
                args.tracks,
                background=args.background,
                labels=args.labels,
                stat=args.stat,
                bin_size=int(args.bin_size),
                genome=args.genome,
                selection=args.selection,
                transform=args.transform,
                max_workers=args.workers,
            )
            _write(df, args)
            return

        if args.cmd == "profile":
            df = profile(
                args.tracks,
                args.bed,
                background=args.background,
                labels=args.labels,
                mode=args.mode,
                bin_size=int(args.bin_size),
                upstream=int(args.upstream),
                downstream=int(args.downstream),
                ignore_strand=bool(args.ignore_strand),
                transform=args.transform,
                max_workers=args.workers,
            )
            _write(df, args)
            return
    except BwSummaryError as e:
        raise SystemExit(f"bwsummary {args.cmd}: {e}") from e

    raise SystemExit(f"Unknown command: {args.cmd}")


if __name__ == "__main__":
    main()
