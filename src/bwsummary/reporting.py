from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd


def ensure_dir(p: str | Path) -> Path:
    path = Path(p)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(obj: Any, path: str | Path) -> None:
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(json.dumps(obj, indent=2, sort_keys=True, default=str))


def write_table(df: pd.DataFrame, path: str | Path) -> Path:
    """Write a result table as CSV (.csv) or TSV (anything else).

    Aggregated tables keep their category index as the first column.
    """

    path = Path(path)
    ensure_dir(path.parent)
    sep = "," if path.suffix.lower() == ".csv" else "\t"
    keep_index = df.index.name is not None
    df.to_csv(path, sep=sep, index=keep_index, na_rep="NaN")
    return path
