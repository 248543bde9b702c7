from __future__ import annotations

from typing import Callable, Sequence

import numpy as np
import pandas as pd

from .errors import ValidationError
from .intervals import assert_same_loci

Transform = Callable[[np.ndarray], np.ndarray]


def identity(x: np.ndarray) -> np.ndarray:
    return x


TRANSFORMS: dict[str, Transform] = {
    "identity": identity,
    "log2": np.log2,
    "log10": np.log10,
    "log": np.log,
    "log1p": np.log1p,
    "sqrt": np.sqrt,
}


def resolve_transform(transform: Transform | str | None) -> Transform:
    """Return a callable for `transform`: None means identity, strings are looked up by name."""
    if transform is None:
        return identity
    if callable(transform):
        return transform
    try:
        return TRANSFORMS[str(transform).lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown transform {transform!r}; expected a callable or one of: {', '.join(TRANSFORMS)}"
        ) from None


def check_background(tracks: Sequence, background: Sequence | None) -> None:
    if background is not None and len(background) != len(tracks):
        raise ValidationError(
            "Background and signal track lists must have the same length "
            f"({len(background)} != {len(tracks)})."
        )


def ratio(
    foreground: np.ndarray,
    background: np.ndarray,
    transform: Transform | str | None = None,
) -> np.ndarray:
    """Elementwise transform(fg / bg); NaN and inf are forwarded."""
    f = resolve_transform(transform)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.asarray(f(np.asarray(foreground, dtype=np.float64) / np.asarray(background, dtype=np.float64)))


def normalize(
    foreground: pd.DataFrame,
    background: pd.DataFrame,
    labels: Sequence[str],
    transform: Transform | str | None = None,
    *,
    per_locus: bool = True,
) -> pd.DataFrame:
    """Divide the label columns of `foreground` by those of `background`.

    Both tables must come from the same loci and labels. With `per_locus=True`
    rows are matched on (chrom, start, end); otherwise (aggregated tables) the
    indexes must be equal.
    """

    labels = list(labels)
    for name, table in (("foreground", foreground), ("background", background)):
        missing = [c for c in labels if c not in table.columns]
        if missing:
            raise ValidationError(f"{name} table is missing label columns: {missing}")

    if per_locus:
        assert_same_loci(foreground, background, what="background")
    elif not foreground.index.equals(background.index):
        raise ValidationError("Foreground and background tables have different rows")

    out = foreground.copy()
    out[labels] = ratio(foreground[labels].to_numpy(), background[labels].to_numpy(), transform)
    return out
