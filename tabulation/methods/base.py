"""
Shared pieces for aggregation methods.

Every method returns three partial tables keyed by the grouping
variables: the weighted statistic for the full weight and each
replicate weight, the unweighted statistic ``S``, and the sample size
``N``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from ..dataset import Dataset
from ..joiner import attach_weights, join_levels, restore_dtypes
from ..levels import LevelConfig
from ..subset import Predicate


@dataclass
class AggregateResult:
    """
    Partial results of one aggregation.

    Attributes:
        weighted: ``by`` columns plus one column per weight (``_w0`` is
            the full weight, ``_w1..`` the replicates)
        unweighted: ``by`` columns plus ``S``
        count: ``by`` columns plus ``N``
        by: Grouping variables
    """

    weighted: pd.DataFrame
    unweighted: pd.DataFrame
    count: pd.DataFrame
    by: tuple


def weight_names(frame: pd.DataFrame) -> list[str]:
    """Canonical weight columns present in ``frame``, in order."""
    names = [c for c in frame.columns if c.startswith("_w") and c[2:].isdigit()]
    return sorted(names, key=lambda c: int(c[2:]))


def group_sum(
    frame: pd.DataFrame,
    by: Sequence[str],
    columns: Sequence[str],
) -> pd.DataFrame:
    """Sum ``columns`` per group; a single row when ``by`` is empty."""
    columns = list(columns)
    if not by:
        return frame[columns].sum().to_frame().T.astype(float).reset_index(drop=True)
    return frame.groupby(list(by), sort=True)[columns].sum().reset_index()


def group_size(
    frame: pd.DataFrame,
    by: Sequence[str],
    name: str,
) -> pd.DataFrame:
    """Row count per group; a single row when ``by`` is empty."""
    if not by:
        return pd.DataFrame({name: [len(frame)]})
    return frame.groupby(list(by), sort=True).size().reset_index(name=name)


def group_reduce(
    frame: pd.DataFrame,
    by: Sequence[str],
    func: Callable[[pd.DataFrame], dict],
    columns: Sequence[str],
) -> pd.DataFrame:
    """
    Apply ``func`` to each group.

    Args:
        frame: Rows to reduce
        by: Grouping variables
        func: Maps a group's rows to {column: value}
        columns: Output columns produced by ``func``

    Returns:
        DataFrame with ``by`` columns followed by ``columns``
    """
    by = list(by)
    if not by:
        return pd.DataFrame([func(frame)], columns=list(columns))

    rows = []
    for keys, group in frame.groupby(by, sort=True):
        if not isinstance(keys, tuple):
            keys = (keys,)
        rows.append({**dict(zip(by, keys)), **func(group)})
    return pd.DataFrame(rows, columns=[*by, *columns])


def safe_divide(numerator, denominator):
    """Element-wise division returning NaN where the denominator is zero."""
    num = np.asarray(numerator, dtype=float)
    den = np.asarray(denominator, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        out = num / den
    return np.where(den == 0, np.nan, out)


def weighted_rows(
    dataset: Dataset,
    config: LevelConfig,
    predicate: Predicate,
    columns: Sequence[str],
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Distinct filtered rows at the request's primary key level, joined to
    that level's weights.
    """
    pkey = dataset.primary_key(config.pkey_level)
    rows = join_levels(dataset, config.levels, pkey, columns, predicate, verbose)
    weighted = restore_dtypes(
        attach_weights(rows, dataset.weights_for(config.pkey_level)), dataset
    )
    if verbose:
        print(f"  {len(weighted):,} weighted {config.pkey_level} rows")
    return weighted
