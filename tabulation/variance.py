"""
Jackknife standard errors from replicate weights.

For a statistic computed once with the full weight (theta) and once with
each of the K replicate weights (theta_k):

    SE = scale * sqrt( sum_k (theta_k - theta)^2 )

where ``scale`` describes the replication design (e.g. sqrt((K-1)/K)
for a delete-one-group jackknife). The formula does not depend on what
the statistic is, so the same estimator serves counts, means, medians
and ratios.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .dataset import FULL_WEIGHT


def jackknife_se(
    full: np.ndarray,
    replicates: np.ndarray,
    scale: float,
) -> np.ndarray:
    """
    Jackknife standard error per row.

    Args:
        full: Statistic from the full weight, shape (n,)
        replicates: Statistic from each replicate weight, shape (n, K)
        scale: Design-specific scaling constant

    Returns:
        Standard errors, shape (n,). A row is NaN when its full or any
        replicate value is undefined; other rows are unaffected.
    """
    full = np.asarray(full, dtype=float).reshape(-1)
    replicates = np.asarray(replicates, dtype=float)
    if len(full) == 0:
        return np.empty(0)
    replicates = replicates.reshape(len(full), -1)
    if replicates.shape[1] == 0:
        return np.full(len(full), np.nan)

    squared = (replicates - full[:, None]) ** 2
    return scale * np.sqrt(squared.sum(axis=1))


def standard_errors(
    weighted: pd.DataFrame,
    weights: list[str],
    scale: float,
) -> pd.Series:
    """
    Standard error column for a table of per-weight statistics.

    Args:
        weighted: Table with one column per weight (full weight first)
        weights: Canonical weight column names
        scale: Jackknife scaling constant

    Returns:
        Series ``E`` aligned with ``weighted``
    """
    replicates = [w for w in weights if w != FULL_WEIGHT]
    se = jackknife_se(
        weighted[FULL_WEIGHT].to_numpy(),
        weighted[replicates].to_numpy(),
        scale,
    )
    return pd.Series(se, index=weighted.index, name="E")
