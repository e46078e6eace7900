"""
Numeric aggregates: sum, average and median of a variable.

Each weight column (full and replicates) is used as a case weight to
produce its own statistic, which is what the jackknife needs. All weight
columns of a group are handled in one call, so the median sorts each
group's values once however many replicates there are. The
unweighted statistic uses the same functions with unit weights so
that, in particular, the median tie-break is identical for both.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..dataset import Dataset
from ..levels import LevelConfig
from ..subset import Predicate
from ..variables import ValidationError
from .base import (
    AggregateResult,
    group_reduce,
    group_size,
    safe_divide,
    weight_names,
    weighted_rows,
)


def _as_matrix(x: np.ndarray, weights: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float).reshape(-1)
    weights = np.asarray(weights, dtype=float)
    if weights.ndim == 1:
        weights = weights[:, None]
    return x, weights


def weighted_sums(x: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted sum of ``x`` for each column of ``weights``."""
    x, weights = _as_matrix(x, weights)
    return x @ weights


def weighted_means(x: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted mean for each weight column; NaN where the column sums to zero."""
    x, weights = _as_matrix(x, weights)
    return safe_divide(x @ weights, weights.sum(axis=0))


def weighted_medians(x: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """
    Weighted median of ``x`` for each column of ``weights``.

    Values are sorted once and the median for a column is the first
    value at which its cumulative weight reaches half of its total.
    When the cumulative weight lands exactly on one half, the lower of
    the two bracketing values is returned (no interpolation). With unit
    weights this is the lower median.

    Columns with zero total weight, and empty input, give NaN.
    """
    x, weights = _as_matrix(x, weights)
    if len(x) == 0:
        return np.full(weights.shape[1], np.nan)

    order = np.argsort(x, kind="stable")
    values = x[order]
    cumulative = np.cumsum(weights[order], axis=0)
    total = cumulative[-1]
    # Tolerance keeps exact halves from slipping past on rounding
    threshold = total / 2.0 - 1e-12 * total
    idx = np.minimum((cumulative < threshold).sum(axis=0), len(x) - 1)
    return np.where(total > 0, values[idx], np.nan)


def weighted_sum(x: np.ndarray, w: np.ndarray) -> float:
    return float(weighted_sums(x, w)[0])


def weighted_mean(x: np.ndarray, w: np.ndarray) -> float:
    """Weighted arithmetic mean; NaN when the total weight is zero."""
    return float(weighted_means(x, w)[0])


def weighted_median(x: np.ndarray, w: np.ndarray) -> float:
    """Weighted median of ``x`` for a single weight vector (see ``weighted_medians``)."""
    if len(x) == 0:
        return np.nan
    return float(weighted_medians(x, w)[0])


STATISTICS = {
    "sum": weighted_sums,
    "avg": weighted_means,
    "median": weighted_medians,
}


@dataclass
class NumericAggregator:
    """
    Weighted sum, mean or median of ``agg_var``.

    Attributes:
        statistic: "sum", "avg" or "median"
        agg_var: Numeric variable to aggregate
    """

    statistic: str
    agg_var: str

    def __post_init__(self):
        if self.statistic not in STATISTICS:
            raise ValidationError(
                f"Unknown numeric statistic: {self.statistic}. "
                f"Valid: {', '.join(STATISTICS)}"
            )

    def aggregate(
        self,
        dataset: Dataset,
        config: LevelConfig,
        predicate: Predicate,
        verbose: bool = False,
    ) -> AggregateResult:
        by = list(config.by)
        rows = weighted_rows(dataset, config, predicate, [*by, self.agg_var], verbose)
        rows = rows.assign(**{
            self.agg_var: pd.to_numeric(rows[self.agg_var], errors="coerce")
        })
        rows = rows.dropna(subset=[self.agg_var])
        weights = weight_names(rows)
        stat = STATISTICS[self.statistic]

        def reduce_weighted(group: pd.DataFrame) -> dict:
            x = group[self.agg_var].to_numpy()
            return dict(zip(weights, stat(x, group[weights].to_numpy(dtype=float))))

        def reduce_unweighted(group: pd.DataFrame) -> dict:
            x = group[self.agg_var].to_numpy()
            return {"S": float(stat(x, np.ones(len(x)))[0])}

        weighted = group_reduce(rows, by, reduce_weighted, weights)
        unweighted = group_reduce(rows, by, reduce_unweighted, ["S"])
        count = group_size(rows, by, "N")

        return AggregateResult(weighted, unweighted, count, tuple(by))
