"""
Frequency (count) aggregates.

Weighted counts are the sum of each weight column per group; with
``prop=True`` the counts are turned into proportions that sum to one
within each ``prop_by`` group.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from ..dataset import Dataset
from ..levels import LevelConfig
from ..subset import Predicate
from .base import (
    AggregateResult,
    group_size,
    group_sum,
    weight_names,
    weighted_rows,
)


def _proportions(
    frame: pd.DataFrame,
    columns: list[str],
    prop_by: Optional[list[str]],
) -> pd.DataFrame:
    out = frame.copy()
    values = out[columns].astype(float)
    if prop_by:
        totals = values.groupby([out[c] for c in prop_by]).transform("sum")
    else:
        totals = values.sum()
    out[columns] = values / totals
    return out


@dataclass
class FrequencyAggregator:
    """
    Weighted and unweighted counts of household, person, vehicle or
    trip records.

    Attributes:
        prop: Return proportions instead of counts
        prop_by: Grouping variables within which proportions sum to one
            (the whole table when None)
    """

    prop: bool = False
    prop_by: Optional[list[str]] = None

    def aggregate(
        self,
        dataset: Dataset,
        config: LevelConfig,
        predicate: Predicate,
        verbose: bool = False,
    ) -> AggregateResult:
        by = list(config.by)
        rows = weighted_rows(dataset, config, predicate, by, verbose)
        weights = weight_names(rows)

        weighted = group_sum(rows, by, weights)
        unweighted = group_size(rows, by, "S")
        count = group_size(rows, by, "N")

        if self.prop:
            prop_by = [c for c in (self.prop_by or []) if c in by]
            weighted = _proportions(weighted, weights, prop_by)
            unweighted = _proportions(unweighted, ["S"], prop_by)

        return AggregateResult(weighted, unweighted, count, tuple(by))
