"""
Aggregation methods.

Provides the three aggregation strategies:
- FrequencyAggregator: Weighted counts and proportions
- NumericAggregator: Weighted sum, average and median
- RateAggregator: Daily trips per household or person
"""

from typing import Optional, Sequence

from ..levels import RATE_AGGREGATES, aggregate_kind
from .base import AggregateResult
from .frequency import FrequencyAggregator
from .numeric import (
    NumericAggregator,
    weighted_mean,
    weighted_means,
    weighted_median,
    weighted_medians,
    weighted_sum,
    weighted_sums,
)
from .rate import RateAggregator


def get_aggregator(
    agg: str,
    agg_var: Optional[str] = None,
    prop: bool = False,
    prop_by: Optional[list[str]] = None,
    annualization_days: float = 365.0,
    exclude_missing: Sequence[str] = (),
):
    """
    Select the aggregation strategy for an aggregate type.

    Raises:
        ValidationError: If agg is not a recognized aggregate
    """
    kind = aggregate_kind(agg)
    if kind == "frequency":
        return FrequencyAggregator(prop=prop, prop_by=prop_by)
    if kind == "numeric":
        return NumericAggregator(statistic=agg, agg_var=agg_var)
    return RateAggregator(
        level=RATE_AGGREGATES[agg],
        annualization_days=annualization_days,
        exclude_missing=tuple(exclude_missing),
    )


__all__ = [
    "AggregateResult",
    "FrequencyAggregator",
    "NumericAggregator",
    "RateAggregator",
    "get_aggregator",
    "weighted_sum",
    "weighted_mean",
    "weighted_median",
    "weighted_sums",
    "weighted_means",
    "weighted_medians",
]
