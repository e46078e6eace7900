"""
Trip rate aggregates.

A trip rate is a ratio of sums: weighted trips divided by weighted
households (or persons), converted to trips per day. The denominator is
grouped only by household/person variables, since a household cannot be
split by a trip attribute; the numerator is grouped by all of ``by``.
"""

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from ..dataset import Dataset
from ..joiner import attach_weights, distinct_rows, filter_joined, restore_dtypes
from ..levels import LevelConfig, split_rate_groups
from ..subset import Predicate, compile_subset
from ..variables import ValidationError
from .base import AggregateResult, group_size, group_sum, safe_divide, weight_names


def _combine(trips: pd.DataFrame, units: pd.DataFrame, on: list[str]) -> pd.DataFrame:
    """Join numerator and denominator on ``on``, or pair them when ungrouped."""
    if on:
        return trips.merge(units, on=on, suffixes=("_trip", "_unit"))
    return trips.merge(units, how="cross", suffixes=("_trip", "_unit"))


@dataclass
class RateAggregator:
    """
    Daily trips per household or per person.

    Attributes:
        level: "household" or "person"
        annualization_days: Days represented by one unit of trip weight
        exclude_missing: Trip-level variables whose missing responses are
            dropped from the numerator only; households and persons
            without trips stay in the denominator
    """

    level: str
    annualization_days: float = 365.0
    exclude_missing: Sequence[str] = ()

    def __post_init__(self):
        if self.level not in ("household", "person"):
            raise ValidationError(
                f"Trip rates are defined per household or person, not '{self.level}'"
            )

    def aggregate(
        self,
        dataset: Dataset,
        config: LevelConfig,
        predicate: Predicate,
        verbose: bool = False,
    ) -> AggregateResult:
        by = list(config.by)
        non_trip_groups, _ = split_rate_groups(by, dataset.catalog)
        unit_key = dataset.primary_key(self.level)
        trip_key = dataset.primary_key("trip")

        filtered = filter_joined(
            dataset, config.levels, [*trip_key, *by], predicate, verbose
        )

        # Denominator: distinct households/persons
        units = restore_dtypes(attach_weights(
            distinct_rows(filtered, unit_key, non_trip_groups),
            dataset.weights_for(self.level),
        ), dataset)
        # Numerator: distinct trips
        trip_rows = distinct_rows(filtered, trip_key, by)
        if self.exclude_missing:
            answered = compile_subset(None, dataset.catalog, self.exclude_missing)
            trip_rows = trip_rows[answered.evaluate(trip_rows, dataset.catalog)]
        trips = restore_dtypes(
            attach_weights(trip_rows, dataset.weights_for("trip")), dataset
        )
        if verbose:
            print(f"  {len(trips):,} trips over {len(units):,} {self.level} records")

        weights = weight_names(trips)
        unit_weighted = group_sum(units, non_trip_groups, weights)
        trip_weighted = group_sum(trips, by, weights)

        combined = _combine(trip_weighted, unit_weighted, non_trip_groups)
        weighted = combined[by].copy()
        for w in weights:
            rate = safe_divide(combined[f"{w}_trip"], combined[f"{w}_unit"])
            weighted[w] = rate / self.annualization_days

        combined_n = _combine(
            group_size(trips, by, "N"),
            group_size(units, non_trip_groups, "N"),
            non_trip_groups,
        )
        unweighted = combined_n[by].copy()
        unweighted["S"] = safe_divide(combined_n["N_trip"], combined_n["N_unit"])

        count = group_size(trips, by, "N")

        return AggregateResult(weighted, unweighted, count, tuple(by))
