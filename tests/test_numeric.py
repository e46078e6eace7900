"""Tests for numeric aggregates."""

import numpy as np
import pytest

from tabulation.levels import resolve_levels
from tabulation.methods import (
    NumericAggregator,
    get_aggregator,
    weighted_mean,
    weighted_means,
    weighted_median,
    weighted_medians,
    weighted_sum,
    weighted_sums,
)
from tabulation.subset import compile_subset
from tabulation.variables import ValidationError


def run(dataset, statistic, agg_var, by=None, subset=None):
    config = resolve_levels(statistic, agg_var, by, dataset.catalog)
    predicate = compile_subset(subset, dataset.catalog, [agg_var])
    return NumericAggregator(statistic, agg_var).aggregate(dataset, config, predicate)


class TestWeightedStatistics:
    """Tests for the per-weight statistic functions."""

    def test_weighted_sum(self):
        assert weighted_sum(np.array([1.0, 2.0]), np.array([3.0, 4.0])) == 11.0

    def test_weighted_mean(self):
        assert weighted_mean(np.array([1.0, 3.0]), np.array([1.0, 3.0])) == 2.5

    def test_weighted_mean_zero_weight(self):
        assert np.isnan(weighted_mean(np.array([1.0]), np.array([0.0])))

    def test_median_unit_weights_odd(self):
        assert weighted_median(np.array([5.0, 1.0, 3.0]), np.ones(3)) == 3.0

    def test_median_unit_weights_even_takes_lower(self):
        assert weighted_median(np.array([4.0, 1.0, 3.0, 2.0]), np.ones(4)) == 2.0

    def test_median_heavy_weight(self):
        x = np.array([8000.0, 12000.0, 20000.0])
        w = np.array([100.0, 100.0, 300.0])
        assert weighted_median(x, w) == 20000.0

    def test_median_zero_weights_ignored(self):
        x = np.array([1.0, 2.0, 100.0])
        w = np.array([0.0, 1.0, 0.0])
        assert weighted_median(x, w) == 2.0

    def test_medians_per_weight_column(self):
        x = np.array([1.0, 2.0, 3.0])
        weights = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        medians = weighted_medians(x, weights)
        assert medians[:2].tolist() == [1.0, 3.0]
        assert np.isnan(medians[2])

    def test_medians_match_column_by_column(self):
        rng = np.random.default_rng(7)
        x = rng.normal(size=41)
        weights = rng.uniform(0.5, 2.0, size=(41, 5))
        order = np.argsort(x)
        expected = []
        for k in range(weights.shape[1]):
            cumulative = np.cumsum(weights[order, k])
            expected.append(x[order][np.searchsorted(cumulative, cumulative[-1] / 2)])
        assert weighted_medians(x, weights).tolist() == expected

    def test_medians_empty(self):
        medians = weighted_medians(np.array([]), np.empty((0, 3)))
        assert medians.shape == (3,)
        assert np.isnan(medians).all()

    def test_sums_and_means_per_weight_column(self):
        x = np.array([1.0, 3.0])
        weights = np.array([[1.0, 0.0], [1.0, 2.0]])
        assert weighted_sums(x, weights).tolist() == [4.0, 6.0]
        assert weighted_means(x, weights).tolist() == [2.0, 3.0]

    def test_median_empty(self):
        assert np.isnan(weighted_median(np.array([]), np.array([])))

    def test_median_exact_half_with_rounding(self):
        x = np.array([1.0, 2.0, 3.0])
        w = np.array([0.1, 0.2, 0.3])
        assert weighted_median(x, w) == 2.0


class TestNumericAggregator:
    """Aggregation of ANNMILES on the tiny dataset (-9 is excluded)."""

    def test_average(self, tiny):
        result = run(tiny, "avg", "ANNMILES")
        assert result.weighted["_w0"].tolist() == pytest.approx([16000.0])
        assert result.unweighted["S"].tolist() == pytest.approx([40000.0 / 3])
        assert result.count["N"].tolist() == [3]

    def test_sum(self, tiny):
        result = run(tiny, "sum", "ANNMILES")
        assert result.weighted["_w0"].tolist() == pytest.approx([8_000_000.0])
        assert result.unweighted["S"].tolist() == pytest.approx([40000.0])

    def test_median(self, tiny):
        result = run(tiny, "median", "ANNMILES")
        assert result.weighted["_w0"].tolist() == [20000.0]
        assert result.unweighted["S"].tolist() == [12000.0]

    def test_replicate_statistics(self, tiny):
        result = run(tiny, "avg", "ANNMILES")
        # rep1: (12000*110 + 8000*110 + 20000*300) / 520
        assert result.weighted["_w1"].iloc[0] == pytest.approx(8_200_000 / 520)
        # rep2: (12000*100 + 8000*100 + 20000*330) / 530
        assert result.weighted["_w2"].iloc[0] == pytest.approx(8_600_000 / 530)

    def test_grouped(self, tiny):
        result = run(tiny, "avg", "ANNMILES", by=["CENSUS_R"])
        assert result.weighted["CENSUS_R"].tolist() == ["01"]
        assert result.weighted["_w0"].tolist() == pytest.approx([16000.0])

    def test_household_variable_with_trip_subset(self, tiny):
        """Household size is averaged once per matching household."""
        result = run(tiny, "avg", "HHSIZE", subset="STRTTIME == '0800'")
        assert result.weighted["_w0"].tolist() == pytest.approx([2.75])
        assert result.count["N"].tolist() == [2]

    def test_person_median_by_driver(self, tiny):
        result = run(tiny, "median", "R_AGE", by=["DRIVER"])
        medians = dict(zip(result.weighted["DRIVER"], result.weighted["_w0"]))
        # Drivers: ages 40 (100), 70 (200), 35 (300); skips: 10 (100), 5 (300)
        assert medians["01"] == 35.0
        assert medians["-1"] == 5.0
        assert medians["02"] == 33.0

    def test_unknown_statistic(self):
        with pytest.raises(ValidationError, match="mode"):
            NumericAggregator("mode", "R_AGE")


def test_get_aggregator_selects_numeric():
    aggregator = get_aggregator("median", agg_var="TRPMILES")
    assert isinstance(aggregator, NumericAggregator)
    assert aggregator.statistic == "median"
