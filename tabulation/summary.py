"""
Weighted summary tables with jackknife standard errors.

``summarize_data`` is the single entry point: it resolves levels,
filters and joins the entity tables, aggregates with the full and every
replicate weight, computes standard errors and assembles a labelled
table with columns ``[by..., W, E, S, N]``:

- W: weighted statistic
- E: standard error of W
- S: unweighted (sampled) statistic
- N: number of observations

Example:
    >>> dataset = load_synthetic_dataset(seed=42)
    >>> tbl = summarize_data(dataset, agg="person_trip_rate", by=["WORKER"])
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import pandas as pd
from scipy import stats

from .dataset import FULL_WEIGHT, Dataset, SurveyConfig
from .levels import AGG_LABELS, DroppedGroupWarning, resolve_levels, split_rate_groups
from .methods import AggregateResult, get_aggregator
from .methods.base import weight_names
from .subset import Predicate, compile_subset
from .variables import ValidationError, VariableCatalog
from .variance import standard_errors


class PropIgnoredWarning(UserWarning):
    """Issued when proportions are requested for a non-count aggregate."""
    pass


@dataclass
class SummaryTable:
    """
    Result of ``summarize_data``.

    Attributes:
        data: Table with ``by`` columns (ordered categoricals) and W, E, S, N
        dataset: Dataset name
        agg: Aggregate type
        agg_label: Display label of the aggregate
        agg_var: Aggregated variable (numeric aggregates only)
        agg_var_label: Label of ``agg_var``
        by: Grouping variables actually used
        by_label: Label of each grouping variable
        prop: Whether W and S are proportions
        label: Whether ``by`` values are display labels
        error: Description of E
    """

    data: pd.DataFrame
    dataset: str
    agg: str
    agg_label: str
    agg_var: Optional[str] = None
    agg_var_label: Optional[str] = None
    by: list[str] = field(default_factory=list)
    by_label: dict[str, str] = field(default_factory=dict)
    prop: bool = False
    label: bool = True
    error: str = "Standard Error"

    def __len__(self) -> int:
        return len(self.data)

    @property
    def W(self) -> pd.Series:
        return self.data["W"]

    @property
    def E(self) -> pd.Series:
        return self.data["E"]

    def relative_error(self) -> pd.Series:
        """Standard error relative to the estimate (coefficient of variation)."""
        return (self.data["E"] / self.data["W"]).rename("RSE")

    def confidence_intervals(self, level: float = 0.95) -> pd.DataFrame:
        """
        Table with normal-approximation confidence bounds added.

        Args:
            level: Confidence level in (0, 1)

        Returns:
            Copy of ``data`` with ``lower`` and ``upper`` columns
        """
        if not 0 < level < 1:
            raise ValueError(f"Confidence level must be in (0, 1), got {level}")
        z = stats.norm.ppf(0.5 + level / 2)
        out = self.data.copy()
        out["lower"] = out["W"] - z * out["E"]
        out["upper"] = out["W"] + z * out["E"]
        return out


def _categorize(
    table: pd.DataFrame,
    by: Sequence[str],
    catalog: VariableCatalog,
    label: bool,
) -> pd.DataFrame:
    """Turn ``by`` columns into ordered categoricals in codebook order."""
    out = table.copy()
    for name in by:
        descriptor = catalog.get(name)
        order = descriptor.code_order(out[name])
        if label:
            labels = [descriptor.label_for(code) for code in order]
            mapping = dict(zip(order, labels))
            out[name] = pd.Categorical(
                out[name].map(mapping),
                categories=list(dict.fromkeys(labels)),
                ordered=True,
            )
        else:
            out[name] = pd.Categorical(out[name], categories=order, ordered=True)
    return out


def assemble(
    result: AggregateResult,
    catalog: VariableCatalog,
    jk_scale: float,
    label: bool = True,
) -> pd.DataFrame:
    """
    Merge weighted, unweighted and count partials into one table.

    Args:
        result: Partials from an aggregation method
        catalog: Variable catalog for code order and labels
        jk_scale: Jackknife scaling constant
        label: Replace codes with labels in ``by`` columns

    Returns:
        DataFrame with columns ``[by..., W, E, S, N]`` sorted by code order
    """
    by = list(result.by)
    weighted = result.weighted
    weights = weight_names(weighted)

    estimates = weighted[by].copy()
    estimates["W"] = weighted[FULL_WEIGHT].to_numpy(dtype=float)
    estimates["E"] = standard_errors(weighted, weights, jk_scale).to_numpy()

    if by:
        table = (
            estimates
            .merge(result.unweighted, on=by, how="outer", validate="one_to_one")
            .merge(result.count, on=by, how="outer", validate="one_to_one")
        )
    else:
        table = pd.concat(
            [
                estimates.reset_index(drop=True),
                result.unweighted[["S"]].reset_index(drop=True),
                result.count[["N"]].reset_index(drop=True),
            ],
            axis=1,
        )

    table["N"] = table["N"].fillna(0).astype(int)

    table = _categorize(table, by, catalog, label)
    if by:
        table = table.sort_values(by).reset_index(drop=True)
    return table[[*by, "W", "E", "S", "N"]]


def summarize_data(
    data: Dataset,
    agg: str,
    agg_var: Optional[str] = None,
    by: Optional[Sequence[str]] = None,
    subset: Union[str, Predicate, None] = None,
    label: bool = True,
    prop: bool = False,
    prop_by: Optional[Sequence[str]] = None,
    exclude_missing: bool = False,
    config: Optional[SurveyConfig] = None,
) -> SummaryTable:
    """
    Create a weighted aggregate table from survey data.

    Args:
        data: Survey dataset
        agg: One of "household_count", "vehicle_count", "person_count",
            "trip_count", "sum", "avg", "median", "household_trip_rate",
            "person_trip_rate"
        agg_var: Numeric variable for sum/avg/median
        by: Grouping variables
        subset: Pre-aggregation filter, e.g. ``"HHSTATE %in% c('GA','FL')"``
        label: Use codebook labels for ``by`` values
        prop: Return proportions for count aggregates
        prop_by: Grouping variables within which proportions sum to one;
            must be a subset of ``by``
        exclude_missing: Also exclude missing responses of ``by`` variables
            (missing ``agg_var`` values are always excluded). For trip
            rates, trip-level ``by`` variables only restrict the trips
            counted, not the households or persons they are divided by
        config: Per-call configuration

    Returns:
        SummaryTable

    Raises:
        TypeError: If data is not a Dataset
        ValidationError: For invalid aggregates, variables or prop_by
        ExpressionError: For an invalid subset condition
    """
    if not isinstance(data, Dataset):
        raise TypeError(
            f"data must be a Dataset, got {type(data).__name__}"
        )
    config = config or SurveyConfig()
    catalog = data.catalog
    by = list(by or [])
    prop_by = list(prop_by or [])

    if config.verbose:
        print(f"Summarizing {agg} for dataset {data.name}...")

    levels = resolve_levels(agg, agg_var, by, catalog)

    if levels.dropped:
        warnings.warn(
            f"agg: {agg}. Removing the following by: {', '.join(levels.dropped)}",
            DroppedGroupWarning,
            stacklevel=2,
        )

    if prop and levels.kind != "frequency":
        warnings.warn(
            "Can only calculate proportions for count aggregates. "
            'Ignoring parameter "prop = True".',
            PropIgnoredWarning,
            stacklevel=2,
        )
        prop = False

    if prop:
        outside = [name for name in prop_by if name not in by]
        if outside:
            raise ValidationError(
                f"prop_by variables must also be by variables: {', '.join(outside)}"
            )

    if levels.kind != "numeric":
        agg_var = None

    missing_vars = [agg_var] if agg_var else []
    trip_missing = []
    if exclude_missing and levels.kind == "rate":
        # Households and persons without trips have no trip attributes
        non_trip_groups, trip_missing = split_rate_groups(levels.by, catalog)
        missing_vars += non_trip_groups
    elif exclude_missing:
        missing_vars += list(levels.by)
    predicate = compile_subset(subset, catalog, missing_vars)

    aggregator = get_aggregator(
        agg,
        agg_var=agg_var,
        prop=prop,
        prop_by=[name for name in prop_by if name in levels.by],
        annualization_days=config.days_for(data),
        exclude_missing=trip_missing,
    )
    result = aggregator.aggregate(data, levels, predicate, config.verbose)
    table = assemble(result, catalog, data.jk_scale, label)

    if config.verbose:
        print(f"  Done: {len(table):,} groups")

    return SummaryTable(
        data=table,
        dataset=data.name,
        agg=agg,
        agg_label=AGG_LABELS[agg],
        agg_var=agg_var,
        agg_var_label=catalog.label_of(agg_var) if agg_var else None,
        by=list(levels.by),
        by_label={name: catalog.label_of(name) for name in levels.by},
        prop=prop,
        label=label,
    )
