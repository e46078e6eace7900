"""
Entity level resolution for summary requests.

Works out which levels of the household → person/vehicle → trip
hierarchy an aggregate needs, which primary key identifies one
observation, and which grouping variables can be hosted at that level.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .variables import ValidationError, VariableCatalog, level_chain

FREQUENCY_AGGREGATES = {
    "household_count": "household",
    "vehicle_count": "vehicle",
    "person_count": "person",
    "trip_count": "trip",
}

NUMERIC_AGGREGATES = ("sum", "avg", "median")

RATE_AGGREGATES = {
    "household_trip_rate": "household",
    "person_trip_rate": "person",
}

AGGREGATES = (
    *FREQUENCY_AGGREGATES,
    *NUMERIC_AGGREGATES,
    *RATE_AGGREGATES,
)

AGG_LABELS = {
    "household_count": "Household Frequency",
    "vehicle_count": "Vehicle Frequency",
    "person_count": "Person Frequency",
    "trip_count": "Trip Frequency",
    "sum": "Sum",
    "avg": "Average",
    "median": "Median",
    "household_trip_rate": "Household Trip Rate",
    "person_trip_rate": "Person Trip Rate",
}


class DroppedGroupWarning(UserWarning):
    """Issued when grouping variables are dropped because of a level mismatch."""
    pass


@dataclass(frozen=True)
class LevelConfig:
    """
    Resolved levels for one aggregate.

    Attributes:
        agg: Aggregate type
        kind: "frequency", "numeric" or "rate"
        levels: Levels whose variables may be used for grouping
        pkey_level: Level whose primary key identifies one observation
        by: Grouping variables that survived level validation, in order
        dropped: Grouping variables removed because of a level mismatch
    """

    agg: str
    kind: str
    levels: tuple
    pkey_level: str
    by: tuple
    dropped: tuple = ()


def aggregate_kind(agg: str) -> str:
    """
    Classify an aggregate type.

    Raises:
        ValidationError: If agg is not a recognized aggregate
    """
    if agg in FREQUENCY_AGGREGATES:
        return "frequency"
    if agg in NUMERIC_AGGREGATES:
        return "numeric"
    if agg in RATE_AGGREGATES:
        return "rate"
    raise ValidationError(
        f"{agg!r} is not a valid aggregate label. Use one of: "
        + ", ".join(f'"{a}"' for a in AGGREGATES)
    )


def resolve_levels(
    agg: str,
    agg_var: Optional[str],
    by: Optional[Sequence[str]],
    catalog: VariableCatalog,
) -> LevelConfig:
    """
    Determine levels, primary key level and valid grouping variables.

    Args:
        agg: Aggregate type
        agg_var: Numeric variable for sum/avg/median
        by: Requested grouping variables
        catalog: Variable catalog

    Returns:
        LevelConfig

    Raises:
        ValidationError: For unknown aggregates, a missing or unknown
            agg_var, or grouping variables absent from the catalog
    """
    kind = aggregate_kind(agg)
    by = list(dict.fromkeys(by or []))

    for name in by:
        if name not in catalog:
            raise ValidationError(
                f"by variable '{name}' not found in the variable catalog"
            )

    if kind == "frequency":
        pkey_level = FREQUENCY_AGGREGATES[agg]
        levels = level_chain(pkey_level)
    elif kind == "numeric":
        if not agg_var:
            raise ValidationError(
                f"agg_var is required for the '{agg}' aggregate"
            )
        if agg_var not in catalog:
            raise ValidationError(
                f"agg_var '{agg_var}' not found in the variable catalog"
            )
        pkey_level = catalog.level_of(agg_var)
        levels = level_chain(pkey_level)
    else:
        pkey_level = RATE_AGGREGATES[agg]
        levels = level_chain("trip")

    kept = [name for name in by if catalog.level_of(name) in levels]
    dropped = [name for name in by if name not in kept]

    return LevelConfig(
        agg=agg,
        kind=kind,
        levels=tuple(levels),
        pkey_level=pkey_level,
        by=tuple(kept),
        dropped=tuple(dropped),
    )


def split_rate_groups(
    by: Sequence[str],
    catalog: VariableCatalog,
) -> tuple[list[str], list[str]]:
    """
    Split grouping variables for trip rates.

    Returns:
        (non_trip_groups, trip_groups): variables owned by household or
        person level, and variables owned by the trip level
    """
    non_trip = [name for name in by if catalog.level_of(name) != "trip"]
    trip = [name for name in by if name not in non_trip]
    return non_trip, trip
