"""
Survey dataset container.

Holds per-level entity tables, per-level replicate weight sets and the
variable catalog, plus the dataset-wide replication constants needed
for jackknife variance and daily trip rates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

import pandas as pd

from .variables import (
    LEVELS,
    PARENT_LEVEL,
    ValidationError,
    VariableCatalog,
    level_chain,
)

# Identifier column for each entity level (NHTS naming)
ID_COLUMNS = {
    "household": "HOUSEID",
    "person": "PERSONID",
    "vehicle": "VEHID",
    "trip": "TDTRPNUM",
}

FULL_WEIGHT = "_w0"


def weight_columns(n_replicates: int) -> list[str]:
    """Canonical weight column names: full weight first, then replicates."""
    return [f"_w{i}" for i in range(n_replicates + 1)]


def _check_unique_key(table: pd.DataFrame, key: list[str], what: str) -> None:
    missing = [k for k in key if k not in table.columns]
    if missing:
        raise ValidationError(f"{what} is missing key columns: {missing}")
    if table.duplicated(subset=key).any():
        n_dup = int(table.duplicated(subset=key).sum())
        raise ValidationError(
            f"{what} has {n_dup} duplicate rows for primary key {key}"
        )


@dataclass(frozen=True, eq=False)
class WeightSet:
    """
    Primary and replicate weights for one entity level.

    Attributes:
        level: Entity level the weights apply to
        table: DataFrame holding key and weight columns
        key: Primary key columns of the level
        primary: Primary (final) weight column
        replicates: Ordered replicate weight columns
    """

    level: str
    table: pd.DataFrame
    key: tuple
    primary: str
    replicates: tuple

    def __post_init__(self):
        if self.level not in LEVELS:
            raise ValidationError(f"Unknown weight level: {self.level}")
        what = f"{self.level} weights"
        _check_unique_key(self.table, list(self.key), what)
        missing = [
            c for c in (self.primary, *self.replicates)
            if c not in self.table.columns
        ]
        if missing:
            raise ValidationError(f"{what} is missing weight columns: {missing}")

    @property
    def n_replicates(self) -> int:
        return len(self.replicates)

    @property
    def names(self) -> list[str]:
        return [self.primary, *self.replicates]

    def frame(self) -> pd.DataFrame:
        """Key columns plus weights renamed to canonical names."""
        canonical = weight_columns(self.n_replicates)
        out = self.table[list(self.key) + self.names]
        return out.rename(columns=dict(zip(self.names, canonical)))


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Hierarchical survey dataset.

    Attributes:
        name: Dataset identifier (e.g. "2017")
        tables: Entity table per level
        weights: WeightSet per level (vehicle may be absent; household
            weights are used in that case)
        catalog: Variable catalog
        jk_scale: Jackknife scaling constant for the replication design
        annualization_days: Days represented by one unit of trip weight
        id_columns: Identifier column per level
    """

    name: str
    tables: Mapping[str, pd.DataFrame]
    weights: Mapping[str, WeightSet]
    catalog: VariableCatalog
    jk_scale: float
    annualization_days: float = 365.0
    id_columns: Mapping[str, str] = field(default_factory=lambda: dict(ID_COLUMNS))

    def __post_init__(self):
        for level, table in self.tables.items():
            if level not in LEVELS:
                raise ValidationError(f"Unknown table level: {level}")
            _check_unique_key(table, self.primary_key(level), f"{level} table")

        missing_tables = self.catalog.levels - set(self.tables)
        if missing_tables:
            raise ValidationError(
                f"Catalog references levels without tables: {sorted(missing_tables)}"
            )

        counts = {lvl: ws.n_replicates for lvl, ws in self.weights.items()}
        if len(set(counts.values())) > 1:
            raise ValidationError(
                f"Replicate weight count differs across levels: {counts}"
            )
        if not self.weights:
            raise ValidationError("Dataset has no weight sets")

    @property
    def replicate_count(self) -> int:
        return next(iter(self.weights.values())).n_replicates

    def primary_key(self, level: str) -> list[str]:
        """Identifier columns from household down to ``level``."""
        return [self.id_columns[lvl] for lvl in level_chain(level)]

    def weights_for(self, level: str) -> WeightSet:
        """
        WeightSet for a level, walking up the hierarchy when the level
        carries no weights of its own.
        """
        current: Optional[str] = level
        while current is not None:
            if current in self.weights:
                return self.weights[current]
            current = PARENT_LEVEL[current]
        raise ValidationError(f"No weights available for level '{level}'")


@dataclass(frozen=True)
class SurveyConfig:
    """
    Per-call configuration.

    Attributes:
        annualization_days: Overrides the dataset's annualization constant
            when set
        verbose: Print progress for each pipeline stage
    """

    annualization_days: Optional[float] = None
    verbose: bool = False

    def days_for(self, dataset: Dataset) -> float:
        if self.annualization_days is not None:
            return self.annualization_days
        return dataset.annualization_days
