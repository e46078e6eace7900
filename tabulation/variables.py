"""
Variable catalog and entity level resolution.

Maps survey variable names to the entity level that owns them
(household, person, vehicle, trip) along with display labels and
code → label maps.

Example:
    >>> catalog = VariableCatalog.from_records([
    ...     {"NAME": "HHSIZE", "TABLE": "household", "LABEL": "Household size"},
    ... ])
    >>> catalog.level_of("HHSIZE")
    "household"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

import pandas as pd


LEVELS = ("household", "person", "vehicle", "trip")

PARENT_LEVEL = {
    "household": None,
    "person": "household",
    "vehicle": "household",
    "trip": "person",
}

# Reserved response codes (appropriate skip, refused, don't know, not ascertained)
DEFAULT_MISSING_VALUES = (-1, -7, -8, -9)


class ValidationError(ValueError):
    """Raised when a request or dataset fails structural validation."""
    pass


class VariableNotFoundError(ValidationError):
    """Raised when a variable is not present in the catalog."""
    pass


def level_chain(level: str) -> list[str]:
    """
    Return the ancestors of a level followed by the level itself.

    Args:
        level: Entity level name

    Returns:
        Ordered list from household down to ``level``

    Raises:
        ValidationError: If level is not a known entity level
    """
    if level not in PARENT_LEVEL:
        raise ValidationError(
            f"Unknown level: {level}. Valid levels: {', '.join(LEVELS)}"
        )

    chain = []
    current = level
    while current is not None:
        chain.append(current)
        current = PARENT_LEVEL[current]
    return chain[::-1]


@dataclass(frozen=True)
class VariableDescriptor:
    """
    Catalog entry for a single survey variable.

    Attributes:
        name: Variable name as it appears in the entity table
        level: Owning entity level
        label: Human-readable label
        codes: Ordered code → label map for categorical variables
        missing_values: Sentinel codes treated as missing responses
    """

    name: str
    level: str
    label: str
    codes: Mapping[str, str] = field(default_factory=dict)
    missing_values: tuple = DEFAULT_MISSING_VALUES

    def is_missing(self, values: pd.Series) -> pd.Series:
        """Boolean mask of null values or sentinel codes."""
        sentinels = list(self.missing_values)
        sentinels += [str(v) for v in self.missing_values]
        if pd.api.types.is_numeric_dtype(values):
            sentinels = [float(v) for v in self.missing_values]
        return values.isna() | values.isin(sentinels)

    def code_order(self, values: Iterable) -> list:
        """
        Order observed codes by codebook order.

        Codes listed in the codebook come first in codebook order,
        followed by any unlisted codes in natural sort order.
        """
        observed = list(pd.unique(pd.Series(list(values)).dropna()))
        known = [c for c in self.codes if c in set(map(str, observed))]
        by_str = {str(v): v for v in observed}
        ordered = [by_str[c] for c in known]
        rest = [v for v in observed if str(v) not in self.codes]
        return ordered + sorted(rest, key=_natural_key)

    def label_for(self, code) -> str:
        """Label for a code, falling back to the code itself."""
        return self.codes.get(str(code), str(code))


def _natural_key(value):
    try:
        return (0, float(value), "")
    except (TypeError, ValueError):
        return (1, 0.0, str(value))


class VariableCatalog:
    """
    Immutable lookup of variable descriptors by name.

    Raises VariableNotFoundError for unknown names so that callers can
    surface the offending variable to the user.
    """

    def __init__(self, descriptors: Iterable[VariableDescriptor]):
        self._variables: dict[str, VariableDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.level not in LEVELS:
                raise ValidationError(
                    f"Variable {descriptor.name} has unknown level "
                    f"'{descriptor.level}'. Valid levels: {', '.join(LEVELS)}"
                )
            self._variables[descriptor.name] = descriptor

    def __contains__(self, name: object) -> bool:
        return name in self._variables

    def __iter__(self):
        return iter(self._variables.values())

    def __len__(self) -> int:
        return len(self._variables)

    def get(self, name: str) -> VariableDescriptor:
        """
        Get the descriptor for a variable.

        Raises:
            VariableNotFoundError: If the variable is not in the catalog
        """
        try:
            return self._variables[name]
        except KeyError:
            raise VariableNotFoundError(
                f"Variable '{name}' not found in the variable catalog"
            ) from None

    def level_of(self, name: str) -> str:
        return self.get(name).level

    def label_of(self, name: str) -> str:
        return self.get(name).label

    def names_at(self, levels: Iterable[str]) -> list[str]:
        """All variable names owned by any of ``levels``."""
        levels = set(levels)
        return [d.name for d in self._variables.values() if d.level in levels]

    @property
    def levels(self) -> set[str]:
        return {d.level for d in self._variables.values()}

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping],
        values: Optional[Iterable[Mapping]] = None,
    ) -> "VariableCatalog":
        """
        Build a catalog from codebook rows.

        Args:
            records: Rows with NAME, TABLE and LABEL keys
            values: Optional rows with NAME, VALUE and LABEL keys giving
                the code → label map for categorical variables, in order

        Returns:
            VariableCatalog
        """
        codes: dict[str, dict[str, str]] = {}
        for row in values or []:
            codes.setdefault(row["NAME"], {})[str(row["VALUE"])] = row["LABEL"]

        descriptors = []
        for row in records:
            name = row["NAME"]
            descriptors.append(VariableDescriptor(
                name=name,
                level=str(row["TABLE"]).lower(),
                label=row.get("LABEL", name),
                codes=codes.get(name, {}),
            ))
        return cls(descriptors)

    @classmethod
    def from_frame(
        cls,
        variables: pd.DataFrame,
        values: Optional[pd.DataFrame] = None,
    ) -> "VariableCatalog":
        """Build a catalog from codebook DataFrames (see ``from_records``)."""
        value_rows = values.to_dict("records") if values is not None else None
        return cls.from_records(variables.to_dict("records"), value_rows)
