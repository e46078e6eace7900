"""
Joining entity tables into one row set per request.

Tables are merged down the hierarchy on their shared identifier
columns. After filtering, rows are projected to the primary key and the
requested variables and deduplicated, so that a coarser attribute (e.g.
household size) is counted once per household rather than once per
matching trip.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import pandas as pd

from .dataset import Dataset, WeightSet
from .subset import Predicate
from .variables import LEVELS, ValidationError, level_chain


def levels_to_join(
    dataset: Dataset,
    levels: Iterable[str],
    predicate: Predicate,
) -> list[str]:
    """
    Levels that must be merged: the requested levels plus every level
    (with its ancestors) referenced by the subset condition.
    """
    needed = set(levels)
    for name in predicate.variables():
        needed.update(level_chain(dataset.catalog.level_of(name)))
    return [lvl for lvl in LEVELS if lvl in needed]


def merge_levels(
    dataset: Dataset,
    levels: Sequence[str],
    columns: Iterable[str],
) -> pd.DataFrame:
    """
    Full outer merge of the level tables, each trimmed to its key chain
    and the requested columns it owns.

    Args:
        dataset: Survey dataset
        levels: Levels to merge, in hierarchy order
        columns: Variables to carry through the merge

    Returns:
        Merged DataFrame (may contain several rows per key)
    """
    id_columns = set(dataset.id_columns.values())
    columns = [c for c in dict.fromkeys(columns) if c not in id_columns]
    catalog = dataset.catalog
    merged = None

    for level in levels:
        table = dataset.tables[level]
        key = dataset.primary_key(level)
        owned = [c for c in columns if catalog.level_of(c) == level]
        missing = [c for c in owned if c not in table.columns]
        if missing:
            raise ValidationError(
                f"{level} table is missing catalog variables: {missing}"
            )
        trimmed = table[key + owned]

        if merged is None:
            merged = trimmed
            continue

        on = [k for k in key if k in merged.columns]
        merged = merged.merge(trimmed, on=on, how="outer")

    return merged


def distinct_rows(
    frame: pd.DataFrame,
    pkey: Sequence[str],
    columns: Iterable[str],
) -> pd.DataFrame:
    """Project to ``pkey + columns`` and drop duplicate rows."""
    keep = list(dict.fromkeys([*pkey, *columns]))
    return frame[keep].drop_duplicates().reset_index(drop=True)


def filter_joined(
    dataset: Dataset,
    levels: Sequence[str],
    columns: Iterable[str],
    predicate: Predicate,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Merge the levels needed by a request and apply its row predicate.

    Returns:
        Filtered merged DataFrame
    """
    columns = list(dict.fromkeys([*columns, *sorted(predicate.variables())]))
    join = levels_to_join(dataset, levels, predicate)
    merged = merge_levels(dataset, join, columns)
    mask = predicate.evaluate(merged, dataset.catalog)
    if verbose:
        print(f"  Joined {', '.join(join)}: {len(merged):,} rows, "
              f"{int(mask.sum()):,} selected")
    return merged[mask]


def join_levels(
    dataset: Dataset,
    levels: Sequence[str],
    pkey: Sequence[str],
    columns: Iterable[str],
    predicate: Predicate,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Merge, filter, project and deduplicate in one step.

    Returns:
        One row per distinct combination of ``pkey`` and ``columns``
    """
    columns = list(columns)
    filtered = filter_joined(dataset, levels, [*pkey, *columns], predicate, verbose)
    return distinct_rows(filtered, pkey, columns)


def attach_weights(rows: pd.DataFrame, weights: WeightSet) -> pd.DataFrame:
    """
    Inner join rows to a weight set on its key.

    Rows without a weight (unsampled or out-of-scope units) are dropped,
    as are rows with any remaining missing value. Weights are returned
    under canonical names (see ``dataset.weight_columns``).
    """
    weighted = rows.merge(weights.frame(), on=list(weights.key), how="inner")
    return weighted.dropna().reset_index(drop=True)


def restore_dtypes(rows: pd.DataFrame, dataset: Dataset) -> pd.DataFrame:
    """
    Cast catalog variables back to the dtype of their owning table.

    Outer merges turn integer columns of child levels into floats when a
    parent has no child; once the nulls are gone the codes must match the
    codebook again (``1``, not ``1.0``).
    """
    out = rows.copy()
    for name in rows.columns:
        if name not in dataset.catalog:
            continue
        source = dataset.tables[dataset.catalog.level_of(name)][name].dtype
        if out[name].dtype != source and not out[name].isna().any():
            out[name] = out[name].astype(source)
    return out
