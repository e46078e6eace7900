"""
Weighted summaries of household travel survey data.

Produces population estimates (counts, proportions, sums, averages,
medians and trip rates) from hierarchical survey microdata, with
jackknife standard errors from replicate weights.

Data are hierarchical:
- Households, with persons and vehicles linked to each household
- Trips, linked to the person who made them
"""

from .dataset import Dataset, WeightSet, SurveyConfig
from .loader import load_synthetic_dataset
from .levels import DroppedGroupWarning, resolve_levels
from .subset import ExpressionError, compile_subset, parse_subset, var
from .summary import PropIgnoredWarning, SummaryTable, summarize_data
from .variables import (
    ValidationError,
    VariableCatalog,
    VariableDescriptor,
    VariableNotFoundError,
)
from .variance import jackknife_se

__all__ = [
    # Entry point
    "summarize_data",
    "SummaryTable",
    # Data
    "Dataset",
    "WeightSet",
    "SurveyConfig",
    "load_synthetic_dataset",
    # Variables
    "VariableCatalog",
    "VariableDescriptor",
    # Filtering
    "parse_subset",
    "compile_subset",
    "var",
    # Levels and variance
    "resolve_levels",
    "jackknife_se",
    # Errors and warnings
    "ValidationError",
    "VariableNotFoundError",
    "ExpressionError",
    "DroppedGroupWarning",
    "PropIgnoredWarning",
]
