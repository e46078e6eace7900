"""Tests for the survey dataset container."""

import pandas as pd
import pytest

from tabulation.dataset import Dataset, SurveyConfig, WeightSet, weight_columns
from tabulation.variables import ValidationError, VariableCatalog, VariableDescriptor


def household_weights(**overrides):
    table = pd.DataFrame({"HOUSEID": [1, 2], "WT": [10.0, 20.0], "WT1": [11.0, 19.0]})
    return WeightSet(**{
        "level": "household",
        "table": table,
        "key": ("HOUSEID",),
        "primary": "WT",
        "replicates": ("WT1",),
        **overrides,
    })


class TestWeightSet:
    """Tests for WeightSet validation and canonical columns."""

    def test_frame_uses_canonical_names(self):
        frame = household_weights().frame()
        assert list(frame.columns) == ["HOUSEID", "_w0", "_w1"]
        assert frame["_w1"].tolist() == [11.0, 19.0]

    def test_names(self):
        weights = household_weights()
        assert weights.names == ["WT", "WT1"]
        assert weights.n_replicates == 1

    def test_missing_weight_column(self):
        with pytest.raises(ValidationError, match="WT9"):
            household_weights(replicates=("WT1", "WT9"))

    def test_duplicate_key(self):
        table = pd.DataFrame({"HOUSEID": [1, 1], "WT": [1.0, 2.0]})
        with pytest.raises(ValidationError, match="duplicate"):
            household_weights(table=table, replicates=())

    def test_unknown_level(self):
        with pytest.raises(ValidationError, match="tax_unit"):
            household_weights(level="tax_unit")


class TestDataset:
    """Tests for Dataset validation and lookups."""

    def test_primary_key(self, tiny):
        assert tiny.primary_key("household") == ["HOUSEID"]
        assert tiny.primary_key("trip") == ["HOUSEID", "PERSONID", "TDTRPNUM"]
        assert tiny.primary_key("vehicle") == ["HOUSEID", "VEHID"]

    def test_weights_for_own_level(self, tiny):
        assert tiny.weights_for("person").primary == "PWT"

    def test_weights_for_walks_up(self, tiny):
        """Vehicle level has no weights, so household weights apply."""
        assert tiny.weights_for("vehicle").primary == "WT"

    def test_replicate_count(self, tiny):
        assert tiny.replicate_count == 2

    def test_duplicate_table_key(self):
        catalog = VariableCatalog([VariableDescriptor("HHSIZE", "household", "Size")])
        households = pd.DataFrame({"HOUSEID": [1, 1], "HHSIZE": [2, 3]})
        with pytest.raises(ValidationError, match="household table"):
            Dataset("bad", {"household": households},
                    {"household": household_weights()}, catalog, 1.0)

    def test_catalog_level_without_table(self):
        catalog = VariableCatalog([VariableDescriptor("R_AGE", "person", "Age")])
        households = pd.DataFrame({"HOUSEID": [1, 2]})
        with pytest.raises(ValidationError, match="person"):
            Dataset("bad", {"household": households},
                    {"household": household_weights()}, catalog, 1.0)

    def test_mismatched_replicate_counts(self):
        catalog = VariableCatalog([VariableDescriptor("R_AGE", "person", "Age")])
        households = pd.DataFrame({"HOUSEID": [1, 2]})
        persons = pd.DataFrame({"HOUSEID": [1, 2], "PERSONID": [1, 1], "R_AGE": [30, 40]})
        person_weights = WeightSet(
            "person",
            pd.DataFrame({"HOUSEID": [1, 2], "PERSONID": [1, 1], "PWT": [1.0, 1.0]}),
            ("HOUSEID", "PERSONID"), "PWT", (),
        )
        with pytest.raises(ValidationError, match="Replicate weight count"):
            Dataset(
                "bad",
                {"household": households, "person": persons},
                {"household": household_weights(), "person": person_weights},
                catalog,
                1.0,
            )

    def test_no_weights(self):
        catalog = VariableCatalog([VariableDescriptor("HHSIZE", "household", "Size")])
        households = pd.DataFrame({"HOUSEID": [1], "HHSIZE": [1]})
        with pytest.raises(ValidationError, match="no weight sets"):
            Dataset("bad", {"household": households}, {}, catalog, 1.0)


class TestSurveyConfig:
    def test_days_default_to_dataset(self, tiny):
        assert SurveyConfig().days_for(tiny) == 365.0

    def test_days_override(self, tiny):
        assert SurveyConfig(annualization_days=1.0).days_for(tiny) == 1.0


def test_weight_columns():
    assert weight_columns(2) == ["_w0", "_w1", "_w2"]
