"""Shared fixtures: a tiny hand-checkable travel survey dataset.

Households (weight, rep1, rep2):
    1: HHSIZE 2, CENSUS_R 01, (100, 110, 100)
    2: HHSIZE 1, CENSUS_R 02, (200, 190, 200)
    3: HHSIZE 3, CENSUS_R 01, (300, 300, 330)

Persons share their household's weights. Trips carry person weight x 365.
Person (2,1) and (3,3) make no trips; household 2 has no vehicles.
VEHTYPE is integer-coded (1 Car, 2 Van) to exercise code lookups after
outer merges.
"""

import numpy as np
import pandas as pd
import pytest

from tabulation.dataset import Dataset, WeightSet
from tabulation.variables import VariableCatalog, VariableDescriptor


HH_WEIGHTS = {1: (100.0, 110.0, 100.0), 2: (200.0, 190.0, 200.0), 3: (300.0, 300.0, 330.0)}


def build_catalog() -> VariableCatalog:
    yes_no = {"01": "Yes", "02": "No"}
    return VariableCatalog([
        VariableDescriptor("HHSIZE", "household", "Count of household members"),
        VariableDescriptor("CENSUS_R", "household", "Census region",
                           {"01": "Northeast", "02": "Midwest"}),
        VariableDescriptor("R_AGE", "person", "Age"),
        VariableDescriptor("DRIVER", "person", "Driver status", yes_no),
        VariableDescriptor("WORKER", "person", "Worker status", yes_no),
        VariableDescriptor("VEHAGE", "vehicle", "Vehicle age"),
        VariableDescriptor("ANNMILES", "vehicle", "Annual miles"),
        VariableDescriptor("VEHTYPE", "vehicle", "Vehicle type", {"1": "Car", "2": "Van"}),
        VariableDescriptor("STRTTIME", "trip", "Trip start hour",
                           {"0800": "8 AM", "1200": "Noon", "1700": "5 PM"}),
        VariableDescriptor("TRPMILES", "trip", "Trip miles"),
    ])


def build_tiny_dataset(equal_replicates: bool = False) -> Dataset:
    households = pd.DataFrame({
        "HOUSEID": [1, 2, 3],
        "HHSIZE": [2, 1, 3],
        "CENSUS_R": ["01", "02", "01"],
    })
    persons = pd.DataFrame({
        "HOUSEID": [1, 1, 2, 3, 3, 3],
        "PERSONID": [1, 2, 1, 1, 2, 3],
        "R_AGE": [40, 10, 70, 35, 33, 5],
        "DRIVER": ["01", "-1", "01", "01", "02", "-1"],
        "WORKER": ["01", "-1", "02", "01", "01", "-1"],
    })
    vehicles = pd.DataFrame({
        "HOUSEID": [1, 1, 3, 3],
        "VEHID": [1, 2, 1, 2],
        "VEHAGE": [3, 10, 5, 1],
        "ANNMILES": [12000.0, 8000.0, -9.0, 20000.0],
        "VEHTYPE": [1, 2, 1, 1],
    })
    trips = pd.DataFrame({
        "HOUSEID": [1, 1, 1, 3, 3, 3],
        "PERSONID": [1, 1, 2, 1, 1, 2],
        "TDTRPNUM": [1, 2, 1, 1, 2, 1],
        "STRTTIME": ["0800", "1700", "0800", "0800", "1200", "1700"],
        "TRPMILES": [5.0, 5.0, 2.0, 10.0, 3.0, 4.0],
    })

    def weights_for(houseids):
        rows = np.array([HH_WEIGHTS[h] for h in houseids])
        if equal_replicates:
            rows = np.repeat(rows[:, :1], 3, axis=1)
        return rows

    hh_w = pd.DataFrame(weights_for(households["HOUSEID"]), columns=["WT", "WT1", "WT2"])
    hh_w.insert(0, "HOUSEID", households["HOUSEID"])

    per_w = pd.DataFrame(weights_for(persons["HOUSEID"]), columns=["PWT", "PWT1", "PWT2"])
    per_w.insert(0, "PERSONID", persons["PERSONID"])
    per_w.insert(0, "HOUSEID", persons["HOUSEID"])

    trp_w = pd.DataFrame(weights_for(trips["HOUSEID"]) * 365, columns=["TWT", "TWT1", "TWT2"])
    trp_w.insert(0, "TDTRPNUM", trips["TDTRPNUM"])
    trp_w.insert(0, "PERSONID", trips["PERSONID"])
    trp_w.insert(0, "HOUSEID", trips["HOUSEID"])

    return Dataset(
        name="tiny",
        tables={
            "household": households,
            "person": persons,
            "vehicle": vehicles,
            "trip": trips,
        },
        weights={
            "household": WeightSet("household", hh_w, ("HOUSEID",), "WT", ("WT1", "WT2")),
            "person": WeightSet("person", per_w, ("HOUSEID", "PERSONID"), "PWT", ("PWT1", "PWT2")),
            "trip": WeightSet(
                "trip", trp_w, ("HOUSEID", "PERSONID", "TDTRPNUM"), "TWT", ("TWT1", "TWT2")
            ),
        },
        catalog=build_catalog(),
        jk_scale=1.0,
        annualization_days=365.0,
    )


@pytest.fixture
def tiny():
    """Tiny dataset with hand-checkable weights."""
    return build_tiny_dataset()


@pytest.fixture
def tiny_equal_replicates():
    """Tiny dataset whose replicate weights equal the primary weight."""
    return build_tiny_dataset(equal_replicates=True)
