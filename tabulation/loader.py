"""
Synthetic household travel survey data.

Generates a small dataset with the structure of the National Household
Travel Survey (households, persons, vehicles, trips, and jackknife
replicate weights) for testing and demonstrating summaries without the
real public-use files.
"""

from typing import Optional

import numpy as np
import pandas as pd

from .dataset import Dataset, WeightSet
from .variables import VariableCatalog

# Approximate number of US households represented by the survey
US_HOUSEHOLDS = 118_000_000

CENSUS_REGIONS = {"01": "Northeast", "02": "Midwest", "03": "South", "04": "West"}
YES_NO = {"01": "Yes", "02": "No"}
SEX = {"01": "Male", "02": "Female"}
VEHICLE_TYPES = {
    "01": "Automobile/Car/Station Wagon",
    "02": "Van",
    "03": "SUV",
    "04": "Pickup Truck",
    "05": "Motorcycle",
}
TRIP_MODES = {
    "01": "Walk",
    "02": "Bicycle",
    "03": "Car",
    "04": "SUV",
    "05": "Public Transit",
    "06": "Other",
}
TRIP_PURPOSES = {
    "01": "Home",
    "10": "Work",
    "20": "School/Daycare/Religious activity",
    "30": "Medical/Dental services",
    "40": "Shopping/Errands",
    "50": "Social/Recreational",
    "70": "Transport someone",
    "80": "Meals",
    "97": "Something else",
}
START_HOURS = {f"{h:02d}00": f"{h:02d}:00-{h:02d}:59" for h in range(24)}
MISSING_CODES = {
    "-1": "Appropriate skip",
    "-7": "I prefer not to answer",
    "-8": "I don't know",
    "-9": "Not ascertained",
}

VARIABLES = [
    ("HHSIZE", "household", "Count of household members", None),
    ("HHVEHCNT", "household", "Count of household vehicles", None),
    ("CENSUS_R", "household", "Census region classification for home address", CENSUS_REGIONS),
    ("HOMEOWN", "household", "Home ownership", {"01": "Own", "02": "Rent", "97": "Something else"}),
    ("R_AGE", "person", "Age", None),
    ("R_SEX", "person", "Gender", SEX),
    ("DRIVER", "person", "Driver status", YES_NO),
    ("WORKER", "person", "Worker status", YES_NO),
    ("VEHAGE", "vehicle", "Age of vehicle, based on model year", None),
    ("ANNMILES", "vehicle", "Self-reported annualized mile estimate", None),
    ("VEHTYPE", "vehicle", "Vehicle type", VEHICLE_TYPES),
    ("STRTTIME", "trip", "Trip start time (hour)", START_HOURS),
    ("TRPMILES", "trip", "Trip distance in miles", None),
    ("TRPTRANS", "trip", "Trip mode", TRIP_MODES),
    ("WHYTRP1S", "trip", "Trip purpose summary", TRIP_PURPOSES),
]


def _validate_replicates(n_replicates: int) -> None:
    if n_replicates < 2:
        raise ValueError(
            f"At least 2 replicate weights are required, got {n_replicates}."
        )


def build_catalog() -> VariableCatalog:
    """Variable catalog for the synthetic dataset."""
    records = [
        {"NAME": name, "TABLE": level, "LABEL": label}
        for name, level, label, _ in VARIABLES
    ]
    values = []
    for name, _, _, codes in VARIABLES:
        if codes is None:
            continue
        for code, code_label in {**codes, **MISSING_CODES}.items():
            values.append({"NAME": name, "VALUE": code, "LABEL": code_label})
    return VariableCatalog.from_records(records, values)


def _replicate_factors(
    groups: np.ndarray,
    n_replicates: int,
) -> np.ndarray:
    """
    Delete-one-group jackknife factors, shape (n, K).

    Replicate k zeroes the units in group k and inflates the rest by
    K / (K - 1).
    """
    k = np.arange(1, n_replicates + 1)
    keep = groups[:, None] != k[None, :]
    return keep * (n_replicates / (n_replicates - 1))


def load_synthetic_dataset(
    n_households: int = 500,
    n_replicates: int = 20,
    seed: Optional[int] = None,
    annualization_days: float = 365.0,
) -> Dataset:
    """
    Generate a synthetic NHTS-like dataset.

    Args:
        n_households: Number of sampled households
        n_replicates: Number of jackknife replicate weights
        seed: Random seed for reproducibility
        annualization_days: Days represented by one unit of trip weight

    Returns:
        Dataset with household, person, vehicle and trip tables and
        household, person and trip weight sets

    Raises:
        ValueError: If n_households or n_replicates is invalid
    """
    if n_households < 1:
        raise ValueError(f"n_households must be positive, got {n_households}")
    _validate_replicates(n_replicates)

    rng = np.random.RandomState(seed)

    households = []
    persons = []
    vehicles = []
    trips = []

    for houseid in range(1, n_households + 1):
        hhsize = int(rng.choice([1, 2, 3, 4, 5], p=[0.28, 0.35, 0.15, 0.13, 0.09]))
        hhvehcnt = int(rng.choice([0, 1, 2, 3], p=[0.09, 0.33, 0.37, 0.21]))
        households.append({
            "HOUSEID": houseid,
            "HHSIZE": hhsize,
            "HHVEHCNT": hhvehcnt,
            "CENSUS_R": rng.choice(list(CENSUS_REGIONS), p=[0.17, 0.21, 0.38, 0.24]),
            "HOMEOWN": rng.choice(["01", "02", "97"], p=[0.64, 0.34, 0.02]),
        })

        for vehid in range(1, hhvehcnt + 1):
            vehage = int(rng.randint(0, 26))
            annmiles = float(np.round(rng.lognormal(9.2, 0.6)))
            if rng.random_sample() < 0.05:
                annmiles = -9.0
            if rng.random_sample() < 0.02:
                vehage = -8
            vehicles.append({
                "HOUSEID": houseid,
                "VEHID": vehid,
                "VEHAGE": vehage,
                "ANNMILES": annmiles,
                "VEHTYPE": rng.choice(list(VEHICLE_TYPES), p=[0.45, 0.07, 0.27, 0.18, 0.03]),
            })

        for personid in range(1, hhsize + 1):
            # First member is an adult
            age = int(rng.randint(18, 90)) if personid == 1 else int(rng.randint(0, 90))
            if age >= 16:
                driver = "01" if rng.random_sample() < 0.87 else "02"
                worker = "01" if (age < 67 and rng.random_sample() < 0.72) else "02"
            else:
                driver = "-1"
                worker = "-1"
            persons.append({
                "HOUSEID": houseid,
                "PERSONID": personid,
                "R_AGE": age,
                "R_SEX": rng.choice(list(SEX)),
                "DRIVER": driver,
                "WORKER": worker,
            })

            n_trips = int(rng.poisson(3.4 if worker == "01" else 2.6))
            hour = int(rng.randint(6, 9))
            for tripnum in range(1, n_trips + 1):
                purpose = "10" if (worker == "01" and tripnum == 1) else rng.choice(
                    list(TRIP_PURPOSES),
                    p=[0.33, 0.05, 0.05, 0.03, 0.2, 0.14, 0.08, 0.08, 0.04],
                )
                trips.append({
                    "HOUSEID": houseid,
                    "PERSONID": personid,
                    "TDTRPNUM": tripnum,
                    "STRTTIME": f"{min(hour, 23):02d}00",
                    "TRPMILES": float(np.round(rng.lognormal(1.6, 1.0), 2)),
                    "TRPTRANS": (
                        rng.choice(["03", "04"]) if driver == "01"
                        else rng.choice(list(TRIP_MODES), p=[0.3, 0.05, 0.3, 0.2, 0.1, 0.05])
                    ),
                    "WHYTRP1S": purpose,
                })
                hour += int(rng.randint(1, 4))

    hh_df = pd.DataFrame(households)
    person_df = pd.DataFrame(persons)
    vehicle_df = pd.DataFrame(vehicles, columns=["HOUSEID", "VEHID", "VEHAGE", "ANNMILES", "VEHTYPE"])
    trip_df = pd.DataFrame(trips, columns=[
        "HOUSEID", "PERSONID", "TDTRPNUM", "STRTTIME", "TRPMILES", "TRPTRANS", "WHYTRP1S",
    ])

    # Household weights, gamma-distributed around the population mean
    base_weight = US_HOUSEHOLDS / n_households
    hh_weight = rng.gamma(shape=4, scale=base_weight / 4, size=n_households)
    groups = rng.randint(1, n_replicates + 1, size=n_households)
    hh_factors = _replicate_factors(groups, n_replicates)

    hh_rep = [f"WTHHFIN{k}" for k in range(1, n_replicates + 1)]
    per_rep = [f"WTPERFIN{k}" for k in range(1, n_replicates + 1)]
    trp_rep = [f"WTTRDFIN{k}" for k in range(1, n_replicates + 1)]

    hh_weights = pd.DataFrame(hh_weight[:, None] * hh_factors, columns=hh_rep)
    hh_weights.insert(0, "WTHHFIN", hh_weight)
    hh_weights.insert(0, "HOUSEID", hh_df["HOUSEID"].to_numpy())

    # Person weights: household weight with a nonresponse adjustment
    hh_index = person_df["HOUSEID"].to_numpy() - 1
    adjustment = rng.uniform(0.9, 1.15, size=len(person_df))
    per_weight = hh_weight[hh_index] * adjustment
    per_weights = pd.DataFrame(
        per_weight[:, None] * hh_factors[hh_index], columns=per_rep
    )
    per_weights.insert(0, "WTPERFIN", per_weight)
    per_weights.insert(0, "PERSONID", person_df["PERSONID"].to_numpy())
    per_weights.insert(0, "HOUSEID", person_df["HOUSEID"].to_numpy())

    # Trip weights represent annual trips: person weight times days
    person_lookup = per_weights.set_index(["HOUSEID", "PERSONID"])
    trip_index = pd.MultiIndex.from_frame(trip_df[["HOUSEID", "PERSONID"]])
    trip_values = person_lookup.loc[trip_index, ["WTPERFIN", *per_rep]].to_numpy()
    trp_weights = pd.DataFrame(
        trip_values * annualization_days, columns=["WTTRDFIN", *trp_rep]
    )
    for col in ("TDTRPNUM", "PERSONID", "HOUSEID"):
        trp_weights.insert(0, col, trip_df[col].to_numpy())

    return Dataset(
        name="synthetic",
        tables={
            "household": hh_df,
            "person": person_df,
            "vehicle": vehicle_df,
            "trip": trip_df,
        },
        weights={
            "household": WeightSet(
                "household", hh_weights, ("HOUSEID",), "WTHHFIN", tuple(hh_rep)
            ),
            "person": WeightSet(
                "person", per_weights, ("HOUSEID", "PERSONID"), "WTPERFIN", tuple(per_rep)
            ),
            "trip": WeightSet(
                "trip", trp_weights, ("HOUSEID", "PERSONID", "TDTRPNUM"),
                "WTTRDFIN", tuple(trp_rep),
            ),
        },
        catalog=build_catalog(),
        jk_scale=float(np.sqrt((n_replicates - 1) / n_replicates)),
        annualization_days=annualization_days,
    )
