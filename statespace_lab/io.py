"""
io.py - Sensor Readings and Model Specification Files

Readings:
- load_readings: Long-format sensor table (Timestamp, Variable, Units, Value)
- readings_to_wide: One column per variable, indexed by timestamp

Model specifications (FactorModelSpec):
- NPZ: NumPy's archive format (default)
- JSON: Human-readable format

Example Usage:
-------------
    >>> from statespace_lab.io import load_readings, save_spec, load_spec
    >>>
    >>> readings = load_readings("sensor_readings.csv")
    >>> save_spec(spec, "spec.npz")
    >>> loaded = load_spec("spec.npz")
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd
from loguru import logger

from .types import FactorModelSpec

READING_COLUMNS = ("Timestamp", "Variable", "Units", "Value")


class ModelFormat(str, Enum):
    """Supported specification file formats."""
    NPZ = "npz"
    JSON = "json"


# =============================================================================
# SENSOR READINGS
# =============================================================================

def load_readings(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a long-format table of sensor readings.

    Parameters
    ----------
    path : str or Path
        CSV file with at least the columns Timestamp, Variable, Units, Value.

    Returns
    -------
    pd.DataFrame
        The readings with Timestamp parsed to datetimes, Value coerced to
        float and rows sorted by time.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If required columns are missing.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Readings file not found: {path}")

    readings = pd.read_csv(path)

    missing = [c for c in READING_COLUMNS if c not in readings.columns]
    if missing:
        raise ValueError(f"Readings file {path} is missing columns: {missing}")

    readings["Timestamp"] = pd.to_datetime(readings["Timestamp"])
    readings["Value"] = pd.to_numeric(readings["Value"], errors="coerce")

    n_bad = int(readings["Value"].isna().sum())
    if n_bad:
        logger.warning(f"{n_bad} readings in {path.name} have non-numeric values")

    readings = readings.sort_values("Timestamp", kind="stable").reset_index(drop=True)
    logger.debug(
        f"Loaded {len(readings)} readings for {readings['Variable'].nunique()} variables"
    )
    return readings


def readings_to_wide(readings: pd.DataFrame) -> pd.DataFrame:
    """
    Pivot long readings to one column per Variable.

    Duplicate (Timestamp, Variable) pairs are averaged.
    """
    return readings.pivot_table(
        index="Timestamp", columns="Variable", values="Value", aggfunc="mean"
    )


# =============================================================================
# MODEL SPECIFICATIONS
# =============================================================================

def save_spec(
    spec: FactorModelSpec,
    path: Union[str, Path],
    format: ModelFormat = ModelFormat.NPZ
) -> None:
    """
    Save a factor model specification to disk.

    Parameters
    ----------
    spec : FactorModelSpec
        The specification to save.
    path : str or Path
        Destination file path.
    format : ModelFormat, default=ModelFormat.NPZ
        Output format.
    """
    path = Path(path)

    if format == ModelFormat.NPZ:
        np.savez(path, beta=spec.beta, sigma=spec.sigma)
    elif format == ModelFormat.JSON:
        with open(path, "w") as f:
            json.dump({"beta": spec.beta.tolist(), "sigma": spec.sigma.tolist()}, f, indent=2)
    else:
        raise ValueError(f"Unsupported format: {format}")


def load_spec(path: Union[str, Path]) -> FactorModelSpec:
    """
    Load a factor model specification; the format is inferred from the suffix.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file format is not recognized.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Spec file not found: {path}")

    if path.suffix == ".npz":
        with np.load(path) as data:
            return FactorModelSpec(beta=data["beta"], sigma=data["sigma"])
    elif path.suffix == ".json":
        with open(path, "r") as f:
            data = json.load(f)
        return FactorModelSpec(beta=np.array(data["beta"]), sigma=np.array(data["sigma"]))
    else:
        raise ValueError(f"Unknown spec format: {path.suffix}")
