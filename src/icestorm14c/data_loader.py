"""
Data loading and sample-record derivation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from .constants import (
    COL_REPLACE_MAP,
    D14C_COL,
    HORIZON_COL,
    PLOT_COL,
    PRIMARY_D14C_COL,
    REPLICATE_COL,
    SAMPLE_ID_COL,
    SAMPLE_ID_SEP,
    SECONDARY_D14C_COL,
    TREATMENT_COL,
)

logger = logging.getLogger(__name__)


def sanitize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Standardize column names for formula processing.

    Replaces spaces, hyphens, and special characters with underscores
    to make column names safe for statsmodels formulas.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame with potentially problematic column names.

    Returns
    -------
    pd.DataFrame
        DataFrame with sanitized column names.
    """
    def _clean(name) -> str:
        out = str(name).strip()
        for old, new in COL_REPLACE_MAP.items():
            out = out.replace(old, new)
        return out

    return df.rename(columns={col: _clean(col) for col in df.columns})


def require_columns(df: pd.DataFrame, columns: Iterable[str]) -> None:
    """Raise ValueError if any of ``columns`` is absent from ``df``."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(
            f"Missing required column(s): {missing}. Available: {list(df.columns)}"
        )


def coalesce_measurements(
    df: pd.DataFrame,
    primary: str = PRIMARY_D14C_COL,
    secondary: str = SECONDARY_D14C_COL,
    target: str = D14C_COL,
) -> pd.DataFrame:
    """
    Merge two alternate Δ14C columns into one.

    The primary source is preferred; the secondary fills rows where the
    primary is missing. Non-numeric entries are treated as missing.

    Parameters
    ----------
    df : pd.DataFrame
        Input data.
    primary : str
        Preferred measurement column.
    secondary : str
        Fallback measurement column.
    target : str
        Name of the unified column to create.

    Returns
    -------
    pd.DataFrame
        Copy of ``df`` with the unified column added.
    """
    require_columns(df, [primary, secondary])
    out = df.copy()
    out[primary] = pd.to_numeric(out[primary], errors="coerce")
    out[secondary] = pd.to_numeric(out[secondary], errors="coerce")
    out[target] = out[primary].fillna(out[secondary])
    return out


def _id_part(value) -> str:
    """Render an id component; whole floats lose their trailing '.0'."""
    if pd.isna(value):
        return "NA"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def make_sample_id(
    df: pd.DataFrame,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    replicate: str = REPLICATE_COL,
    target: str = SAMPLE_ID_COL,
    sep: str = SAMPLE_ID_SEP,
) -> pd.DataFrame:
    """
    Derive a sample identifier by concatenating treatment, horizon and replicate.

    Returns
    -------
    pd.DataFrame
        Copy of ``df`` with ``target`` holding strings like ``"Control_organic_1"``.
    """
    require_columns(df, [treatment, horizon, replicate])
    out = df.copy()
    parts = [out[c].map(_id_part) for c in (treatment, horizon, replicate)]
    out[target] = parts[0].str.cat(parts[1:], sep=sep)
    return out


def _clean_labels(values: pd.Series, lower: bool = False) -> pd.Series:
    """Strip (and optionally lower-case) labels; blank or missing cells stay NaN."""
    out = values.astype(str).str.strip()
    if lower:
        out = out.str.lower()
    return out.where(values.notna() & out.ne(""))


def load_samples(
    path: str | Path,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    plot: str = PLOT_COL,
    replicate: str = REPLICATE_COL,
    primary: str = PRIMARY_D14C_COL,
    secondary: str = SECONDARY_D14C_COL,
) -> pd.DataFrame:
    """
    Load the radiocarbon CSV and derive the unified measurement and sample id.

    Parameters
    ----------
    path : str | Path
        Path to the CSV file.
    treatment, horizon, plot, replicate : str
        Design columns (names after sanitization).
    primary, secondary : str
        The two alternate Δ14C measurement columns.

    Returns
    -------
    pd.DataFrame
        One row per sample with ``d14c`` and ``sample_id`` added.

    Raises
    ------
    ValueError
        If the file is not a CSV or required columns are missing.
    """
    p = Path(path)
    if p.suffix.lower() != ".csv":
        raise ValueError(f"Unsupported file format: {p.suffix}")

    df = sanitize_columns(pd.read_csv(p))
    require_columns(df, [treatment, horizon, plot, replicate, primary, secondary])

    df[treatment] = _clean_labels(df[treatment])
    df[horizon] = _clean_labels(df[horizon], lower=True)
    df[plot] = pd.to_numeric(df[plot], errors="coerce")
    df[replicate] = pd.to_numeric(df[replicate], errors="coerce")

    df = coalesce_measurements(df, primary=primary, secondary=secondary)
    df = make_sample_id(df, treatment=treatment, horizon=horizon, replicate=replicate)

    n_fallback = int((df[primary].isna() & df[secondary].notna()).sum())
    n_missing = int(df[D14C_COL].isna().sum())
    logger.info("Loaded %d samples from %s", len(df), p)
    logger.debug("%d samples use %s, %d have no measurement", n_fallback, secondary, n_missing)
    return df
