"""
Group-wise summary statistics for Δ14C and difference-from-control.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy import stats

from .constants import (
    CONTROL_LABEL,
    D14C_COL,
    DEFAULT_CI_LEVEL,
    DIFF_COL,
    HORIZON_COL,
    PLOT_COL,
    TREATMENT_COL,
)
from .data_loader import require_columns

logger = logging.getLogger(__name__)

STAT_COLUMNS = ["n", "mean", "sd", "se", "ci_low", "ci_high"]


def summary_stats(values, ci_level: float = DEFAULT_CI_LEVEL) -> dict[str, float]:
    """
    Compute n, mean, sample SD, standard error and a t-based confidence interval.

    Parameters
    ----------
    values : array-like
        Numeric values; NaN entries are ignored.
    ci_level : float, default=0.95
        Two-sided confidence level.

    Returns
    -------
    dict[str, float]
        Keys: n, mean, sd, se, ci_low, ci_high. With fewer than two values
        the spread statistics and interval are NaN.
    """
    vals = pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").dropna()
    vals = vals.astype(float).to_numpy()
    n = len(vals)
    if n == 0:
        return {"n": 0, "mean": np.nan, "sd": np.nan, "se": np.nan, "ci_low": np.nan, "ci_high": np.nan}

    mean = float(vals.mean())
    if n < 2:
        return {"n": n, "mean": mean, "sd": np.nan, "se": np.nan, "ci_low": np.nan, "ci_high": np.nan}

    sd = float(vals.std(ddof=1))
    se = sd / np.sqrt(n)
    half_width = float(stats.t.ppf(0.5 + ci_level / 2, df=n - 1)) * se
    return {
        "n": n,
        "mean": mean,
        "sd": sd,
        "se": se,
        "ci_low": mean - half_width,
        "ci_high": mean + half_width,
    }


def _grouped_summary(
    df: pd.DataFrame,
    by: list[str],
    value: str,
    ci_level: float,
) -> pd.DataFrame:
    rows = []
    for keys, sub in df.groupby(by, observed=True, sort=True):
        if not isinstance(keys, tuple):
            keys = (keys,)
        row = dict(zip(by, keys))
        row.update(summary_stats(sub[value], ci_level=ci_level))
        rows.append(row)
    return pd.DataFrame(rows, columns=by + STAT_COLUMNS)


def summarize_by_treatment_horizon(
    df: pd.DataFrame,
    value: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    ci_level: float = DEFAULT_CI_LEVEL,
) -> pd.DataFrame:
    """
    Summarize Δ14C for every treatment × horizon cell.

    Returns
    -------
    pd.DataFrame
        Columns: treatment, horizon, n, mean, sd, se, ci_low, ci_high.
    """
    require_columns(df, [value, treatment, horizon])
    out = _grouped_summary(df, [treatment, horizon], value, ci_level)
    logger.debug("Summarized %s into %d treatment/horizon cells", value, len(out))
    return out


def add_control_difference(
    df: pd.DataFrame,
    value: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    control: str = CONTROL_LABEL,
    target: str = DIFF_COL,
) -> pd.DataFrame:
    """
    Subtract the horizon's mean control Δ14C from every sample.

    Horizons without any control measurement get NaN differences.
    """
    require_columns(df, [value, treatment, horizon])
    out = df.copy()
    is_control = out[treatment].astype(str) == str(control)
    if not is_control.any():
        logger.warning("No rows labelled %r in %s; differences will be NaN", control, treatment)
    control_means = out.loc[is_control].groupby(horizon, observed=True)[value].mean()
    out[target] = out[value] - out[horizon].map(control_means)
    return out


def summarize_by_plot(
    df: pd.DataFrame,
    value: str = DIFF_COL,
    plot: str = PLOT_COL,
    horizon: str = HORIZON_COL,
    treatment: str = TREATMENT_COL,
    ci_level: float = DEFAULT_CI_LEVEL,
) -> pd.DataFrame:
    """
    Summarize the difference-from-control for every plot × horizon.

    Expects ``value`` to exist already (see ``add_control_difference``).
    The plot's treatment is carried along for labelling.

    Returns
    -------
    pd.DataFrame
        Columns: plot, horizon, treatment, n, mean, sd, se, ci_low, ci_high.
    """
    require_columns(df, [value, plot, horizon, treatment])
    out = _grouped_summary(df, [plot, horizon], value, ci_level)
    plot_treatment = (
        df.dropna(subset=[plot]).groupby(plot)[treatment]
        .agg(lambda s: "/".join(sorted(s.dropna().astype(str).unique())))
    )
    out.insert(2, treatment, out[plot].map(plot_treatment))
    return out
