"""
Post-hoc pairwise contrasts between treatments.
"""

from __future__ import annotations

from itertools import combinations

import numpy as np
import pandas as pd
import scikit_posthocs as sp
from scipy import stats
from statsmodels.stats.multicomp import pairwise_tukeyhsd
from statsmodels.stats.multitest import multipletests

from .constants import D14C_COL, DEFAULT_ALPHA, DEFAULT_DUNN_ADJUST, TREATMENT_COL

TUKEY_COLUMNS = ["group_a", "group_b", "mean_diff", "p_adj", "ci_low", "ci_high", "reject_at_0.05"]
BONFERRONI_COLUMNS = [
    "group_a", "group_b", "n_a", "n_b", "mean_a", "mean_b",
    "t_stat", "p_value_raw", "p_value_bonferroni", "significant_at_0.05",
]


def _posthoc_frame(df: pd.DataFrame, response: str, group: str) -> pd.DataFrame:
    """Numeric response and string group labels, incomplete rows dropped."""
    out = df[[response, group]].copy()
    out[response] = pd.to_numeric(out[response], errors="coerce")
    out = out.dropna()
    out[group] = out[group].astype(str)
    return out


def tukey_posthoc(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
    alpha: float = DEFAULT_ALPHA,
) -> pd.DataFrame:
    """
    Tukey HSD (Honest Significant Difference) pairwise contrasts.

    Returns
    -------
    pd.DataFrame
        Columns: group_a, group_b, mean_diff, p_adj, ci_low, ci_high, reject_at_0.05
    """
    model_df = _posthoc_frame(df, response, group)
    if model_df[group].nunique() < 2:
        return pd.DataFrame(columns=TUKEY_COLUMNS)

    result = pairwise_tukeyhsd(endog=model_df[response], groups=model_df[group], alpha=alpha)
    # pair order matches statsmodels: upper triangle of groupsunique
    pairs = list(combinations(result.groupsunique, 2))
    confint = np.asarray(result.confint, dtype=float)
    table = pd.DataFrame({
        "group_a": [str(a) for a, _ in pairs],
        "group_b": [str(b) for _, b in pairs],
        "mean_diff": np.asarray(result.meandiffs, dtype=float),
        "p_adj": np.asarray(result.pvalues, dtype=float),
        "ci_low": confint[:, 0],
        "ci_high": confint[:, 1],
        "reject_at_0.05": np.asarray(result.reject, dtype=bool),
    })
    return table[TUKEY_COLUMNS]


def bonferroni_posthoc(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
    alpha: float = DEFAULT_ALPHA,
) -> pd.DataFrame:
    """
    Bonferroni-corrected pairwise t-tests (pooled variance).

    Returns
    -------
    pd.DataFrame
        Columns: group_a, group_b, n_a, n_b, mean_a, mean_b, t_stat,
        p_value_raw, p_value_bonferroni, significant_at_0.05
    """
    model_df = _posthoc_frame(df, response, group)
    levels = sorted(model_df[group].unique())

    rows = []
    for a, b in combinations(levels, 2):
        xa = model_df.loc[model_df[group] == a, response]
        xb = model_df.loc[model_df[group] == b, response]
        stat, p = stats.ttest_ind(xa, xb, equal_var=True)
        rows.append({
            "group_a": a,
            "group_b": b,
            "n_a": len(xa),
            "n_b": len(xb),
            "mean_a": xa.mean(),
            "mean_b": xb.mean(),
            "t_stat": stat,
            "p_value_raw": p,
        })

    if not rows:
        return pd.DataFrame(columns=BONFERRONI_COLUMNS)

    out = pd.DataFrame(rows)
    _, p_adj, _, _ = multipletests(out["p_value_raw"], alpha=alpha, method="bonferroni")
    out["p_value_bonferroni"] = p_adj
    out["significant_at_0.05"] = out["p_value_bonferroni"] < alpha
    return out[BONFERRONI_COLUMNS]


def dunn_posthoc(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
    p_adjust: str = DEFAULT_DUNN_ADJUST,
) -> pd.DataFrame:
    """
    Dunn's test, the rank-based follow-up to Kruskal-Wallis.

    Returns
    -------
    pd.DataFrame
        Square matrix of adjusted p-values with a leading ``group`` column.
    """
    model_df = _posthoc_frame(df, response, group)
    matrix = sp.posthoc_dunn(model_df, val_col=response, group_col=group, p_adjust=p_adjust)
    matrix.index.name = "group"
    return matrix.reset_index()


POSTHOC_FUNCTIONS = {
    "tukey": tukey_posthoc,
    "bonferroni": bonferroni_posthoc,
}
