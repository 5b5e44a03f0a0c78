"""
Core statistical analysis functions: assumption checks, linear models,
ANOVA, and random-intercept mixed models with treatment significance tests.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.formula.api import mixedlm, ols
from statsmodels.stats.anova import anova_lm

from .constants import (
    CONTROL_LABEL,
    D14C_COL,
    DEFAULT_ALPHA,
    DEFAULT_ANOVA_TYPE,
    HORIZON_COL,
    MIN_GROUPS_FOR_LEVENE,
    MIN_SAMPLES_FOR_SHAPIRO,
    PLOT_COL,
    TREATMENT_COL,
)

logger = logging.getLogger(__name__)


def _is_deterministic_mapping(a: pd.Series, b: pd.Series) -> bool:
    """Check if column a deterministically maps to column b."""
    tmp = pd.DataFrame({"a": a, "b": b}).dropna().astype(str)
    if tmp.empty:
        return False
    return (tmp.groupby("a")["b"].nunique() <= 1).all()


def _clean_factor_list(df: pd.DataFrame, factors: list[str]) -> list[str]:
    """
    Remove problematic factors (missing, single level, confounded).

    Parameters
    ----------
    df : pd.DataFrame
        Input data.
    factors : list[str]
        Factor column names to validate.

    Returns
    -------
    list[str]
        Cleaned factor list.
    """
    cleaned: list[str] = []
    for f in factors:
        if f not in df.columns:
            continue
        if df[f].dropna().nunique() <= 1:
            logger.debug("Dropping factor %s: fewer than two levels", f)
            continue

        confounded = any(
            _is_deterministic_mapping(df[f], df[kept]) or _is_deterministic_mapping(df[kept], df[f])
            for kept in cleaned
        )
        if confounded:
            logger.debug("Dropping factor %s: confounded with an earlier factor", f)
            continue
        cleaned.append(f)
    return cleaned


def _prepare_model_df(
    df: pd.DataFrame,
    response: str,
    factors: list[str],
    reference: Optional[dict[str, str]] = None,
    extra: Optional[list[str]] = None,
) -> pd.DataFrame:
    """
    Prepare DataFrame for model fitting (drop NAs, convert factors to categories).

    ``reference`` maps a factor to the level that should come first, which
    makes it the baseline of the formula's treatment coding.
    """
    cols = list(dict.fromkeys([response] + factors + list(extra or [])))
    model_df = df[cols].copy()
    model_df[response] = pd.to_numeric(model_df[response], errors="coerce")
    model_df = model_df.dropna()
    for col in factors:
        levels = sorted(model_df[col].astype(str).unique())
        first = (reference or {}).get(col)
        if first is not None and str(first) in levels:
            levels.remove(str(first))
            levels.insert(0, str(first))
        model_df[col] = pd.Categorical(model_df[col].astype(str), categories=levels)
    return model_df


def _safe_anova_table(model, typ: int) -> pd.DataFrame:
    """
    Compute an ANOVA table, falling back to type I and then HC3-robust type II.
    """
    try:
        return anova_lm(model, typ=typ)
    except Exception:
        logger.debug("Type %s ANOVA failed; falling back", typ)
        try:
            return anova_lm(model, typ=1)
        except Exception:
            return anova_lm(model, typ=2, robust="hc3")


def _is_full_rank(model) -> bool:
    """True when every column of the fitted design matrix is estimable."""
    exog = np.asarray(model.model.exog, dtype=float)
    return np.linalg.matrix_rank(exog) == exog.shape[1]


def _fit_factorial(model_df: pd.DataFrame, response: str, factors: list[str], interaction: bool = True):
    """
    Fit the crossed OLS model, refitting additively when empty cells leave
    the interaction inestimable.
    """
    terms = [f"C({f})" for f in factors]
    if interaction and len(terms) > 1:
        model = ols(f"{response} ~ {' * '.join(terms)}", data=model_df).fit()
        if _is_full_rank(model):
            return model
        logger.warning("Interaction %s is not estimable; fitting the additive model", " x ".join(factors))
    return ols(f"{response} ~ {' + '.join(terms)}", data=model_df).fit()


def _group_arrays(df: pd.DataFrame, response: str, group: str) -> list[np.ndarray]:
    grouped = [
        pd.to_numeric(g[response], errors="coerce").dropna().values
        for _, g in df.groupby(group, observed=True)
    ]
    return [x for x in grouped if len(x) > 0]


def normality_checks(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: Optional[str] = None,
) -> pd.DataFrame:
    """
    Perform Shapiro-Wilk normality test on the response, overall or by group.

    Returns
    -------
    pd.DataFrame
        Columns: group, n, stat, p_value, normal_at_0.05
    """
    if group is None:
        parts = [("ALL", df)]
    else:
        parts = list(df.groupby(group, observed=True))

    out = []
    for g, sub in parts:
        vals = pd.to_numeric(sub[response], errors="coerce").dropna()
        if len(vals) < MIN_SAMPLES_FOR_SHAPIRO or vals.nunique() < 2:
            out.append({"group": g, "n": len(vals), "stat": np.nan, "p_value": np.nan})
            continue
        stat, p = stats.shapiro(vals)
        out.append({"group": g, "n": len(vals), "stat": stat, "p_value": p})

    result = pd.DataFrame(out, columns=["group", "n", "stat", "p_value"])
    result["group"] = result["group"].astype(str)
    result = result.sort_values("group").reset_index(drop=True)
    result["normal_at_0.05"] = result["p_value"] > DEFAULT_ALPHA
    return result


def levene_homogeneity(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
) -> pd.DataFrame:
    """
    Perform Levene's test (median-centred) for homogeneity of variance.

    Returns
    -------
    pd.DataFrame
        Columns: test, stat, p_value, homogeneous_at_0.05
    """
    grouped = _group_arrays(df, response, group)
    if len(grouped) < MIN_GROUPS_FOR_LEVENE:
        return pd.DataFrame([{
            "test": "Levene",
            "stat": np.nan,
            "p_value": np.nan,
            "homogeneous_at_0.05": np.nan,
        }])

    stat, p = stats.levene(*grouped, center="median")
    return pd.DataFrame([{
        "test": "Levene",
        "stat": stat,
        "p_value": p,
        "homogeneous_at_0.05": p > DEFAULT_ALPHA,
    }])


def linear_model(
    df: pd.DataFrame,
    response: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    control: str = CONTROL_LABEL,
    interaction: bool = True,
):
    """
    Fit an OLS model of the response on treatment and horizon.

    Parameters
    ----------
    df : pd.DataFrame
        Sample table.
    response, treatment, horizon : str
        Column names.
    control : str
        Treatment level used as the baseline.
    interaction : bool, default=True
        Include the treatment × horizon interaction. Dropped automatically
        when an empty treatment × horizon cell makes it inestimable.

    Returns
    -------
    RegressionResultsWrapper
        Fitted statsmodels OLS results.

    Raises
    ------
    ValueError
        If neither factor has at least two levels.
    """
    factors = _clean_factor_list(df.dropna(subset=[response]), [treatment, horizon])
    if not factors:
        raise ValueError("At least one factor with two or more levels is required")

    model_df = _prepare_model_df(df, response, factors, reference={treatment: control})
    model = _fit_factorial(model_df, response, factors, interaction=interaction)
    logger.info("OLS %s: n=%d, R2=%.3f", model.model.formula, int(model.nobs), model.rsquared)
    return model


def anova_analysis(
    df: pd.DataFrame,
    response: str = D14C_COL,
    factors: Optional[list[str]] = None,
    typ: int = DEFAULT_ANOVA_TYPE,
    control: str = CONTROL_LABEL,
) -> pd.DataFrame:
    """
    Perform factorial ANOVA on the response.

    Falls back to the additive model when the crossed model is rank
    deficient or yields an empty table.

    Returns
    -------
    pd.DataFrame
        ANOVA table with columns: term, sum_sq, df, F, PR(>F).

    Raises
    ------
    ValueError
        If no factor with two or more levels is supplied.
    """
    factors = _clean_factor_list(df, factors or [TREATMENT_COL, HORIZON_COL])
    if not factors:
        raise ValueError("At least one valid factor is required for ANOVA")

    reference = {factors[0]: control}
    model_df = _prepare_model_df(df, response, factors, reference=reference)
    model = _fit_factorial(model_df, response, factors)

    table = _safe_anova_table(model, typ=typ)
    if table.empty:
        additive = " + ".join(f"C({f})" for f in factors)
        model = ols(f"{response} ~ {additive}", data=model_df).fit()
        table = _safe_anova_table(model, typ=1)

    return table.reset_index().rename(columns={"index": "term"})


def one_way_anova(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
) -> pd.DataFrame:
    """
    One-way ANOVA of the response across the levels of ``group``.

    Raises
    ------
    ValueError
        If fewer than two groups have data.
    """
    model_df = _prepare_model_df(df, response, [group])
    if model_df[group].nunique() < 2:
        raise ValueError(f"One-way ANOVA needs at least two levels of {group}")
    model = ols(f"{response} ~ C({group})", data=model_df).fit()
    table = anova_lm(model, typ=2)
    return table.reset_index().rename(columns={"index": "term"})


def kruskal_wallis(
    df: pd.DataFrame,
    response: str = D14C_COL,
    group: str = TREATMENT_COL,
) -> pd.DataFrame:
    """
    Kruskal-Wallis H-test (non-parametric alternative to one-way ANOVA).

    Returns
    -------
    pd.DataFrame
        Columns: test, stat, p_value
    """
    grouped = _group_arrays(df, response, group)
    if len(grouped) < MIN_GROUPS_FOR_LEVENE:
        return pd.DataFrame([{"test": "Kruskal-Wallis", "stat": np.nan, "p_value": np.nan}])

    stat, p = stats.kruskal(*grouped)
    return pd.DataFrame([{"test": "Kruskal-Wallis", "stat": stat, "p_value": p}])


def fit_mixed_model(
    df: pd.DataFrame,
    response: str = D14C_COL,
    treatment: Optional[str] = TREATMENT_COL,
    group: str = PLOT_COL,
    control: str = CONTROL_LABEL,
    reml: bool = True,
):
    """
    Fit a linear mixed model with a random intercept per plot.

    Parameters
    ----------
    df : pd.DataFrame
        Sample table, typically already restricted to one horizon.
    response : str
        Response column.
    treatment : Optional[str]
        Fixed-effect factor. ``None`` fits the intercept-only model.
    group : str
        Random-intercept grouping column.
    control : str
        Baseline treatment level.
    reml : bool, default=True
        Use REML; likelihood-ratio tests need ``reml=False``.

    Returns
    -------
    MixedLMResults
    """
    factors = [treatment] if treatment else []
    model_df = _prepare_model_df(
        df, response, factors, reference={treatment: control} if treatment else None, extra=[group]
    )
    if model_df[group].nunique() < 2:
        raise ValueError(f"Mixed model needs at least two levels of {group}")

    rhs = f"C({treatment})" if treatment else "1"
    model = mixedlm(f"{response} ~ {rhs}", data=model_df, groups=model_df[group])
    result = model.fit(reml=reml)
    logger.debug("Mixed model %s ~ %s (groups=%s): llf=%.3f", response, rhs, group, result.llf)
    return result


def wald_test(result, treatment: str = TREATMENT_COL) -> dict[str, float]:
    """
    Joint Wald chi-square test that all treatment fixed effects are zero.

    Parameters
    ----------
    result
        Fitted statsmodels results with ``fe_params`` (mixed) or ``params``.
    treatment : str
        Factor whose coefficients are tested.

    Returns
    -------
    dict[str, float]
        Keys: stat, df, p_value
    """
    params = getattr(result, "fe_params", None)
    if params is None:
        params = result.params
    names = [n for n in params.index if n.startswith(f"C({treatment})")]
    if not names:
        raise ValueError(f"No fixed-effect terms for {treatment} in the fitted model")

    beta = params[names].to_numpy(dtype=float)
    cov = result.cov_params()
    if isinstance(cov, pd.DataFrame):
        cov = cov.loc[names, names].to_numpy(dtype=float)
    else:
        # fixed effects lead the parameter vector
        idx = [list(params.index).index(n) for n in names]
        cov = np.asarray(cov, dtype=float)[np.ix_(idx, idx)]
    stat = float(beta @ np.linalg.solve(cov, beta))
    return {"stat": stat, "df": len(names), "p_value": float(stats.chi2.sf(stat, len(names)))}


def likelihood_ratio_test(
    df: pd.DataFrame,
    response: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    group: str = PLOT_COL,
    control: str = CONTROL_LABEL,
) -> dict[str, float]:
    """
    Likelihood-ratio test of the treatment effect in the random-intercept model.

    Both models are fitted by maximum likelihood on the same rows.

    Returns
    -------
    dict[str, float]
        Keys: stat, df, p_value, llf_full, llf_null
    """
    rows = df.dropna(subset=[response, treatment, group])
    full = fit_mixed_model(rows, response, treatment, group, control=control, reml=False)
    null = fit_mixed_model(rows, response, None, group, reml=False)
    stat = max(2.0 * (full.llf - null.llf), 0.0)
    dof = len(full.fe_params) - len(null.fe_params)
    return {
        "stat": stat,
        "df": dof,
        "p_value": float(stats.chi2.sf(stat, dof)),
        "llf_full": float(full.llf),
        "llf_null": float(null.llf),
    }


def mixed_models_by_horizon(
    df: pd.DataFrame,
    response: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    group: str = PLOT_COL,
    control: str = CONTROL_LABEL,
) -> dict[str, object]:
    """Fit one REML random-intercept model per horizon, keyed by horizon."""
    return {
        str(h): fit_mixed_model(sub, response, treatment, group, control=control)
        for h, sub in df.groupby(horizon, observed=True)
    }


def treatment_effect_tests(
    df: pd.DataFrame,
    response: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    group: str = PLOT_COL,
    control: str = CONTROL_LABEL,
    models: Optional[dict[str, object]] = None,
) -> pd.DataFrame:
    """
    Likelihood-ratio and Wald tests of the treatment effect for every horizon.

    ``models`` may pass REML fits from ``mixed_models_by_horizon`` to avoid
    refitting them for the Wald test.

    Returns
    -------
    pd.DataFrame
        Columns: horizon, test, stat, df, p_value, significant_at_0.05
    """
    models = models if models is not None else mixed_models_by_horizon(
        df, response, treatment, horizon, group, control
    )
    rows = []
    for h, sub in df.groupby(horizon, observed=True):
        lrt = likelihood_ratio_test(sub, response, treatment, group, control)
        wald = wald_test(models[str(h)], treatment)
        rows.append({"horizon": str(h), "test": "LRT", "stat": lrt["stat"], "df": lrt["df"], "p_value": lrt["p_value"]})
        rows.append({"horizon": str(h), "test": "Wald", "stat": wald["stat"], "df": wald["df"], "p_value": wald["p_value"]})

    out = pd.DataFrame(rows, columns=["horizon", "test", "stat", "df", "p_value"])
    out["significant_at_0.05"] = out["p_value"] < DEFAULT_ALPHA
    return out


def model_summary_text(linear=None, mixed: Optional[dict[str, object]] = None) -> str:
    """Render fitted model summaries as one plain-text report."""
    blocks = []
    if linear is not None:
        blocks.append("Linear model\n" + "=" * 12 + "\n" + linear.summary().as_text())
    for horizon, result in (mixed or {}).items():
        title = f"Mixed model ({horizon})"
        blocks.append(title + "\n" + "=" * len(title) + "\n" + result.summary().as_text())
    return "\n\n".join(blocks) + "\n"
