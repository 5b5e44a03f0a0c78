"""
End-to-end analysis: summaries, models and figures for one sample table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go

from .cld_utils import cld_labels
from .constants import (
    CONTROL_LABEL,
    D14C_COL,
    DEFAULT_POSTHOC,
    HORIZON_COL,
    PLOT_COL,
    TREATMENT_COL,
)
from .posthoc_tests import POSTHOC_FUNCTIONS, dunn_posthoc
from .statistical_analysis import (
    anova_analysis,
    kruskal_wallis,
    levene_homogeneity,
    linear_model,
    mixed_models_by_horizon,
    model_summary_text,
    normality_checks,
    one_way_anova,
    treatment_effect_tests,
)
from .summary import add_control_difference, summarize_by_plot, summarize_by_treatment_horizon
from .visualization import (
    plot_difference_chart,
    qqplot_figure,
    save_figure,
    scatter_by_treatment,
    summary_bar_chart,
)

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResults:
    """Tables, model report and figures produced by ``run_analysis``."""

    tables: dict[str, pd.DataFrame] = field(default_factory=dict)
    report: str = ""
    figures: dict[str, go.Figure] = field(default_factory=dict)


def run_analysis(
    df: pd.DataFrame,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    plot: str = PLOT_COL,
    control: str = CONTROL_LABEL,
    posthoc: str = DEFAULT_POSTHOC,
    make_plots: bool = True,
) -> AnalysisResults:
    """
    Run the aggregation, modeling and plotting steps on a loaded sample table.

    Parameters
    ----------
    df : pd.DataFrame
        Output of ``load_samples``.
    treatment, horizon, plot : str
        Design column names.
    control : str
        Control treatment label.
    posthoc : str
        Pairwise contrast method used after the one-way ANOVAs.
    make_plots : bool, default=True
        Build Plotly figures.

    Returns
    -------
    AnalysisResults
    """
    if posthoc.lower() not in POSTHOC_FUNCTIONS:
        raise ValueError(f"Unknown post-hoc method {posthoc!r}; choose from {sorted(POSTHOC_FUNCTIONS)}")

    results = AnalysisResults()
    tables = results.tables

    data = add_control_difference(df, treatment=treatment, horizon=horizon, control=control)
    tables["samples"] = data
    tables["summary_treatment_horizon"] = summarize_by_treatment_horizon(data, treatment=treatment, horizon=horizon)
    tables["summary_plot"] = summarize_by_plot(data, plot=plot, horizon=horizon, treatment=treatment)
    logger.info("Computed summaries for %d cells and %d plot/horizon groups",
                len(tables["summary_treatment_horizon"]), len(tables["summary_plot"]))

    measured = data.dropna(subset=[D14C_COL])
    by_horizon = list(measured.groupby(horizon, observed=True))

    # assumption checks run within each horizon
    tables["normality"] = pd.concat(
        [normality_checks(sub, group=treatment).assign(horizon=str(h)) for h, sub in by_horizon],
        ignore_index=True,
    )
    tables["levene"] = pd.concat(
        [levene_homogeneity(sub, group=treatment).assign(horizon=str(h)) for h, sub in by_horizon],
        ignore_index=True,
    )

    ols_fit = linear_model(measured, treatment=treatment, horizon=horizon, control=control)
    tables["anova"] = anova_analysis(measured, factors=[treatment, horizon], control=control)

    letters: dict[str, dict[str, str]] = {}
    for h, sub in by_horizon:
        h = str(h)
        tables[f"one_way_anova_{h}"] = one_way_anova(sub, group=treatment)
        tables[f"posthoc_{h}"] = POSTHOC_FUNCTIONS[posthoc.lower()](sub, group=treatment)
        tables[f"kruskal_{h}"] = kruskal_wallis(sub, group=treatment)
        tables[f"dunn_{h}"] = dunn_posthoc(sub, group=treatment)
        letters[h] = cld_labels(sub, group=treatment, method=posthoc)

    mixed = mixed_models_by_horizon(measured, treatment=treatment, horizon=horizon, group=plot, control=control)
    tables["treatment_tests"] = treatment_effect_tests(
        measured, treatment=treatment, horizon=horizon, group=plot, control=control, models=mixed
    )
    results.report = model_summary_text(ols_fit, mixed)

    if make_plots:
        results.figures["scatter"] = scatter_by_treatment(data, treatment=treatment, horizon=horizon)
        results.figures["summary_bars"] = summary_bar_chart(
            tables["summary_treatment_horizon"], treatment=treatment, horizon=horizon, letters=letters
        )
        results.figures["plot_difference"] = plot_difference_chart(
            tables["summary_plot"], plot=plot, horizon=horizon, treatment=treatment
        )
        qq = qqplot_figure(ols_fit.resid, title="Linear model residual Q-Q plot")
        if qq is not None:
            results.figures["residual_qq"] = qq

    return results


def write_outputs(
    results: AnalysisResults,
    outdir: str | Path,
    xlsx: bool = False,
) -> list[Path]:
    """
    Write tables as CSV, the model report as text, figures as HTML and
    optionally every table into one XLSX workbook.

    Returns
    -------
    list[Path]
        Paths written, in order.
    """
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []

    for name, table in results.tables.items():
        path = out / f"{name}.csv"
        table.to_csv(path, index=False)
        written.append(path)

    if results.report:
        path = out / "models.txt"
        path.write_text(results.report, encoding="utf-8")
        written.append(path)

    for name, fig in results.figures.items():
        written.append(save_figure(fig, out / f"{name}.html"))

    if xlsx:
        path = out / "results.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, table in results.tables.items():
                table.to_excel(writer, sheet_name=_sheet_name(name), index=False)
        written.append(path)

    logger.info("Wrote %d files to %s", len(written), out)
    return written


def _sheet_name(name: str) -> str:
    # Excel caps sheet names at 31 characters
    return name[:31]
