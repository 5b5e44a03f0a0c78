"""
Visualization utilities for raw measurements, summaries and model diagnostics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from scipy import stats

from .constants import (
    D14C_COL,
    FIGURE_HEIGHT,
    FIGURE_WIDTH,
    HORIZON_COL,
    HORIZON_COLORS,
    MARKER_SIZE,
    PLOT_COL,
    QQPLOT_HEIGHT,
    SAMPLE_ID_COL,
    TREATMENT_COL,
)

logger = logging.getLogger(__name__)

D14C_LABEL = "Δ14C (‰)"


def apply_paper_layout(
    fig: go.Figure,
    title: str,
    x_title: str,
    y_title: str,
    height: int = FIGURE_HEIGHT,
    width: int = FIGURE_WIDTH,
) -> go.Figure:
    """
    Apply consistent publication-ready styling to a Plotly figure.

    Parameters
    ----------
    fig : go.Figure
        Input Plotly figure.
    title : str
        Plot title.
    x_title : str
        X-axis title.
    y_title : str
        Y-axis title.
    height : int
        Figure height in pixels.
    width : int
        Figure width in pixels.

    Returns
    -------
    go.Figure
        Styled figure.
    """
    fig.update_layout(
        template="simple_white",
        title=dict(text=title, x=0.5, xanchor="center", font=dict(size=18)),
        font=dict(size=14),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0.0),
        margin=dict(l=70, r=30, t=85, b=70),
        height=height,
        width=width,
    )
    axis_style = dict(showline=True, linewidth=1, linecolor="black", mirror=True, ticks="outside")
    fig.update_xaxes(title=x_title, **axis_style)
    fig.update_yaxes(title=y_title, **axis_style)
    return fig


def _horizon_order(values) -> list[str]:
    present = list(dict.fromkeys(str(v) for v in pd.Series(values).dropna()))
    known = [h for h in HORIZON_COLORS if h in present]
    return known + sorted(h for h in present if h not in known)


def scatter_by_treatment(
    df: pd.DataFrame,
    value: str = D14C_COL,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    label: str = SAMPLE_ID_COL,
) -> go.Figure:
    """
    Scatter of every sample's Δ14C by treatment, one trace per horizon.
    """
    data = df.dropna(subset=[value, treatment, horizon])
    fig = go.Figure()
    for h in _horizon_order(data[horizon]):
        sub = data[data[horizon].astype(str) == h]
        fig.add_trace(
            go.Scatter(
                x=sub[treatment].astype(str),
                y=sub[value],
                mode="markers",
                name=h,
                text=sub[label] if label in sub.columns else None,
                hovertemplate="%{text}<br>%{y:.1f}<extra></extra>",
                marker=dict(
                    size=MARKER_SIZE,
                    color=HORIZON_COLORS.get(h),
                    line=dict(color="black", width=1),
                    opacity=0.85,
                ),
            )
        )
    fig.update_layout(scattermode="group")
    return apply_paper_layout(fig, title="Fine-root Δ14C by treatment", x_title=treatment, y_title=D14C_LABEL)


def summary_bar_chart(
    summary: pd.DataFrame,
    treatment: str = TREATMENT_COL,
    horizon: str = HORIZON_COL,
    letters: Optional[dict[str, dict[str, str]]] = None,
    title: str = "Mean Δ14C (± 95% CI)",
    y_title: str = D14C_LABEL,
) -> go.Figure:
    """
    Grouped bars of treatment × horizon means with 95% CI error bars.

    Parameters
    ----------
    summary : pd.DataFrame
        Output of ``summarize_by_treatment_horizon``.
    letters : Optional[dict[str, dict[str, str]]]
        ``{horizon: {treatment: cld}}`` letters drawn above each bar.
    """
    fig = go.Figure()
    for h in _horizon_order(summary[horizon]):
        sub = summary[summary[horizon].astype(str) == h]
        upper = (sub["ci_high"] - sub["mean"]).fillna(0.0)
        lower = (sub["mean"] - sub["ci_low"]).fillna(0.0)
        text = None
        if letters and h in letters:
            text = sub[treatment].astype(str).map(letters[h]).fillna("")
        fig.add_trace(
            go.Bar(
                x=sub[treatment].astype(str),
                y=sub["mean"],
                name=h,
                error_y=dict(type="data", symmetric=False, array=upper, arrayminus=lower, thickness=1.4, width=4),
                marker=dict(color=HORIZON_COLORS.get(h), line=dict(width=0.8, color="black")),
                text=text,
                textposition="outside",
                cliponaxis=False,
            )
        )
    fig.update_layout(barmode="group")
    return apply_paper_layout(fig, title=title, x_title=treatment, y_title=y_title)


def plot_difference_chart(
    plot_summary: pd.DataFrame,
    plot: str = PLOT_COL,
    horizon: str = HORIZON_COL,
    treatment: str = TREATMENT_COL,
) -> go.Figure:
    """
    Per-plot mean difference from control with 95% CI error bars.
    """
    fig = go.Figure()
    for h in _horizon_order(plot_summary[horizon]):
        sub = plot_summary[plot_summary[horizon].astype(str) == h].sort_values(plot)
        x = sub[plot].map(lambda p: f"{int(p)}" if float(p).is_integer() else str(p))
        fig.add_trace(
            go.Scatter(
                x=x,
                y=sub["mean"],
                mode="markers",
                name=h,
                text=sub[treatment].astype(str),
                hovertemplate="Plot %{x} (%{text})<br>%{y:.1f}<extra></extra>",
                error_y=dict(
                    type="data",
                    symmetric=False,
                    array=(sub["ci_high"] - sub["mean"]).fillna(0.0),
                    arrayminus=(sub["mean"] - sub["ci_low"]).fillna(0.0),
                ),
                marker=dict(size=MARKER_SIZE, color=HORIZON_COLORS.get(h), line=dict(color="black", width=1)),
            )
        )
    fig.add_hline(y=0, line_dash="dash", line_color="black")
    fig.update_xaxes(type="category")
    return apply_paper_layout(
        fig,
        title="Difference from control by plot (± 95% CI)",
        x_title=plot,
        y_title=f"{D14C_LABEL} − control",
    )


def qqplot_figure(values, title: str = "Residual Q-Q plot") -> Optional[go.Figure]:
    """
    Q-Q plot of standardized values against normal quantiles.

    Returns
    -------
    Optional[go.Figure]
        ``None`` when fewer than 3 finite values or zero spread.
    """
    vals = np.asarray(pd.to_numeric(pd.Series(values), errors="coerce"), dtype=float)
    vals = vals[np.isfinite(vals)]
    if len(vals) < 3:
        return None
    std = np.std(vals, ddof=1)
    if std == 0:
        return None

    osm, osr = stats.probplot(vals, dist="norm", fit=False)
    osr_std = (np.asarray(osr) - vals.mean()) / std
    line_x = np.linspace(float(np.min(osm)), float(np.max(osm)), 200)

    fig = go.Figure()
    fig.add_trace(go.Scatter(x=osm, y=osr_std, mode="markers", name="residuals"))
    fig.add_trace(go.Scatter(x=line_x, y=line_x, mode="lines", name="y = x", line=dict(color="black", dash="dash")))
    return apply_paper_layout(
        fig,
        title=title,
        x_title="Theoretical Quantiles",
        y_title="Standardized Sample Quantiles",
        height=QQPLOT_HEIGHT,
    )


def save_figure(fig: go.Figure, path: str | Path) -> Path:
    """Write ``fig`` as a standalone HTML file and return its path."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(p), include_plotlyjs="cdn")
    logger.debug("Wrote figure %s", p)
    return p
