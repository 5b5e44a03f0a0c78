import numpy as np
import pandas as pd

from icestorm14c.summary import add_control_difference, summarize_by_plot, summarize_by_treatment_horizon
from icestorm14c.visualization import (
    plot_difference_chart,
    qqplot_figure,
    save_figure,
    scatter_by_treatment,
    summary_bar_chart,
)


def test_scatter_has_one_trace_per_horizon(samples):
    fig = scatter_by_treatment(samples)
    assert [t.name for t in fig.data] == ["organic", "mineral"]
    assert sum(len(t.y) for t in fig.data) == len(samples)


def test_summary_bar_chart_error_bars_and_letters(samples):
    summary = summarize_by_treatment_horizon(samples)
    letters = {"organic": {"High": "a", "Control": "b", "Low": "b", "Mid": "b"}}
    fig = summary_bar_chart(summary, letters=letters)
    organic = next(t for t in fig.data if t.name == "organic")
    mineral = next(t for t in fig.data if t.name == "mineral")

    expected = summary[summary["Horizon"] == "organic"]
    assert np.allclose(organic.y, expected["mean"])
    assert np.allclose(organic.error_y.array, expected["ci_high"] - expected["mean"])
    assert list(organic.text) == expected["Treatment"].map(letters["organic"]).tolist()
    assert mineral.text is None
    assert fig.layout.barmode == "group"


def test_plot_difference_chart(samples):
    plot_summary = summarize_by_plot(add_control_difference(samples))
    fig = plot_difference_chart(plot_summary)
    assert len(fig.data) == 2
    assert all(len(t.x) == 8 for t in fig.data)
    assert fig.layout.xaxis.type == "category"


def test_qqplot_figure_edge_cases():
    assert qqplot_figure([1.0, 2.0]) is None
    assert qqplot_figure([3.0, 3.0, 3.0]) is None
    fig = qqplot_figure(pd.Series([1.0, 2.5, 2.0, np.nan, 4.0]))
    assert len(fig.data[0].x) == 4


def test_save_figure_writes_html(tmp_path, samples):
    path = save_figure(scatter_by_treatment(samples), tmp_path / "figs" / "scatter.html")
    assert path.exists()
    assert "<html" in path.read_text(encoding="utf-8").lower()
