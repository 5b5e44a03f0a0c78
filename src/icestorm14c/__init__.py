"""
icestorm14c - Fine-root radiocarbon analysis for the forest ice-storm experiment.

Loads the Δ14C sample table, computes treatment/horizon and per-plot
summaries, renders exploratory Plotly figures, and fits linear, ANOVA and
random-intercept mixed-effects models to test for ice-storm treatment effects.
"""

from .constants import *
from .cld_utils import cld_labels, make_cld_from_significance, pairwise_significance
from .data_loader import (
    coalesce_measurements,
    load_samples,
    make_sample_id,
    require_columns,
    sanitize_columns,
)
from .pipeline import AnalysisResults, run_analysis, write_outputs
from .posthoc_tests import bonferroni_posthoc, dunn_posthoc, tukey_posthoc
from .statistical_analysis import (
    anova_analysis,
    fit_mixed_model,
    kruskal_wallis,
    levene_homogeneity,
    likelihood_ratio_test,
    linear_model,
    mixed_models_by_horizon,
    model_summary_text,
    normality_checks,
    one_way_anova,
    treatment_effect_tests,
    wald_test,
)
from .summary import (
    add_control_difference,
    summarize_by_plot,
    summarize_by_treatment_horizon,
    summary_stats,
)
from .visualization import (
    apply_paper_layout,
    plot_difference_chart,
    qqplot_figure,
    save_figure,
    scatter_by_treatment,
    summary_bar_chart,
)

__version__ = "0.1.0"

__all__ = [
    # Data loading
    "load_samples",
    "sanitize_columns",
    "require_columns",
    "coalesce_measurements",
    "make_sample_id",
    # Summaries
    "summary_stats",
    "summarize_by_treatment_horizon",
    "add_control_difference",
    "summarize_by_plot",
    # Statistical analysis
    "normality_checks",
    "levene_homogeneity",
    "linear_model",
    "anova_analysis",
    "one_way_anova",
    "kruskal_wallis",
    "fit_mixed_model",
    "mixed_models_by_horizon",
    "likelihood_ratio_test",
    "wald_test",
    "treatment_effect_tests",
    "model_summary_text",
    # Post-hoc tests
    "tukey_posthoc",
    "bonferroni_posthoc",
    "dunn_posthoc",
    "pairwise_significance",
    "make_cld_from_significance",
    "cld_labels",
    # Visualization
    "apply_paper_layout",
    "scatter_by_treatment",
    "summary_bar_chart",
    "plot_difference_chart",
    "qqplot_figure",
    "save_figure",
    # Pipeline
    "AnalysisResults",
    "run_analysis",
    "write_outputs",
]
