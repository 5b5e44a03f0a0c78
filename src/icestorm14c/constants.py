"""
Global constants and defaults for the ice-storm fine-root radiocarbon analysis.
"""

# Input columns (after sanitize_columns)
TREATMENT_COL = "Treatment"
HORIZON_COL = "Horizon"
PLOT_COL = "Plot"
REPLICATE_COL = "Rep"
PRIMARY_D14C_COL = "D14C"
SECONDARY_D14C_COL = "D14C_alt"

# Derived columns
D14C_COL = "d14c"
SAMPLE_ID_COL = "sample_id"
DIFF_COL = "diff_from_control"

# Design
CONTROL_LABEL = "Control"
HORIZON_LEVELS = ["organic", "mineral"]
SAMPLE_ID_SEP = "_"

# Statistical Analysis Constants
DEFAULT_ALPHA = 0.05
DEFAULT_CI_LEVEL = 0.95
DEFAULT_ANOVA_TYPE = 2  # Type II sum of squares
MIN_SAMPLES_FOR_SHAPIRO = 3
MIN_GROUPS_FOR_LEVENE = 2

# Post-hoc
POSTHOC_METHODS = ["tukey", "bonferroni"]
DEFAULT_POSTHOC = "tukey"
DEFAULT_DUNN_ADJUST = "bonferroni"

# Figures
FIGURE_HEIGHT = 560
FIGURE_WIDTH = 900
QQPLOT_HEIGHT = 520
MARKER_SIZE = 10
HORIZON_COLORS = {"organic": "#8C564B", "mineral": "#7F7F7F"}

# Column Sanitization
COL_REPLACE_MAP = {
    " ": "_",
    "-": "_",
    "(": "",
    ")": "",
    ":": "_",
    "/": "_",
    ".": "_",
    "*": "",
}
