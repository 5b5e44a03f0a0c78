"""
Command-line interface for the fine-root radiocarbon analysis.
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

from rich.logging import RichHandler

from .constants import (
    CONTROL_LABEL,
    D14C_COL,
    DEFAULT_POSTHOC,
    HORIZON_COL,
    PLOT_COL,
    POSTHOC_METHODS,
    PRIMARY_D14C_COL,
    REPLICATE_COL,
    SECONDARY_D14C_COL,
    TREATMENT_COL,
)
from .data_loader import load_samples
from .pipeline import run_analysis, write_outputs


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a Rich handler to the package logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        The configured ``icestorm14c`` logger
    """
    logger = logging.getLogger("icestorm14c")
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icestorm14c",
        description="Ice-storm fine-root Δ14C analysis - summaries, plots and treatment models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  icestorm14c --input roots_14c.csv --outdir results/

  icestorm14c --input roots_14c.csv --treatment Ice_level --control 0 \\
    --posthoc bonferroni --xlsx --outdir results/
        """,
    )

    # Required arguments
    parser.add_argument("--input", required=True, help="Path to the radiocarbon CSV file")

    # Column names
    parser.add_argument("--treatment", default=TREATMENT_COL, help=f"Treatment column (default: {TREATMENT_COL})")
    parser.add_argument("--horizon", default=HORIZON_COL, help=f"Soil horizon column (default: {HORIZON_COL})")
    parser.add_argument("--plot", default=PLOT_COL, help=f"Plot column (default: {PLOT_COL})")
    parser.add_argument("--replicate", default=REPLICATE_COL, help=f"Replicate column (default: {REPLICATE_COL})")
    parser.add_argument(
        "--primary",
        default=PRIMARY_D14C_COL,
        help=f"Preferred Δ14C column (default: {PRIMARY_D14C_COL})",
    )
    parser.add_argument(
        "--secondary",
        default=SECONDARY_D14C_COL,
        help=f"Fallback Δ14C column (default: {SECONDARY_D14C_COL})",
    )

    # Analysis options
    parser.add_argument("--control", default=CONTROL_LABEL, help=f"Control treatment label (default: {CONTROL_LABEL})")
    parser.add_argument(
        "--posthoc",
        choices=POSTHOC_METHODS,
        default=DEFAULT_POSTHOC,
        help=f"Pairwise contrast method (default: {DEFAULT_POSTHOC})",
    )
    parser.add_argument("--no-plots", action="store_true", help="Skip figure generation")
    parser.add_argument("--xlsx", action="store_true", help="Also write every table to results.xlsx")
    parser.add_argument("--outdir", default="outputs", help="Output directory (default: outputs/)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main CLI entry point.

    Loads the CSV, runs the analysis and writes the reports.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    print(f"Loading data from: {args.input}")
    df = load_samples(
        args.input,
        treatment=args.treatment,
        horizon=args.horizon,
        plot=args.plot,
        replicate=args.replicate,
        primary=args.primary,
        secondary=args.secondary,
    )
    print(f"Data loaded: {len(df)} samples, {df[D14C_COL].notna().sum()} with a Δ14C value")

    print("\nRunning summaries and models...")
    results = run_analysis(
        df,
        treatment=args.treatment,
        horizon=args.horizon,
        plot=args.plot,
        control=args.control,
        posthoc=args.posthoc,
        make_plots=not args.no_plots,
    )

    written = write_outputs(results, args.outdir, xlsx=args.xlsx)
    print(f"\n✅ Analysis complete! Reports saved to: {written[0].parent.resolve()}")
    print("\nGenerated files:")
    for path in written:
        print(f"  - {path.name}")


if __name__ == "__main__":
    main()
