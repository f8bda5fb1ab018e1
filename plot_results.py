#!/usr/bin/env python3
"""
Script to redraw ORA comparison plots from a saved results directory.
"""

import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import polars as pl
import seaborn as sns

from orabench.visualise import plot_background_sensitivity, plot_method_agreement

plt.style.use('seaborn-v0_8-whitegrid')
sns.set_context("paper", font_scale=1.2)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Plot ORA method comparison and background scenario results"
    )

    parser.add_argument(
        "--results-dir",
        type=str,
        default="results",
        help="Path to results directory (default: results)"
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default="plots",
        help="Path to output directory for plots (default: plots)"
    )

    parser.add_argument(
        "--signatures",
        type=str,
        nargs="+",
        help="Signatures to draw in the background sensitivity plot"
    )

    parser.add_argument(
        "--reference",
        type=str,
        default="p_library",
        help="P-value column used as the x axis of the agreement plot (default: p_library)"
    )

    return parser.parse_args()


def main():
    args = parse_args()
    data_dir = Path(args.results_dir) / "data"
    output_dir = Path(args.output_dir)

    if not data_dir.is_dir():
        print(f"Error: no data directory found in {args.results_dir}")
        sys.exit(1)

    comparison_file = data_dir / "method_comparison.csv"
    if comparison_file.is_file():
        comparison = pl.read_csv(comparison_file)
        plot_file = plot_method_agreement(comparison, output_dir, reference=args.reference)
        print(f"Saved {plot_file}")
    else:
        print(f"Skipping agreement plot: {comparison_file} not found")

    for name in ("prefix_scenarios", "shared_background_scenarios"):
        scenario_file = data_dir / f"{name}.csv"
        if not scenario_file.is_file():
            continue
        scenarios = pl.read_csv(scenario_file)
        plot_file = plot_background_sensitivity(
            scenarios,
            output_dir,
            signatures=args.signatures,
            filename=f"{name}.png"
        )
        print(f"Saved {plot_file}")


if __name__ == "__main__":
    main()
