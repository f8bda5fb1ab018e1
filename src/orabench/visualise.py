"""
Plots for comparing ORA methods and for showing how p-values move with the
background.
"""

from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
import polars as pl
import matplotlib.pyplot as plt
import seaborn as sns

METHOD_LABELS = {
    'p_library': 'scipy hypergeom.sf',
    'p_hypergeometric': 'Closed-form hypergeometric',
    'p_fisher': "Fisher's exact (greater)",
}


def neg_log10(p_values) -> np.ndarray:
    """-log10 of p-values, with zeros clipped to the smallest positive float."""
    p = np.asarray(p_values, dtype=float)
    return -np.log10(np.clip(p, np.finfo(float).tiny, 1.0))


def _to_pandas(df: pl.DataFrame) -> pd.DataFrame:
    return pd.DataFrame(df.to_dict(as_series=False))


def plot_method_agreement(
    comparison: pl.DataFrame,
    output_path: Path,
    reference: str = 'p_library',
    filename: str = 'method_agreement.png'
) -> Path:
    """
    Scatter each method's -log10 p-value against a reference method.

    Args:
        comparison: Output of ``compare_methods``
        output_path: Directory to save the plot in
        reference: Column used for the x axis
        filename: Name of the image file

    Returns:
        Path of the saved plot
    """
    if comparison.height == 0:
        raise ValueError("Input data cannot be empty")
    if reference not in comparison.columns:
        raise ValueError(f"Reference column {reference} not found in comparison table")

    others = [c for c in METHOD_LABELS if c in comparison.columns and c != reference]
    if not others:
        raise ValueError("Comparison table needs at least two p-value columns")

    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    x = neg_log10(comparison[reference].to_numpy())
    long = pd.concat([
        pd.DataFrame({
            'reference': x,
            'method_value': neg_log10(comparison[col].to_numpy()),
            'method': METHOD_LABELS[col],
        })
        for col in others
    ])

    plt.figure(figsize=(7, 6))
    ax = sns.scatterplot(data=long, x='reference', y='method_value', hue='method', style='method', s=60)
    upper = max(float(x.max()), float(long['method_value'].max()), 1.0)
    ax.plot([0, upper], [0, upper], linestyle='--', color='grey', linewidth=1)

    ax.set_xlabel(f"-log10 p ({METHOD_LABELS.get(reference, reference)})")
    ax.set_ylabel("-log10 p (other methods)")
    ax.set_title("Agreement between ORA p-value methods")
    plt.grid(True, linestyle="--", alpha=0.7)
    plt.tight_layout()

    plot_file = output_path / filename
    plt.savefig(plot_file, bbox_inches="tight")
    plt.close()
    return plot_file


def plot_background_sensitivity(
    scenarios: pl.DataFrame,
    output_path: Path,
    signatures: Optional[List[str]] = None,
    max_signatures: int = 8,
    filename: str = 'background_sensitivity.png'
) -> Path:
    """
    Line plot of each signature's -log10 p-value across prefix scenarios.

    Args:
        scenarios: Output of ``run_prefix_scenarios``
        output_path: Directory to save the plot in
        signatures: Signatures to draw; defaults to the first ``max_signatures``
            that appear in the scenarios
        max_signatures: Cap on the number of lines when ``signatures`` is None
        filename: Name of the image file

    Returns:
        Path of the saved plot
    """
    if scenarios.height == 0:
        raise ValueError("Input data cannot be empty")

    if signatures is None:
        signatures = scenarios.sort('scenario')['signature_name'].unique(maintain_order=True).to_list()
        signatures = signatures[:max_signatures]

    subset = scenarios.filter(pl.col('signature_name').is_in(signatures))
    if subset.height == 0:
        raise ValueError("None of the requested signatures appear in the scenarios")

    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    data = _to_pandas(subset.select(['scenario', 'signature_name', 'p_value', 'background_size']))
    data['neg_log10_p'] = neg_log10(data['p_value'])

    fig, (ax_p, ax_bg) = plt.subplots(2, 1, figsize=(10, 9), sharex=True,
                                      gridspec_kw={'height_ratios': [3, 1]})
    sns.lineplot(data=data, x='scenario', y='neg_log10_p', hue='signature_name', marker='o', ax=ax_p)
    ax_p.set_ylabel("-log10 p")
    ax_p.set_title("Enrichment p-values as signatures are added to the collection")
    ax_p.legend(title="Signature", bbox_to_anchor=(1.02, 1), loc='upper left')
    ax_p.grid(True, linestyle="--", alpha=0.7)

    background = data.drop_duplicates('scenario').sort_values('scenario')
    ax_bg.step(background['scenario'], background['background_size'], where='mid', color='black')
    ax_bg.set_xlabel("Signatures in collection")
    ax_bg.set_ylabel("Background size")
    ax_bg.grid(True, linestyle="--", alpha=0.7)

    plt.tight_layout()
    plot_file = output_path / filename
    plt.savefig(plot_file, bbox_inches="tight")
    plt.close(fig)
    return plot_file
