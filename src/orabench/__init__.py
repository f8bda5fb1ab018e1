"""
ORA Background Comparison
=========================

A Python package comparing over-representation analysis p-values computed by
scipy, by the closed-form hypergeometric sum and by Fisher's exact test, and
showing how the background set changes them.
"""

from .pipeline import (
    EnrichmentPipeline,
    compare_methods as compare_methods,
    enrich_universe as enrich_universe,
    run_enrichment as run_enrichment,
    run_prefix_scenarios as run_prefix_scenarios,
)
from .config import PipelineConfig, ConfigurationError
from .data import (
    Universe,
    simulate_abundance as simulate_abundance,
    simulate_signatures as simulate_signatures,
    simulate_dataset as simulate_dataset,
    load_abundance as load_abundance,
    load_signatures as load_signatures,
    build_background as build_background,
    filter_signatures as filter_signatures,
    reduce_background as reduce_background,
    significant_genes as significant_genes,
    prepare_universe as prepare_universe,
)
from .stats import (
    ContingencyTable,
    DataError,
    hypergeometric_pvalue as hypergeometric_pvalue,
    manual_hypergeometric_pvalue as manual_hypergeometric_pvalue,
    build_contingency_table as build_contingency_table,
    fisher_exact_pvalue as fisher_exact_pvalue,
    perform_fdr_analysis as perform_fdr_analysis,
)
from .report import (
    arrange_results as arrange_results,
    add_adjusted_pvalues as add_adjusted_pvalues,
    format_table as format_table,
)
from .utils import setup_logging as setup_logging, ensure_dir as ensure_dir

__version__ = "0.1.0"

__all__ = [
    "EnrichmentPipeline",
    "PipelineConfig",
    "ConfigurationError",
    "DataError",
    "Universe",
    "ContingencyTable",
    "compare_methods",
    "enrich_universe",
    "run_enrichment",
    "run_prefix_scenarios",
    "simulate_abundance",
    "simulate_signatures",
    "simulate_dataset",
    "load_abundance",
    "load_signatures",
    "build_background",
    "filter_signatures",
    "reduce_background",
    "significant_genes",
    "prepare_universe",
    "hypergeometric_pvalue",
    "manual_hypergeometric_pvalue",
    "build_contingency_table",
    "fisher_exact_pvalue",
    "perform_fdr_analysis",
    "arrange_results",
    "add_adjusted_pvalues",
    "format_table",
    "setup_logging",
    "ensure_dir",
]
