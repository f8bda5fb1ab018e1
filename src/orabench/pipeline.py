"""Main pipeline implementation for comparing ORA enrichment methods."""

import json
import logging
import platform
import time
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

import numpy as np
import polars as pl
from tqdm.auto import tqdm

# Configure tqdm to work properly on macOS
is_mac = platform.system() == 'Darwin'
tqdm_kwargs = {
    'position': 0,
    'leave': True,
    'ncols': 100,
    'dynamic_ncols': True,
    'ascii': is_mac,
}

from orabench.config import (
    DEFAULT_FDR_THRESHOLD,
    DEFAULT_MAX_SIZE,
    DEFAULT_MIN_SIZE,
    METHODS,
    PipelineConfig,
    validate_method,
)
from orabench.data import (
    Universe,
    build_membership_matrix,
    load_abundance,
    load_signatures,
    prepare_universe,
    simulate_dataset,
)
from orabench.report import RESULT_SCHEMA, arrange_results, empty_results, format_table
from orabench.stats import (
    ContingencyTable,
    count_overlaps,
    fisher_exact_pvalue,
    hypergeometric_pvalue,
    manual_hypergeometric_pvalue,
)
from orabench.utils import clean_for_json, ensure_dir

logger = logging.getLogger(__name__)


def _signature_pvalue(method: str, overlap: int, background_size: int,
                      signature_size: int, total_significant: int) -> float:
    if method == 'library':
        return hypergeometric_pvalue(overlap, background_size, signature_size, total_significant)
    if method == 'hypergeometric':
        return manual_hypergeometric_pvalue(overlap, background_size, signature_size, total_significant)

    table = ContingencyTable(
        a=overlap,
        b=signature_size - overlap,
        c=total_significant - overlap,
        d=background_size - signature_size - total_significant + overlap,
    )
    return fisher_exact_pvalue(table)


def enrich_universe(universe: Universe, method: str = 'library') -> pl.DataFrame:
    """
    Compute one enrichment row per signature of a prepared universe.

    Args:
        universe: Background, filtered signatures and significant genes
        method: 'library', 'hypergeometric' or 'fisher'

    Returns:
        Result table in signature order
    """
    method = validate_method(method)
    names = list(universe.signatures)
    if not names:
        return empty_results()

    genes = universe.genes
    membership = build_membership_matrix(universe.signatures, genes)
    significant_mask = np.array([g in universe.significant for g in genes], dtype=np.bool_)
    sizes, overlaps = count_overlaps(membership, significant_mask)

    background_size = len(genes)
    total_significant = int(significant_mask.sum())

    p_values = [
        _signature_pvalue(method, int(x), background_size, int(k), total_significant)
        for k, x in zip(sizes, overlaps)
    ]

    return pl.DataFrame(
        {
            'signature_name': names,
            'signature_size': sizes.tolist(),
            'overlap_count': overlaps.tolist(),
            'background_size': [background_size] * len(names),
            'total_significant': [total_significant] * len(names),
            'p_value': p_values,
        },
        schema=RESULT_SCHEMA,
    )


def run_enrichment(
    abundance: pl.DataFrame,
    signatures: Mapping[str, Iterable[str]],
    threshold: float = DEFAULT_FDR_THRESHOLD,
    method: str = 'library',
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE,
    adjust: bool = True,
    shared_background: Optional[Iterable[str]] = None
) -> pl.DataFrame:
    """
    Run ORA for a signature collection against its own background.

    Args:
        abundance: DataFrame with ``gene_id`` and ``padj`` columns
        signatures: Mapping of signature name to genes
        threshold: Adjusted p-value threshold defining significant genes
        method: 'library', 'hypergeometric' or 'fisher'
        min_size: Smallest filtered signature size kept
        max_size: Largest filtered signature size kept
        adjust: Add a Benjamini-Hochberg adjusted p-value column
        shared_background: Optional fixed gene set appended to the collection

    Returns:
        Result table sorted by ascending p-value
    """
    method = validate_method(method)
    universe = prepare_universe(
        abundance,
        signatures,
        threshold=threshold,
        min_size=min_size,
        max_size=max_size,
        shared_background=shared_background,
    )
    results = enrich_universe(universe, method=method)
    return arrange_results(results, adjust=adjust)


def compare_methods(
    abundance: pl.DataFrame,
    signatures: Mapping[str, Iterable[str]],
    threshold: float = DEFAULT_FDR_THRESHOLD,
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE,
    methods: Iterable[str] = METHODS
) -> pl.DataFrame:
    """
    Run every method on one shared universe and put the p-values side by side.

    Returns:
        Table with the count columns, one ``p_<method>`` column per method and
        ``max_abs_difference`` across methods, sorted by the first method
    """
    methods = [validate_method(m) for m in methods]
    if not methods:
        raise ValueError("At least one method is required for comparison")

    universe = prepare_universe(
        abundance, signatures, threshold=threshold, min_size=min_size, max_size=max_size
    )

    comparison = None
    for method in methods:
        results = enrich_universe(universe, method=method).rename({'p_value': f"p_{method}"})
        if comparison is None:
            comparison = results
        else:
            comparison = comparison.with_columns(results[f"p_{method}"])

    pvalue_columns = [f"p_{m}" for m in methods]
    if comparison.height == 0:
        comparison = comparison.with_columns(pl.Series('max_abs_difference', [], dtype=pl.Float64))
    else:
        comparison = comparison.with_columns(
            (pl.max_horizontal(pvalue_columns) - pl.min_horizontal(pvalue_columns))
            .alias('max_abs_difference')
        )

    return arrange_results(comparison, column=pvalue_columns[0])


def run_prefix_scenarios(
    abundance: pl.DataFrame,
    signatures: Mapping[str, Iterable[str]],
    threshold: float = DEFAULT_FDR_THRESHOLD,
    method: str = 'library',
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE,
    adjust: bool = True,
    shared_background: Optional[Iterable[str]] = None,
    show_progress: bool = False
) -> pl.DataFrame:
    """
    Re-run enrichment for every prefix of the signature collection.

    Scenario ``i`` uses the first ``i`` signatures, so its background (and with
    it every p-value) depends on which other signatures are present. Passing a
    ``shared_background`` appends the same gene set to every scenario.

    Returns:
        Concatenated result tables with a leading ``scenario`` column
    """
    method = validate_method(method)
    names = list(signatures)
    shared = list(shared_background) if shared_background is not None else None

    frames = []
    for i in tqdm(range(1, len(names) + 1), desc="Scenarios", unit="scenario",
                  disable=not show_progress, **tqdm_kwargs):
        collection = {name: signatures[name] for name in names[:i]}
        results = run_enrichment(
            abundance,
            collection,
            threshold=threshold,
            method=method,
            min_size=min_size,
            max_size=max_size,
            adjust=adjust,
            shared_background=shared,
        )
        frames.append(
            results
            .with_columns(pl.Series('scenario', [i] * results.height, dtype=pl.Int64))
            .select(['scenario'] + results.columns)
        )
        logger.debug(f"Scenario {i}: {results.height} signatures reported")

    if not frames:
        schema = {'scenario': pl.Int64, **RESULT_SCHEMA}
        if adjust:
            schema['adjusted_p_value'] = pl.Float64
        return pl.DataFrame(schema=schema)

    return pl.concat(frames, how='vertical')


class EnrichmentPipeline:
    """Main class for running the ORA method comparison."""

    def __init__(self, config: Union[str, Path, PipelineConfig]):
        """Initialise the pipeline.

        Args:
            config: Path to the TOML configuration file, or a loaded configuration
        """
        if isinstance(config, PipelineConfig):
            self.config = config
        else:
            self.config = PipelineConfig(config)
        self.logger = logging.getLogger(__name__)
        self.results: Dict[str, pl.DataFrame] = {}
        self._load_input_data()

    def _load_input_data(self):
        """Load input files, or simulate data when none are configured."""
        if self.config.uses_input_files:
            for key in ('abundance_file', 'signatures_file'):
                file_path = getattr(self.config, key)
                if not Path(file_path).is_file():
                    error_msg = f"Input file not found: {file_path} (specified as {key})"
                    self.logger.error(error_msg)
                    raise FileNotFoundError(error_msg)

            self.abundance = load_abundance(self.config.abundance_file)
            self.signatures = load_signatures(self.config.signatures_file)
        else:
            self.abundance, self.signatures = simulate_dataset(
                seed=self.config.seed,
                n_genes=self.config.n_genes,
                n_samples=self.config.n_samples,
                n_signatures=self.config.n_signatures,
                min_genes=self.config.signature_min_genes,
                max_genes=self.config.signature_max_genes,
                n_enriched=self.config.n_enriched,
                threshold=self.config.fdr_threshold,
            )

        self.logger.info(f"Loaded {self.abundance.height} genes with adjusted p-values")
        self.logger.info(f"Loaded {len(self.signatures)} signatures")

    def run(self) -> Dict[str, pl.DataFrame]:
        """Run the comparison and the background scenarios."""
        self.logger.info("Starting ORA comparison pipeline")
        start_time = time.time()
        cfg = self.config

        self.logger.info("Step 1: Enrichment with the configured method")
        self.results['enrichment'] = run_enrichment(
            self.abundance,
            self.signatures,
            threshold=cfg.fdr_threshold,
            method=cfg.method,
            min_size=cfg.min_size,
            max_size=cfg.max_size,
            adjust=cfg.adjust,
        )

        self.logger.info(f"Step 2: Comparing methods: {', '.join(cfg.methods)}")
        comparison = compare_methods(
            self.abundance,
            self.signatures,
            threshold=cfg.fdr_threshold,
            min_size=cfg.min_size,
            max_size=cfg.max_size,
            methods=cfg.methods,
        )
        self.results['method_comparison'] = comparison
        if comparison.height > 0:
            worst = comparison['max_abs_difference'].max()
            self.logger.info(f"Largest p-value disagreement between methods: {worst:.3e}")

        if cfg.run_scenarios:
            self.logger.info("Step 3: Re-running enrichment for each signature prefix")
            self.results['prefix_scenarios'] = run_prefix_scenarios(
                self.abundance,
                self.signatures,
                threshold=cfg.fdr_threshold,
                method=cfg.method,
                min_size=cfg.min_size,
                max_size=cfg.max_size,
                adjust=cfg.adjust,
                show_progress=True,
            )
            if cfg.shared_background:
                self.logger.info("Step 4: Repeating scenarios with a shared background")
                self.results['shared_background_scenarios'] = run_prefix_scenarios(
                    self.abundance,
                    self.signatures,
                    threshold=cfg.fdr_threshold,
                    method=cfg.method,
                    min_size=cfg.min_size,
                    max_size=cfg.max_size,
                    adjust=cfg.adjust,
                    shared_background=self.abundance['gene_id'].to_list(),
                    show_progress=True,
                )

        elapsed_time = time.time() - start_time
        self.logger.info(f"Pipeline completed in {elapsed_time:.2f} seconds")
        return self.results

    def summary(self) -> str:
        """Human-readable table of the configured method's results."""
        if 'enrichment' not in self.results:
            return "No results. Run the pipeline first."
        return format_table(self.results['enrichment'])

    def save_results(self, output_dir: Optional[Union[str, Path]] = None) -> List[Path]:
        """Save analysis results.

        Args:
            output_dir: Optional output directory path. If not provided,
                        uses the directory from the configuration.

        Returns:
            Paths of the files written
        """
        if not self.results:
            self.logger.warning("No results to save. Run the pipeline first.")
            return []

        output_path = Path(output_dir) if output_dir is not None else self.config.get_output_path()
        data_path = ensure_dir(output_path / 'data')
        written = []

        # 1. Tabular results
        for name, frame in self.results.items():
            csv_file = data_path / f"{name}.csv"
            frame.write_csv(csv_file)
            written.append(csv_file)
            self.logger.info(f"Saved {name} to {csv_file}")

        # 2. All results as JSON
        json_file = data_path / 'enrichment_results.json'
        with open(json_file, 'w') as f:
            json.dump(clean_for_json({k: v.to_dicts() for k, v in self.results.items()}), f, indent=2)
        written.append(json_file)

        # 3. Resolved configuration
        config_file = data_path / 'pipeline_config.json'
        with open(config_file, 'w') as f:
            json.dump(clean_for_json(self.config.to_dict()), f, indent=2)
        written.append(config_file)

        # 4. Plots
        if self.config.save_plots:
            from orabench.visualise import plot_background_sensitivity, plot_method_agreement

            plots_path = ensure_dir(output_path / 'plots')
            if self.results['method_comparison'].height > 0:
                written.append(plot_method_agreement(self.results['method_comparison'], plots_path))
            scenarios = self.results.get('prefix_scenarios')
            if scenarios is not None and scenarios.height > 0:
                written.append(plot_background_sensitivity(scenarios, plots_path))
            shared = self.results.get('shared_background_scenarios')
            if shared is not None and shared.height > 0:
                written.append(plot_background_sensitivity(
                    shared, plots_path, filename='shared_background_sensitivity.png'
                ))

        # 5. README describing the outputs
        readme_file = output_path / 'README.md'
        with open(readme_file, 'w') as f:
            f.write("# ORA Method Comparison Results\n\n")
            f.write(f"Analysis completed on {time.strftime('%Y-%m-%d %H:%M:%S')}\n\n")
            f.write("## Files\n\n")
            for path in written:
                f.write(f"- `{path.relative_to(output_path)}`\n")
        written.append(readme_file)

        self.logger.info(f"Saved README to {readme_file}")
        return written
