#!/usr/bin/env python3
"""
Command line interface for the ORA comparison pipeline.
"""

import argparse
import logging
import sys

import tomli

from .config import ConfigurationError, METHODS, PipelineConfig
from .pipeline import EnrichmentPipeline
from .utils import setup_logging


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Compare ORA p-values from scipy, a closed-form hypergeometric sum "
                    "and Fisher's exact test"
    )

    parser.add_argument(
        "config_file",
        type=str,
        help="Path to TOML configuration file"
    )

    data_group = parser.add_argument_group("Data overrides")
    data_group.add_argument(
        "--seed",
        type=int,
        help="Override random seed for the synthetic data"
    )
    data_group.add_argument(
        "--n-genes",
        type=int,
        help="Override number of simulated genes"
    )
    data_group.add_argument(
        "--n-signatures",
        type=int,
        help="Override number of simulated signatures"
    )
    data_group.add_argument(
        "--abundance",
        type=str,
        help="Tab-separated abundance file with gene_id and padj columns"
    )
    data_group.add_argument(
        "--signatures",
        type=str,
        help="GMT file with signatures"
    )

    analysis_group = parser.add_argument_group("Analysis parameter overrides")
    analysis_group.add_argument(
        "--threshold",
        type=float,
        help="Override adjusted p-value threshold for significant genes"
    )
    analysis_group.add_argument(
        "--min-size",
        type=int,
        help="Override minimum signature size"
    )
    analysis_group.add_argument(
        "--max-size",
        type=int,
        help="Override maximum signature size"
    )
    analysis_group.add_argument(
        "--method",
        choices=METHODS,
        help="Override enrichment method used for the main table and scenarios"
    )
    analysis_group.add_argument(
        "--no-adjust",
        action="store_true",
        help="Do not add FDR-adjusted p-values"
    )

    scenario_group = parser.add_argument_group("Scenario overrides")
    scenario_group.add_argument(
        "--no-scenarios",
        action="store_true",
        help="Skip the signature prefix scenarios"
    )
    scenario_group.add_argument(
        "--shared-background",
        action="store_true",
        help="Also run the scenarios with every measured gene appended as a shared background"
    )

    output_group = parser.add_argument_group("Output configuration overrides")
    output_group.add_argument(
        "--output-dir",
        type=str,
        help="Override output directory"
    )
    output_group.add_argument(
        "--no-plots",
        action="store_true",
        help="Do not write plots"
    )
    output_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def update_config(config: dict, args: argparse.Namespace):
    """Update configuration with command line overrides."""
    for section in ('data', 'analysis', 'scenarios', 'output'):
        config.setdefault(section, {})

    # Data overrides
    if args.seed is not None:
        config['data']['seed'] = args.seed
    if args.n_genes is not None:
        config['data']['n_genes'] = args.n_genes
    if args.n_signatures is not None:
        config['data']['n_signatures'] = args.n_signatures
    if args.abundance:
        config['data']['abundance_file'] = args.abundance
    if args.signatures:
        config['data']['signatures_file'] = args.signatures

    # Analysis parameter overrides
    if args.threshold is not None:
        config['analysis']['fdr_threshold'] = args.threshold
    if args.min_size is not None:
        config['analysis']['min_size'] = args.min_size
    if args.max_size is not None:
        config['analysis']['max_size'] = args.max_size
    if args.method:
        config['analysis']['method'] = args.method
    if args.no_adjust:
        config['analysis']['adjust'] = False

    # Scenario overrides
    if args.no_scenarios:
        config['scenarios']['run'] = False
    if args.shared_background:
        config['scenarios']['shared_background'] = True

    # Output configuration overrides
    if args.output_dir:
        config['output']['directory'] = args.output_dir
    if args.no_plots:
        config['output']['save_plots'] = False

    return config


def main(argv=None):
    """Main entry point for the CLI."""
    args = parse_args(argv)

    try:
        with open(args.config_file, 'rb') as f:
            config = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        print(f"Error loading configuration file: {str(e)}", file=sys.stderr)
        sys.exit(1)

    config = update_config(config, args)

    try:
        pipeline_config = PipelineConfig.from_dict(config)
    except ConfigurationError as e:
        print(f"Invalid configuration: {str(e)}", file=sys.stderr)
        sys.exit(1)

    # Set up logging first, before any pipeline operations
    log_dir = pipeline_config.get_output_path('logs')
    setup_logging(log_dir, level=logging.DEBUG if args.verbose else logging.INFO)

    logging.info("Starting ORA comparison pipeline")
    logging.info(f"Using configuration file: {args.config_file}")

    try:
        pipeline = EnrichmentPipeline(pipeline_config)
        pipeline.run()
        pipeline.save_results()
        print(pipeline.summary())
        logging.info("Pipeline execution completed successfully")
    except Exception as e:
        logging.error(f"Pipeline execution failed: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
