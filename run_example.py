import logging
import time
from pathlib import Path

import polars as pl

from orabench import EnrichmentPipeline, format_table
from orabench.config import PipelineConfig


def run_pipeline():
    # Debug messages go to the log file only, so the progress bar stays clean
    log_dir = Path("results/logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_dir / f"pipeline_{time.strftime('%Y%m%d-%H%M%S')}.log")
    file_handler.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    config_path = Path("example/config.toml").absolute()
    print(f"Using config file: {config_path}")

    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        config = PipelineConfig(str(config_path))

        print("Analysis configuration:")
        for key, value in config.to_dict()['analysis'].items():
            print(f"  - {key}: {value}")

        pipeline = EnrichmentPipeline(config)
        results = pipeline.run()
        pipeline.save_results()

        print(pipeline.summary())

        scenarios = results.get('prefix_scenarios')
        if scenarios is not None and scenarios.height > 0:
            n_backgrounds = scenarios['background_size'].n_unique()
            print(f"Prefix scenarios produced {n_backgrounds} distinct background sizes")

            spread = (
                scenarios.group_by('signature_name', maintain_order=True)
                .agg(
                    pl.len().alias('n_scenarios'),
                    pl.col('p_value').min().alias('min_p_value'),
                    pl.col('p_value').max().alias('max_p_value'),
                )
                .filter(pl.col('n_scenarios') > 1)
            )
            print(format_table(spread))
    except Exception:
        logging.exception("Error running the pipeline")
        raise


if __name__ == "__main__":
    run_pipeline()
