"""Utility functions for the ORA comparison pipeline."""

import logging
from pathlib import Path
from typing import Any

import numpy as np

# Handlers installed by setup_logging, replaced on each call
_installed_handlers = []


def setup_logging(log_dir=None, level=logging.INFO):
    """Set up logging configuration.

    Args:
        log_dir: Directory to store log files
        level: Logging level
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / 'pipeline.log'

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(file_handler)
        _installed_handlers.append(file_handler)
        root_logger.info("Logging initialized")

    # Always add a console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    ))
    root_logger.addHandler(console_handler)
    _installed_handlers.append(console_handler)

    return logging.getLogger('orabench')


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def clean_for_json(item: Any) -> Any:
    """Convert numpy scalars, arrays and sets into JSON-serialisable Python types."""
    if isinstance(item, dict):
        return {str(k): clean_for_json(v) for k, v in item.items()}
    elif isinstance(item, (list, tuple)):
        return [clean_for_json(i) for i in item]
    elif isinstance(item, (set, frozenset)):
        return sorted(clean_for_json(i) for i in item)
    elif isinstance(item, np.integer):
        return int(item)
    elif isinstance(item, np.floating):
        return float(item)
    elif isinstance(item, np.ndarray):
        return clean_for_json(item.tolist())
    elif isinstance(item, np.bool_):
        return bool(item)
    elif isinstance(item, Path):
        return str(item)
    else:
        return item
