"""Configuration handling for the ORA comparison pipeline."""

import copy
import math
import tomli
import tomli_w
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union


METHODS = ("library", "hypergeometric", "fisher")

DEFAULT_FDR_THRESHOLD = 0.1
DEFAULT_MIN_SIZE = 5
DEFAULT_MAX_SIZE = 500


class ConfigurationError(ValueError):
    """Raised when an analysis parameter or configuration file is invalid."""


def validate_threshold(threshold: Any, name: str = "threshold") -> float:
    """Check that a significance threshold lies in [0, 1].

    Args:
        threshold: Candidate threshold value
        name: Parameter name used in the error message

    Returns:
        The threshold as a float
    """
    try:
        value = float(threshold)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {threshold!r}")
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {threshold!r}")
    return value


def validate_integer(value: Any, name: str) -> int:
    """Coerce a whole-number setting, raising ConfigurationError otherwise."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if not number.is_integer():
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    return int(number)


def validate_size_bounds(min_size: int, max_size: int) -> Tuple[int, int]:
    """Check the signature size range used for filtering."""
    if min_size < 0 or max_size < 0:
        raise ConfigurationError(
            f"Signature size bounds must be non-negative, got [{min_size}, {max_size}]"
        )
    if min_size > max_size:
        raise ConfigurationError(
            f"min_size ({min_size}) cannot exceed max_size ({max_size})"
        )
    return int(min_size), int(max_size)


def validate_method(method: str) -> str:
    """Check that an enrichment method name is known."""
    if method not in METHODS:
        raise ConfigurationError(
            f"Unknown enrichment method: {method!r}. Expected one of {', '.join(METHODS)}"
        )
    return method


class PipelineConfig:
    """Configuration class for the ORA comparison pipeline."""

    def __init__(self, config_path: Union[str, Path]):
        """Initialise the configuration from a TOML file.

        Args:
            config_path: Path to the TOML configuration file
        """
        self.config_path = config_path

        try:
            with open(config_path, "rb") as f:
                config = tomli.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Error loading configuration file: {config_path} does not exist")
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Error loading configuration file: {str(e)}")

        self._apply(config)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PipelineConfig":
        """Build a configuration from an already parsed dictionary."""
        instance = cls.__new__(cls)
        instance.config_path = None
        instance._apply(copy.deepcopy(config))
        return instance

    def _apply(self, config: Dict[str, Any]) -> None:
        self.config = config

        required_sections = ['data', 'analysis', 'output']
        missing_sections = [section for section in required_sections if section not in self.config]
        if missing_sections:
            raise ConfigurationError(f"Missing required sections in configuration: {', '.join(missing_sections)}")

        # Synthetic data settings, or input files when real data is supplied
        self.data_config = self.config.get("data", {})
        self.seed = validate_integer(self.data_config.get("seed", 42), "seed")
        self.n_genes = validate_integer(self.data_config.get("n_genes", 1000), "n_genes")
        self.n_samples = validate_integer(self.data_config.get("n_samples", 12), "n_samples")
        self.n_signatures = validate_integer(self.data_config.get("n_signatures", 20), "n_signatures")
        self.n_enriched = validate_integer(self.data_config.get("n_enriched", 2), "n_enriched")
        self.signature_min_genes = validate_integer(self.data_config.get("signature_min_genes", 3), "signature_min_genes")
        self.signature_max_genes = validate_integer(self.data_config.get("signature_max_genes", 80), "signature_max_genes")
        self.abundance_file = self.data_config.get("abundance_file")
        self.signatures_file = self.data_config.get("signatures_file")
        if bool(self.abundance_file) != bool(self.signatures_file):
            raise ConfigurationError(
                "abundance_file and signatures_file must be given together"
            )

        self.analysis_params = self.config.get("analysis", {})
        self.fdr_threshold = validate_threshold(
            self.analysis_params.get("fdr_threshold", DEFAULT_FDR_THRESHOLD), "fdr_threshold"
        )
        self.min_size, self.max_size = validate_size_bounds(
            validate_integer(self.analysis_params.get("min_size", DEFAULT_MIN_SIZE), "min_size"),
            validate_integer(self.analysis_params.get("max_size", DEFAULT_MAX_SIZE), "max_size"),
        )
        self.method = validate_method(self.analysis_params.get("method", "library"))
        self.methods = [validate_method(m) for m in self.analysis_params.get("methods", list(METHODS))]
        self.adjust = bool(self.analysis_params.get("adjust", True))

        self.scenario_config = self.config.get("scenarios", {})
        self.run_scenarios = bool(self.scenario_config.get("run", True))
        self.shared_background = bool(self.scenario_config.get("shared_background", False))

        self.output_config = self.config.get("output", {})
        self.save_plots = bool(self.output_config.get("save_plots", True))

    @property
    def uses_input_files(self) -> bool:
        """Whether data is loaded from files rather than simulated."""
        return bool(self.abundance_file)

    def get_output_path(self, subdir: Optional[str] = None) -> Path:
        """Get the path to the output directory or a subdirectory within it.

        Args:
            subdir: Optional subdirectory name within the output directory

        Returns:
            Path object for the requested directory
        """
        base_path = Path(self.output_config.get("directory", "results"))
        if subdir:
            return base_path / subdir
        return base_path

    def to_dict(self) -> Dict[str, Any]:
        """Resolved settings, including defaults not present in the file."""
        return {
            'data': {
                'seed': self.seed,
                'n_genes': self.n_genes,
                'n_samples': self.n_samples,
                'n_signatures': self.n_signatures,
                'n_enriched': self.n_enriched,
                'signature_min_genes': self.signature_min_genes,
                'signature_max_genes': self.signature_max_genes,
                'abundance_file': self.abundance_file,
                'signatures_file': self.signatures_file,
            },
            'analysis': {
                'fdr_threshold': self.fdr_threshold,
                'min_size': self.min_size,
                'max_size': self.max_size,
                'method': self.method,
                'methods': list(self.methods),
                'adjust': self.adjust,
            },
            'scenarios': {
                'run': self.run_scenarios,
                'shared_background': self.shared_background,
            },
            'output': {
                'directory': str(self.get_output_path()),
                'save_plots': self.save_plots,
            },
        }

    def save_config(self, output_path: Union[str, Path]) -> None:
        """Save the configuration to a TOML file.

        Args:
            output_path: Path to save the configuration file
        """
        with open(output_path, "wb") as f:
            tomli_w.dump(self.config, f)
