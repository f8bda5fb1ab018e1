import numpy as np
import polars as pl
import pytest

from orabench.visualise import (
    neg_log10,
    plot_background_sensitivity,
    plot_method_agreement,
)


@pytest.fixture
def comparison():
    return pl.DataFrame({
        'signature_name': ['a', 'b', 'c'],
        'p_library': [1e-6, 0.02, 1.0],
        'p_hypergeometric': [1e-6, 0.02, 1.0],
        'p_fisher': [1e-6, 0.02, 1.0],
        'max_abs_difference': [0.0, 0.0, 0.0],
    })


@pytest.fixture
def scenarios():
    return pl.DataFrame({
        'scenario': [1, 2, 2, 3, 3, 3],
        'signature_name': ['a', 'a', 'b', 'a', 'b', 'c'],
        'p_value': [1.0, 0.01, 0.5, 0.001, 0.2, 0.9],
        'background_size': [10, 25, 25, 40, 40, 40],
    })


def test_neg_log10():
    """Zero p-values give a finite value."""
    values = neg_log10([1.0, 0.01, 0.0])

    assert values[0] == pytest.approx(0.0)
    assert values[1] == pytest.approx(2.0)
    assert np.isfinite(values[2])


def test_plot_method_agreement(comparison, tmp_path):
    """Agreement plot is written to the output directory."""
    plot_file = plot_method_agreement(comparison, tmp_path / 'plots')

    assert plot_file == tmp_path / 'plots' / 'method_agreement.png'
    assert plot_file.exists()


def test_plot_method_agreement_errors(comparison, tmp_path):
    """Empty tables and unknown reference columns are rejected."""
    with pytest.raises(ValueError, match="Input data cannot be empty"):
        plot_method_agreement(comparison.head(0), tmp_path)
    with pytest.raises(ValueError, match="not found"):
        plot_method_agreement(comparison, tmp_path, reference='p_other')
    with pytest.raises(ValueError, match="at least two"):
        plot_method_agreement(comparison.select(['signature_name', 'p_library']), tmp_path)


def test_plot_background_sensitivity(scenarios, tmp_path):
    """Sensitivity plot is written, optionally for chosen signatures."""
    plot_file = plot_background_sensitivity(scenarios, tmp_path)
    assert plot_file.exists()

    plot_file = plot_background_sensitivity(scenarios, tmp_path, signatures=['b'], filename='b.png')
    assert plot_file == tmp_path / 'b.png'
    assert plot_file.exists()


def test_plot_background_sensitivity_errors(scenarios, tmp_path):
    with pytest.raises(ValueError, match="Input data cannot be empty"):
        plot_background_sensitivity(scenarios.head(0), tmp_path)
    with pytest.raises(ValueError, match="None of the requested signatures"):
        plot_background_sensitivity(scenarios, tmp_path, signatures=['missing'])
