"""Tests for result arrangement and rendering."""

import pytest
import polars as pl

from orabench.report import (
    add_adjusted_pvalues,
    arrange_results,
    empty_results,
    format_table,
)


def make_results(names, p_values):
    n = len(names)
    return pl.DataFrame({
        'signature_name': names,
        'signature_size': [10] * n,
        'overlap_count': [3] * n,
        'background_size': [100] * n,
        'total_significant': [20] * n,
        'p_value': p_values,
    })


def test_arrange_results_sorts_ascending():
    """Rows are ordered by p-value."""
    results = make_results(['a', 'b', 'c'], [0.5, 0.01, 0.2])
    arranged = arrange_results(results)

    assert arranged['signature_name'].to_list() == ['b', 'c', 'a']
    assert arranged.columns == results.columns


def test_arrange_results_stable_ties():
    """Ties keep the original signature order."""
    results = make_results(['first', 'second', 'third', 'fourth'], [1.0, 0.3, 1.0, 0.3])
    arranged = arrange_results(results)

    assert arranged['signature_name'].to_list() == ['second', 'fourth', 'first', 'third']


def test_arrange_results_adjust():
    """Adjustment adds a BH column aligned with the sorted rows."""
    results = make_results(['a', 'b', 'c'], [0.04, 0.01, 0.03])
    arranged = arrange_results(results, adjust=True)

    assert arranged['adjusted_p_value'].to_list() == pytest.approx([0.03, 0.04, 0.04])


def test_adjusted_pvalues_depend_on_reported_set():
    """The same raw p-value adjusts differently when more rows are reported."""
    two = add_adjusted_pvalues(make_results(['a', 'b'], [0.01, 0.02]))
    three = add_adjusted_pvalues(make_results(['a', 'b', 'c'], [0.01, 0.02, 0.5]))

    assert two['adjusted_p_value'].to_list() == pytest.approx([0.02, 0.02])
    assert three['adjusted_p_value'].to_list() == pytest.approx([0.03, 0.03, 0.5])


def test_adjusted_pvalues_bounded():
    """Adjusted p-values never fall below the raw ones or exceed 1."""
    results = add_adjusted_pvalues(make_results(list('abcde'), [0.001, 0.2, 0.9, 0.04, 1.0]))

    assert (results['adjusted_p_value'] >= results['p_value']).all()
    assert (results['adjusted_p_value'] <= 1.0).all()


def test_empty_results():
    """Empty tables pass through sorting and adjustment."""
    empty = empty_results()
    arranged = arrange_results(empty, adjust=True)

    assert arranged.height == 0
    assert 'adjusted_p_value' in arranged.columns
    assert arranged.schema['p_value'] == pl.Float64


def test_format_table():
    """Rendered table shows every signature and scientific p-values."""
    results = arrange_results(make_results(['alpha', 'beta'], [1.234e-6, 0.5]), adjust=True)
    table = format_table(results)

    assert 'alpha' in table
    assert 'beta' in table
    assert '1.234e-06' in table
    assert 'adjusted_p_value' in table


def test_format_table_spread_columns():
    """Minimum and maximum p-value columns are rendered in scientific notation."""
    spread = pl.DataFrame({
        'signature_name': ['alpha'],
        'min_p_value': [2.5e-8],
        'max_p_value': [0.125],
    })
    table = format_table(spread)

    assert '2.500e-08' in table
    assert '1.250e-01' in table
