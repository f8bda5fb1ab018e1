"""Sorting, multiple-testing adjustment and rendering of enrichment results."""

from typing import List

import polars as pl

from orabench.stats import perform_fdr_analysis

RESULT_SCHEMA = {
    'signature_name': pl.Utf8,
    'signature_size': pl.Int64,
    'overlap_count': pl.Int64,
    'background_size': pl.Int64,
    'total_significant': pl.Int64,
    'p_value': pl.Float64,
}

PVALUE_COLUMNS = (
    'p_value', 'adjusted_p_value', 'p_library', 'p_hypergeometric', 'p_fisher',
    'min_p_value', 'max_p_value',
)


def empty_results() -> pl.DataFrame:
    """Result table with no rows and the standard columns."""
    return pl.DataFrame(schema=RESULT_SCHEMA)


def add_adjusted_pvalues(results: pl.DataFrame, column: str = 'p_value', alpha: float = 0.05) -> pl.DataFrame:
    """
    Add a Benjamini-Hochberg adjusted p-value column.

    The adjustment runs over exactly the rows present, so the same raw p-value
    can adjust differently when the set of reported signatures changes.

    Args:
        results: Result table
        column: Column holding the raw p-values
        alpha: Family-wise significance level passed to the FDR procedure

    Returns:
        Table with an ``adjusted_p_value`` column
    """
    if results.height == 0:
        return results.with_columns(pl.Series('adjusted_p_value', [], dtype=pl.Float64))

    fdr = perform_fdr_analysis(results[column].to_numpy(), alpha=alpha)
    return results.with_columns(
        pl.Series('adjusted_p_value', fdr['pvals_corrected'], dtype=pl.Float64)
    )


def arrange_results(results: pl.DataFrame, adjust: bool = False, column: str = 'p_value') -> pl.DataFrame:
    """
    Sort results by ascending p-value, keeping input order among ties.

    Args:
        results: Result table in signature order
        adjust: Also add the adjusted p-value column
        column: Column to sort on

    Returns:
        Sorted table
    """
    arranged = (
        results
        .with_row_index('_order')
        .sort([column, '_order'])
        .drop('_order')
    )
    if adjust:
        arranged = add_adjusted_pvalues(arranged, column=column)
    return arranged


def format_table(results: pl.DataFrame, digits: int = 3) -> str:
    """Render results as a plain-text table with p-values in scientific notation."""
    pvalue_columns: List[str] = [c for c in PVALUE_COLUMNS if c in results.columns]
    display = results.with_columns([
        pl.col(c).map_elements(lambda v: f"{v:.{digits}e}", return_dtype=pl.Utf8)
        for c in pvalue_columns
    ])

    with pl.Config(
        tbl_rows=-1,
        tbl_cols=-1,
        tbl_hide_dataframe_shape=True,
        tbl_hide_column_data_types=True,
        fmt_str_lengths=80,
        tbl_width_chars=200,
    ):
        return str(display)
