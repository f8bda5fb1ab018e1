"""
Statistical functions for over-representation analysis.

Three routes to the same one-sided enrichment p-value are provided so they can
be compared against each other:

* ``hypergeometric_pvalue``: the survival function shipped with scipy
* ``manual_hypergeometric_pvalue``: the closed-form tail sum in exact arithmetic
* ``fisher_exact_pvalue``: the "greater" Fisher's exact test on a 2x2 table
"""

from dataclasses import dataclass
from fractions import Fraction
from math import comb
from numbers import Integral, Real
from typing import Dict, List, Sequence, Tuple, Union

import numba as nb
import numpy as np
from scipy import stats
from statsmodels.stats.multitest import multipletests


class DataError(ValueError):
    """Raised when counts or tables passed to a statistical test are invalid."""


#  Core numba-optimised kernel for overlap counting

@nb.njit(parallel=True)
def _count_overlaps(membership, significant_mask):
    """
    Count signature sizes and significant members for every signature.

    Args:
        membership: Boolean genes x signatures matrix
        significant_mask: Boolean vector flagging significant genes

    Returns:
        Tuple of (sizes, overlaps) arrays, one entry per signature
    """
    n_genes = membership.shape[0]
    n_sets = membership.shape[1]
    sizes = np.zeros(n_sets, dtype=np.int64)
    overlaps = np.zeros(n_sets, dtype=np.int64)

    for j in nb.prange(n_sets):
        size = 0
        overlap = 0
        for i in range(n_genes):
            if membership[i, j]:
                size += 1
                if significant_mask[i]:
                    overlap += 1
        sizes[j] = size
        overlaps[j] = overlap

    return sizes, overlaps


def count_overlaps(membership: np.ndarray, significant_mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Count, per signature, its size and how many of its genes are significant.

    Args:
        membership: Boolean matrix with one row per background gene and one
            column per signature
        significant_mask: Boolean vector with one entry per background gene

    Returns:
        Tuple of (sizes, overlaps) as int64 arrays
    """
    membership = np.ascontiguousarray(membership, dtype=np.bool_)
    significant_mask = np.ascontiguousarray(significant_mask, dtype=np.bool_)

    if membership.ndim != 2:
        raise DataError("Membership matrix must be two-dimensional")
    if significant_mask.shape[0] != membership.shape[0]:
        raise DataError(
            f"Significance mask has {significant_mask.shape[0]} entries "
            f"but membership matrix has {membership.shape[0]} genes"
        )

    return _count_overlaps(membership, significant_mask)


def _as_count(value, name: str) -> int:
    if isinstance(value, (bool, np.bool_)):
        raise DataError(f"{name} must be an integer count, got {value!r}")
    if isinstance(value, Integral):
        count = int(value)
    elif isinstance(value, Real) and float(value).is_integer():
        count = int(value)
    else:
        raise DataError(f"{name} must be an integer count, got {value!r}")
    if count < 0:
        raise DataError(f"{name} cannot be negative, got {count}")
    return count


def _validate_counts(overlap, background_size, signature_size, total_significant) -> Tuple[int, int, int, int]:
    x = _as_count(overlap, "overlap")
    n = _as_count(background_size, "background_size")
    k = _as_count(signature_size, "signature_size")
    m = _as_count(total_significant, "total_significant")

    if k > n:
        raise DataError(f"Signature size ({k}) exceeds background size ({n})")
    if m > n:
        raise DataError(f"Significant gene count ({m}) exceeds background size ({n})")
    if x > min(k, m):
        raise DataError(
            f"Overlap ({x}) exceeds signature size ({k}) or significant gene count ({m})"
        )
    return x, n, k, m


def hypergeometric_pvalue(
    overlap: int,
    background_size: int,
    signature_size: int,
    total_significant: int
) -> float:
    """
    Upper-tail hypergeometric p-value using scipy's survival function.

    P(X >= overlap) when ``total_significant`` genes are drawn from a background
    of ``background_size`` genes, ``signature_size`` of which belong to the
    signature.

    Args:
        overlap: Significant genes observed in the signature
        background_size: Genes in the background (N)
        signature_size: Genes in the signature (K)
        total_significant: Significant genes in the background (M)

    Returns:
        P-value in [0, 1]
    """
    x, n, k, m = _validate_counts(overlap, background_size, signature_size, total_significant)
    if x == 0:
        return 1.0

    # P(X >= x) = 1 - P(X <= x - 1)
    p_value = stats.hypergeom.sf(x - 1, n, k, m)
    return float(min(max(p_value, 0.0), 1.0))


def manual_hypergeometric_pvalue(
    overlap: int,
    background_size: int,
    signature_size: int,
    total_significant: int
) -> float:
    """
    Upper-tail hypergeometric p-value from the closed-form sum.

    p = sum_{x=X}^{min(K, M)} C(K, x) * C(N - K, M - x) / C(N, M)

    The sum is evaluated with exact integers and converted to float once, so the
    only rounding is the final conversion.
    """
    x, n, k, m = _validate_counts(overlap, background_size, signature_size, total_significant)
    if x == 0:
        return 1.0

    upper = min(k, m)
    numerator = sum(comb(k, i) * comb(n - k, m - i) for i in range(x, upper + 1))
    return float(Fraction(numerator, comb(n, m)))


@dataclass(frozen=True)
class ContingencyTable:
    """2x2 table of signature membership against significance.

    Rows split the background by signature membership, columns by significance:

                        significant   not significant
        in signature        a               b
        not in signature    c               d
    """
    a: int
    b: int
    c: int
    d: int

    @property
    def total(self) -> int:
        return self.a + self.b + self.c + self.d

    def as_list(self) -> List[List[int]]:
        return [[self.a, self.b], [self.c, self.d]]


def build_contingency_table(signature, significant, background) -> ContingencyTable:
    """
    Build the 2x2 table for one signature.

    Args:
        signature: Genes in the signature
        significant: Significant genes
        background: Background genes; signature and significant genes outside
            it are ignored

    Returns:
        ContingencyTable with a = |S & sig|, b = |S - sig|,
        c = |(bg - S) & sig| and d = |(bg - S) - sig|
    """
    background = set(background)
    signature = set(signature) & background
    significant = set(significant) & background
    rest = background - signature

    return ContingencyTable(
        a=len(signature & significant),
        b=len(signature - significant),
        c=len(rest & significant),
        d=len(rest - significant),
    )


def validate_contingency_table(table: Union[ContingencyTable, Sequence[Sequence[int]]]) -> ContingencyTable:
    """
    Check that a 2x2 table holds non-negative integer counts.

    Args:
        table: ContingencyTable or nested 2x2 sequence

    Returns:
        The table as a ContingencyTable with int cells
    """
    if isinstance(table, ContingencyTable):
        cells = [table.a, table.b, table.c, table.d]
    else:
        rows = [list(row) for row in table]
        if len(rows) != 2 or any(len(row) != 2 for row in rows):
            raise DataError("Contingency table must be 2x2")
        cells = rows[0] + rows[1]

    a, b, c, d = (_as_count(v, f"cell {name}") for v, name in zip(cells, "abcd"))
    return ContingencyTable(a=a, b=b, c=c, d=d)


def fisher_exact_pvalue(table: Union[ContingencyTable, Sequence[Sequence[int]]]) -> float:
    """
    One-sided ("greater") Fisher's exact test p-value for a 2x2 table.

    With fixed margins this is P(cell a >= observed a), which equals the
    hypergeometric upper tail for the same background.

    Args:
        table: ContingencyTable or nested 2x2 sequence

    Returns:
        P-value in [0, 1]
    """
    table = validate_contingency_table(table)
    if table.a == 0:
        return 1.0

    _, p_value = stats.fisher_exact(table.as_list(), alternative='greater')
    return float(min(max(p_value, 0.0), 1.0))


def perform_fdr_analysis(p_values, alpha: float = 0.05) -> Dict[str, list]:
    """
    Benjamini-Hochberg adjustment of enrichment p-values.

    The adjustment covers exactly the p-values passed in, so callers hand it
    the rows they report: adding or dropping a signature changes the
    adjusted values of the others.

    Args:
        p_values: Raw p-values, one per reported signature
        alpha: False discovery rate used for the ``reject`` flags

    Returns:
        Dictionary with ``reject`` flags and ``pvals_corrected``, both in input order
    """
    p_values = np.asarray(p_values, dtype=float)
    if p_values.size == 0:
        raise ValueError("Input p-values array cannot be empty")

    reject, pvals_corrected, _, _ = multipletests(
        p_values,
        alpha=alpha,
        method='fdr_bh'
    )

    return {
        'reject': reject.astype(bool).tolist(),
        'pvals_corrected': pvals_corrected.tolist()
    }
