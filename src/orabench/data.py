"""
Data generation, loading and background construction for ORA comparisons.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple
import logging

import numpy as np
import polars as pl

from orabench.config import (
    DEFAULT_FDR_THRESHOLD,
    DEFAULT_MAX_SIZE,
    DEFAULT_MIN_SIZE,
    validate_size_bounds,
    validate_threshold,
)
from orabench.stats import DataError

logger = logging.getLogger(__name__)

PADJ_COLUMN = 'padj'


def _gene_ids(n_genes: int, prefix: str = "gene") -> List[str]:
    width = max(5, len(str(n_genes)))
    return [f"{prefix}{i:0{width}d}" for i in range(1, n_genes + 1)]


def simulate_abundance(
    seed: int = 42,
    n_genes: int = 1000,
    n_samples: int = 12,
    da_fraction: float = 0.15
) -> pl.DataFrame:
    """
    Simulate a gene-by-sample abundance table with adjusted p-values.

    Samples are split into two groups of equal size; a random ``da_fraction``
    of genes is shifted in the second group and receives small adjusted
    p-values, the remainder receive uniform ones.

    Args:
        seed: Seed for the random generator
        n_genes: Number of genes (rows)
        n_samples: Number of samples (count columns)
        da_fraction: Expected fraction of differentially abundant genes

    Returns:
        DataFrame with ``gene_id``, one count column per sample and ``padj``
    """
    if n_genes <= 0 or n_samples < 2:
        raise ValueError("Need at least one gene and two samples")

    rng = np.random.default_rng(seed)

    n_first = n_samples // 2
    sample_names = (
        [f"A_{i}" for i in range(1, n_first + 1)]
        + [f"B_{i}" for i in range(1, n_samples - n_first + 1)]
    )

    base_mean = rng.gamma(shape=2.0, scale=50.0, size=n_genes)
    is_da = rng.random(n_genes) < da_fraction
    log_fold = np.where(is_da, rng.choice([-1.5, 1.5], size=n_genes), 0.0)

    means = np.repeat(base_mean[:, None], n_samples, axis=1)
    means[:, n_first:] *= np.exp(log_fold)[:, None]
    counts = rng.poisson(means)

    padj = np.where(
        is_da,
        rng.beta(0.5, 25.0, size=n_genes),
        rng.uniform(0.0, 1.0, size=n_genes)
    )

    data = {'gene_id': _gene_ids(n_genes)}
    for j, name in enumerate(sample_names):
        data[name] = counts[:, j].astype(np.int64)
    data[PADJ_COLUMN] = padj

    return pl.DataFrame(data)


def simulate_signatures(
    abundance: pl.DataFrame,
    seed: int = 42,
    n_signatures: int = 20,
    min_genes: int = 3,
    max_genes: int = 80,
    n_enriched: int = 2,
    threshold: float = DEFAULT_FDR_THRESHOLD,
    n_unmeasured: int = 50
) -> Dict[str, List[str]]:
    """
    Simulate named signatures with random membership and size.

    Members are drawn from the measured genes plus ``n_unmeasured`` identifiers
    absent from the abundance table. The first ``n_enriched`` signatures are
    then overwritten with genes drawn only from the significant set
    (``padj < threshold``) so later steps have a real enrichment signal. Planted
    signatures hold at least ``DEFAULT_MIN_SIZE`` genes when that many are
    significant, so they survive the default size filter.

    Args:
        abundance: Abundance table from ``simulate_abundance``
        seed: Seed for the random generator
        n_signatures: Number of signatures
        min_genes: Smallest signature size drawn
        max_genes: Largest signature size drawn
        n_enriched: Number of signatures planted with significant genes
        threshold: Adjusted p-value threshold defining significance
        n_unmeasured: Number of gene identifiers not present in the table

    Returns:
        Mapping of signature name to gene identifiers, in signature order
    """
    threshold = validate_threshold(threshold)
    if min_genes < 1 or min_genes > max_genes:
        raise ValueError(f"Invalid signature size range [{min_genes}, {max_genes}]")

    rng = np.random.default_rng([seed, 1])

    measured = abundance['gene_id'].to_list()
    pool = np.array(measured + _gene_ids(n_unmeasured, prefix="unmeasured"))
    significant = np.array(
        abundance.filter(pl.col(PADJ_COLUMN) < threshold)['gene_id'].to_list()
    )

    width = max(2, len(str(n_signatures)))
    signatures = {}
    for i in range(n_signatures):
        size = min(int(rng.integers(min_genes, max_genes + 1)), len(pool))
        members = rng.choice(pool, size=size, replace=False)
        signatures[f"signature_{i + 1:0{width}d}"] = members.tolist()

    # Plant the enrichment signal
    planted_floor = max(min_genes, DEFAULT_MIN_SIZE)
    for name in list(signatures)[:n_enriched]:
        size = min(max(len(signatures[name]), planted_floor), len(significant))
        if size == 0:
            logger.warning(f"No significant genes available to plant in {name}")
            continue
        if size < DEFAULT_MIN_SIZE:
            logger.warning(f"Only {size} significant genes available to plant in {name}")
        signatures[name] = rng.choice(significant, size=size, replace=False).tolist()

    return signatures


def simulate_dataset(
    seed: int = 42,
    n_genes: int = 1000,
    n_samples: int = 12,
    n_signatures: int = 20,
    min_genes: int = 3,
    max_genes: int = 80,
    n_enriched: int = 2,
    threshold: float = DEFAULT_FDR_THRESHOLD
) -> Tuple[pl.DataFrame, Dict[str, List[str]]]:
    """Simulate an abundance table and a matching signature collection."""
    abundance = simulate_abundance(seed=seed, n_genes=n_genes, n_samples=n_samples)
    signatures = simulate_signatures(
        abundance,
        seed=seed,
        n_signatures=n_signatures,
        min_genes=min_genes,
        max_genes=max_genes,
        n_enriched=n_enriched,
        threshold=threshold,
    )
    logger.debug(f"Simulated {abundance.height} genes and {len(signatures)} signatures (seed={seed})")
    return abundance, signatures


def load_abundance(file_path: Path, padj_col: str = PADJ_COLUMN) -> pl.DataFrame:
    """
    Load an abundance table.

    Args:
        file_path: Tab-delimited file with a ``gene_id`` column and an adjusted
            p-value column
        padj_col: Name of the adjusted p-value column in the file

    Returns:
        DataFrame with the adjusted p-value column renamed to ``padj``
    """
    df = pl.read_csv(
        file_path,
        separator='\t',
        has_header=True
    )

    missing = [col for col in ('gene_id', padj_col) if col not in df.columns]
    if missing:
        raise DataError(f"Abundance file {file_path} is missing columns: {', '.join(missing)}")

    if padj_col != PADJ_COLUMN:
        df = df.rename({padj_col: PADJ_COLUMN})

    df = df.with_columns(
        pl.col('gene_id').cast(pl.Utf8),
        pl.col(PADJ_COLUMN).cast(pl.Float64)
    )
    if df.filter((pl.col(PADJ_COLUMN) < 0) | (pl.col(PADJ_COLUMN) > 1)).height > 0:
        raise DataError(f"Adjusted p-values in {file_path} must lie within [0, 1]")

    return df


def load_signatures(file_path: Path) -> Dict[str, List[str]]:
    """
    Load signatures from a GMT file.

    Each line holds a name, a description and the member genes, tab separated.
    Duplicate genes within a line are dropped, keeping the first occurrence.

    Args:
        file_path: Path to the GMT file

    Returns:
        Mapping of signature name to gene identifiers, in file order
    """
    signatures = {}
    with open(file_path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip('\n\r')
            if not line.strip():
                continue
            fields = line.split('\t')
            if len(fields) < 2:
                raise DataError(f"{file_path}:{line_number}: expected name and description fields")
            name = fields[0]
            if name in signatures:
                logger.warning(f"Duplicate signature {name} in {file_path}; keeping the last one")
            genes = [g for g in fields[2:] if g]
            signatures[name] = list(dict.fromkeys(genes))
    return signatures


def build_background(expressed_genes: Iterable[str], signatures: Mapping[str, Iterable[str]]) -> Set[str]:
    """
    Intersect the expressed genes with every gene named in any signature.

    Args:
        expressed_genes: Genes present in the abundance data
        signatures: Mapping of signature name to genes

    Returns:
        Set of background genes
    """
    annotated = set()
    for genes in signatures.values():
        annotated.update(genes)
    return set(expressed_genes) & annotated


def filter_signatures(
    signatures: Mapping[str, Iterable[str]],
    background: Iterable[str],
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE
) -> Dict[str, List[str]]:
    """
    Restrict signatures to the background and drop those outside the size range.

    Args:
        signatures: Mapping of signature name to genes
        background: Background genes
        min_size: Smallest filtered size kept
        max_size: Largest filtered size kept

    Returns:
        Filtered signatures in their original order
    """
    min_size, max_size = validate_size_bounds(min_size, max_size)
    background = set(background)

    filtered = {}
    for name, genes in signatures.items():
        members = [g for g in dict.fromkeys(genes) if g in background]
        if min_size <= len(members) <= max_size:
            filtered[name] = members
        else:
            logger.debug(f"Dropping signature {name}: {len(members)} genes after filtering")
    return filtered


def reduce_background(filtered: Mapping[str, Iterable[str]]) -> Set[str]:
    """Union of the members of the signatures that survived filtering."""
    reduced = set()
    for genes in filtered.values():
        reduced.update(genes)
    return reduced


def build_membership_matrix(filtered: Mapping[str, Iterable[str]], genes: List[str]) -> np.ndarray:
    """
    Build a boolean genes x signatures membership matrix.

    Args:
        filtered: Filtered signatures; column order follows mapping order
        genes: Row order of the matrix

    Returns:
        Boolean array of shape (len(genes), len(filtered))
    """
    index = {gene: i for i, gene in enumerate(genes)}
    matrix = np.zeros((len(genes), len(filtered)), dtype=np.bool_)
    for j, members in enumerate(filtered.values()):
        rows = [index[g] for g in members if g in index]
        matrix[rows, j] = True
    return matrix


def significant_genes(
    abundance: pl.DataFrame,
    background: Iterable[str],
    threshold: float = DEFAULT_FDR_THRESHOLD
) -> Set[str]:
    """
    Genes of the background whose adjusted p-value is below ``threshold``.

    Args:
        abundance: DataFrame with ``gene_id`` and ``padj`` columns
        background: Background genes
        threshold: Adjusted p-value threshold in [0, 1]

    Returns:
        Set of significant gene identifiers
    """
    threshold = validate_threshold(threshold)
    background = list(background)
    if not background:
        return set()

    hits = abundance.filter(
        pl.col('gene_id').is_in(background) & (pl.col(PADJ_COLUMN) < threshold)
    )
    return set(hits['gene_id'].to_list())


@dataclass(frozen=True)
class Universe:
    """Background, filtered signatures and significant genes for one collection."""
    background: FrozenSet[str]
    signatures: Dict[str, Tuple[str, ...]]
    significant: FrozenSet[str]

    @property
    def genes(self) -> List[str]:
        return sorted(self.background)

    @property
    def background_size(self) -> int:
        return len(self.background)

    @property
    def total_significant(self) -> int:
        return len(self.significant)


def prepare_universe(
    abundance: pl.DataFrame,
    signatures: Mapping[str, Iterable[str]],
    threshold: float = DEFAULT_FDR_THRESHOLD,
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE,
    shared_background: Optional[Iterable[str]] = None
) -> Universe:
    """
    Build the background and significant gene set for a signature collection.

    The background starts as the expressed genes named by any signature,
    signatures are restricted to it and size filtered, and the background is
    then reduced to the union of the surviving signatures. Genes from
    ``shared_background`` that are expressed join the background at both steps
    without being reported as a signature, which pins the background across
    collections.

    Args:
        abundance: DataFrame with ``gene_id`` and ``padj`` columns
        signatures: Mapping of signature name to genes
        threshold: Adjusted p-value threshold defining significance
        min_size: Smallest filtered signature size kept
        max_size: Largest filtered signature size kept
        shared_background: Optional fixed gene set appended to the collection

    Returns:
        Universe for this collection
    """
    threshold = validate_threshold(threshold)
    expressed = set(abundance['gene_id'].to_list())

    background = build_background(expressed, signatures)
    shared = set(shared_background or ()) & expressed
    background |= shared

    filtered = filter_signatures(signatures, background, min_size=min_size, max_size=max_size)
    reduced = reduce_background(filtered) | shared
    significant = significant_genes(abundance, reduced, threshold)

    logger.debug(
        f"Universe: {len(filtered)}/{len(signatures)} signatures kept, "
        f"{len(reduced)} background genes, {len(significant)} significant"
    )

    return Universe(
        background=frozenset(reduced),
        signatures={name: tuple(genes) for name, genes in filtered.items()},
        significant=frozenset(significant),
    )
