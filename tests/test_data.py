"""Tests for data generation, loading and background construction."""

import pytest
import numpy as np
import polars as pl

from orabench.config import ConfigurationError
from orabench.data import (
    Universe,
    build_background,
    build_membership_matrix,
    filter_signatures,
    load_abundance,
    load_signatures,
    prepare_universe,
    reduce_background,
    significant_genes,
    simulate_abundance,
    simulate_dataset,
    simulate_signatures,
)
from orabench.stats import DataError


@pytest.fixture
def small_abundance():
    """Ten measured genes, the first four significant at 0.1."""
    return pl.DataFrame({
        'gene_id': [f"g{i}" for i in range(1, 11)],
        'A_1': [10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
        'padj': [0.001, 0.01, 0.05, 0.09, 0.2, 0.3, 0.5, 0.7, 0.9, 1.0],
    })


def test_simulate_abundance_shape():
    """Simulated table has one row per gene and one column per sample."""
    df = simulate_abundance(seed=1, n_genes=200, n_samples=6)

    assert df.height == 200
    assert df.columns == ['gene_id', 'A_1', 'A_2', 'A_3', 'B_1', 'B_2', 'B_3', 'padj']
    assert df['gene_id'].n_unique() == 200
    assert df['padj'].min() >= 0.0
    assert df['padj'].max() <= 1.0
    assert df.filter(pl.col('padj') < 0.1).height > 0
    assert df.filter(pl.col('padj') >= 0.1).height > 0


def test_simulate_abundance_deterministic():
    """Identical seeds give identical tables; different seeds do not."""
    first = simulate_abundance(seed=7, n_genes=300)
    second = simulate_abundance(seed=7, n_genes=300)
    other = simulate_abundance(seed=8, n_genes=300)

    assert first.equals(second)
    assert not first.equals(other)


def test_simulate_abundance_invalid():
    """At least one gene and two samples are required."""
    with pytest.raises(ValueError):
        simulate_abundance(n_genes=0)
    with pytest.raises(ValueError):
        simulate_abundance(n_samples=1)


def test_simulate_signatures_planted():
    """The first signatures are drawn only from significant genes."""
    abundance = simulate_abundance(seed=3, n_genes=500)
    signatures = simulate_signatures(abundance, seed=3, n_signatures=10, min_genes=5,
                                     max_genes=40, n_enriched=2, threshold=0.1)

    assert len(signatures) == 10
    assert list(signatures)[:2] == ['signature_01', 'signature_02']

    significant = set(abundance.filter(pl.col('padj') < 0.1)['gene_id'].to_list())
    for name in ['signature_01', 'signature_02']:
        assert signatures[name]
        assert set(signatures[name]) <= significant

    for genes in signatures.values():
        assert len(genes) == len(set(genes))


@pytest.mark.parametrize("seed", [40, 48, 54, 93, 147] + list(range(10)))
def test_planted_signatures_survive_default_filter(seed):
    """With default sizes the planted signatures are never filtered out."""
    abundance, signatures = simulate_dataset(seed=seed)
    universe = prepare_universe(abundance, signatures)

    for name in ['signature_01', 'signature_02']:
        assert name in universe.signatures
        assert len(universe.signatures[name]) >= 5
        assert set(universe.signatures[name]) <= universe.significant


def test_simulate_signatures_include_unmeasured_genes():
    """Some members are absent from the abundance table."""
    abundance = simulate_abundance(seed=3, n_genes=300)
    signatures = simulate_signatures(abundance, seed=3, n_signatures=20, n_unmeasured=100)

    measured = set(abundance['gene_id'].to_list())
    members = {g for genes in signatures.values() for g in genes}
    assert members - measured


def test_simulate_dataset_deterministic():
    """Identical seeds give identical signatures."""
    abundance1, signatures1 = simulate_dataset(seed=11, n_genes=300, n_signatures=8)
    abundance2, signatures2 = simulate_dataset(seed=11, n_genes=300, n_signatures=8)
    _, signatures3 = simulate_dataset(seed=12, n_genes=300, n_signatures=8)

    assert abundance1.equals(abundance2)
    assert signatures1 == signatures2
    assert signatures1 != signatures3


def test_simulate_signatures_invalid_threshold(small_abundance):
    """Significance threshold outside [0, 1] is a configuration error."""
    with pytest.raises(ConfigurationError):
        simulate_signatures(small_abundance, threshold=1.5)


def test_build_background():
    """Background is the expressed genes named by any signature."""
    expressed = ['g1', 'g2', 'g3', 'g4']
    signatures = {'a': ['g1', 'g2', 'x1'], 'b': ['g2', 'g3']}

    assert build_background(expressed, signatures) == {'g1', 'g2', 'g3'}
    assert build_background(expressed, {}) == set()


def test_filter_signatures():
    """Signatures are restricted to the background and size filtered."""
    background = {f"g{i}" for i in range(1, 11)}
    signatures = {
        'keep': ['g1', 'g2', 'g3', 'g4', 'g5', 'missing'],
        'too_small': ['g1', 'g2', 'missing1', 'missing2', 'missing3'],
        'empty': [],
        'too_big': [f"g{i}" for i in range(1, 11)],
        'keep_dups': ['g6', 'g6', 'g7', 'g8', 'g9', 'g10'],
    }

    filtered = filter_signatures(signatures, background, min_size=5, max_size=9)

    assert list(filtered) == ['keep', 'keep_dups']
    assert filtered['keep'] == ['g1', 'g2', 'g3', 'g4', 'g5']
    assert filtered['keep_dups'] == ['g6', 'g7', 'g8', 'g9', 'g10']


def test_filter_signatures_invalid_bounds():
    """min_size above max_size is rejected."""
    with pytest.raises(ConfigurationError):
        filter_signatures({'a': ['g1']}, {'g1'}, min_size=10, max_size=5)


def test_reduce_background():
    """Reduced background is the union of surviving members."""
    assert reduce_background({'a': ['g1', 'g2'], 'b': ['g2', 'g3']}) == {'g1', 'g2', 'g3'}
    assert reduce_background({}) == set()


def test_build_membership_matrix():
    """Rows follow the gene order, columns the signature order."""
    matrix = build_membership_matrix({'a': ['g1', 'g3'], 'b': ['g2']}, ['g1', 'g2', 'g3'])

    assert matrix.dtype == np.bool_
    assert matrix.tolist() == [[True, False], [False, True], [True, False]]


def test_significant_genes(small_abundance):
    """Only background genes below the threshold are significant."""
    background = {'g1', 'g3', 'g5', 'g7'}

    assert significant_genes(small_abundance, background, 0.1) == {'g1', 'g3'}
    assert significant_genes(small_abundance, background, 0.0) == set()
    assert significant_genes(small_abundance, set(), 0.1) == set()


@pytest.mark.parametrize("threshold", [-0.1, 1.5, float('nan'), "high"])
def test_significant_genes_invalid_threshold(small_abundance, threshold):
    """Threshold outside [0, 1] is a configuration error."""
    with pytest.raises(ConfigurationError):
        significant_genes(small_abundance, {'g1'}, threshold)


def test_prepare_universe(small_abundance):
    """Background shrinks to the members of signatures that survive filtering."""
    signatures = {
        'a': ['g1', 'g2', 'g3', 'g5', 'g6', 'absent'],
        'b': ['g7', 'g8', 'absent'],  # filtered out: 2 measured genes
    }

    universe = prepare_universe(small_abundance, signatures, threshold=0.1)

    assert isinstance(universe, Universe)
    assert list(universe.signatures) == ['a']
    assert universe.background == {'g1', 'g2', 'g3', 'g5', 'g6'}
    assert universe.significant == {'g1', 'g2', 'g3'}
    assert universe.background_size == 5
    assert universe.total_significant == 3
    assert universe.genes == ['g1', 'g2', 'g3', 'g5', 'g6']


def test_prepare_universe_empty_collection(small_abundance):
    """An empty or fully filtered collection gives an empty universe."""
    universe = prepare_universe(small_abundance, {})
    assert universe.background_size == 0
    assert universe.signatures == {}
    assert universe.total_significant == 0

    universe = prepare_universe(small_abundance, {'tiny': ['g1', 'g2']})
    assert universe.background_size == 0
    assert universe.signatures == {}


def test_prepare_universe_shared_background(small_abundance):
    """A shared background joins the universe without being a signature."""
    signatures = {'a': ['g1', 'g2', 'g3', 'g5', 'g6']}
    shared = small_abundance['gene_id'].to_list() + ['absent']

    universe = prepare_universe(small_abundance, signatures, shared_background=shared)

    assert list(universe.signatures) == ['a']
    assert universe.background_size == 10
    assert universe.significant == {'g1', 'g2', 'g3', 'g4'}


def test_prepare_universe_invalid_threshold(small_abundance):
    """Invalid thresholds fail even when the collection is empty."""
    with pytest.raises(ConfigurationError):
        prepare_universe(small_abundance, {}, threshold=2.0)


def test_load_abundance(tmp_path):
    """Abundance files need gene_id and an adjusted p-value column."""
    path = tmp_path / "abundance.tsv"
    path.write_text("gene_id\tS1\tS2\tFDR\ng1\t1\t2\t0.01\ng2\t3\t4\t0.5\n")

    df = load_abundance(path, padj_col='FDR')

    assert df.columns == ['gene_id', 'S1', 'S2', 'padj']
    assert df['padj'].to_list() == [0.01, 0.5]

    with pytest.raises(DataError, match="missing columns"):
        load_abundance(path)


def test_load_abundance_out_of_range(tmp_path):
    """Adjusted p-values must be probabilities."""
    path = tmp_path / "abundance.tsv"
    path.write_text("gene_id\tpadj\ng1\t1.5\n")

    with pytest.raises(DataError):
        load_abundance(path)


def test_load_signatures(tmp_path):
    """GMT lines become signatures in file order."""
    path = tmp_path / "signatures.gmt"
    path.write_text(
        "set_b\tsecond set\tg3\tg4\tg3\n"
        "\n"
        "set_a\thttp://example.org\tg1\tg2\t\n"
    )

    signatures = load_signatures(path)

    assert list(signatures) == ['set_b', 'set_a']
    assert signatures['set_b'] == ['g3', 'g4']
    assert signatures['set_a'] == ['g1', 'g2']


def test_load_signatures_malformed(tmp_path):
    """A line without a description field is rejected."""
    path = tmp_path / "bad.gmt"
    path.write_text("only_name\n")

    with pytest.raises(DataError):
        load_signatures(path)
