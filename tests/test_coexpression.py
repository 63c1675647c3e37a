import numpy as np
import pandas as pd
import pytest

from cispsig.exceptions import DegenerateAffinityError
from cispsig.signature.coexpression import CoexpressionNetwork, CoexpressionPropagator


def test_affinity_symmetric_with_undefined_diagonal(random_expression):
    network = CoexpressionNetwork.from_expression(random_expression)
    values = network.values

    assert values.shape == (30, 30)
    assert np.all(np.isnan(np.diag(values)))
    off = ~np.eye(30, dtype=bool)
    assert np.allclose(values[off], values.T[off])
    assert np.all(np.abs(values[off]) <= 1.0 + 1e-12)


def test_affinity_is_read_only(random_expression):
    network = CoexpressionNetwork.from_expression(random_expression)
    with pytest.raises(ValueError):
        network.values[0, 1] = 0.5


def test_affinity_wrapped_without_copy():
    affinity = np.array([[np.nan, 0.4], [0.4, np.nan]])
    network = CoexpressionNetwork(affinity, ["A", "B"])

    assert np.shares_memory(network.values, affinity)
    assert not affinity.flags.writeable


def test_spearman_matches_pandas(random_expression):
    network = CoexpressionNetwork.from_expression(random_expression)
    expected = random_expression.corr(method="spearman").to_numpy(copy=True)
    np.fill_diagonal(expected, np.nan)
    assert np.allclose(network.values, expected, equal_nan=True)


def test_constant_and_incomplete_genes_excluded(random_expression):
    expression = random_expression.copy()
    expression["G0"] = 3.0
    expression.loc["S0", "G1"] = np.nan
    network = CoexpressionNetwork.from_expression(expression)

    assert "G0" not in network
    assert "G1" not in network
    assert set(network.excluded_genes) == {"G0", "G1"}
    assert len(network) == 28


def test_degenerate_network():
    expression = pd.DataFrame({"A": [1.0] * 5, "B": [2.0] * 5, "C": [0.0, 1.0, 2.0, 3.0, 4.0]})
    with pytest.raises(DegenerateAffinityError):
        CoexpressionNetwork.from_expression(expression)


def test_too_few_samples():
    expression = pd.DataFrame({"A": [1.0, 2.0], "B": [2.0, 1.0]})
    with pytest.raises(DegenerateAffinityError):
        CoexpressionNetwork.from_expression(expression)


def test_self_pairs_never_members(random_expression):
    network = CoexpressionNetwork.from_expression(random_expression)
    propagator = CoexpressionPropagator(network, affinity_sig_perc=0.5)
    seeds = ["G3", "G7", "G11"]
    membership, threshold = propagator.membership(seeds)

    for seed in seeds:
        assert np.isnan(membership.loc[seed, seed])
    finite = membership.to_numpy()[np.isfinite(membership.to_numpy())]
    assert set(np.unique(finite)) <= {0.0, 1.0}


def test_connectivity_excludes_self_pairs():
    membership = pd.DataFrame(
        [[np.nan, 1.0, 0.0], [1.0, np.nan, 1.0]],
        index=["A", "B"],
        columns=["A", "B", "C"],
    )
    connectivity = CoexpressionPropagator.connectivity(membership)
    assert connectivity["A"] == 1.0
    assert connectivity["B"] == 1.0
    assert connectivity["C"] == 0.5


def test_connectivity_undefined_column_is_zero():
    membership = pd.DataFrame([[np.nan, 1.0]], index=["A"], columns=["A", "B"])
    connectivity = CoexpressionPropagator.connectivity(membership)
    assert connectivity["A"] == 0.0


def test_coexpressed_module_kept(tumor, planted_groups):
    coexp_signal, signal_only, decoy, noise = planted_groups
    network = CoexpressionNetwork.from_expression(tumor)
    propagator = CoexpressionPropagator(network, affinity_sig_perc=0.05, conn_cutoff_perc=0.1)

    result = propagator.filter(coexp_signal + signal_only)
    assert result.kept == set(coexp_signal)
    assert result.counts()["seeds_in_network"] == 5


def test_missing_seeds_cannot_pass(tumor):
    network = CoexpressionNetwork.from_expression(tumor)
    propagator = CoexpressionPropagator(network)

    result = propagator.filter(["SIG0", "SIG1", "NOT_A_GENE"])
    assert "NOT_A_GENE" not in result.kept
    assert result.missing_seeds == ["NOT_A_GENE"]


def test_no_seeds_in_network(tumor):
    network = CoexpressionNetwork.from_expression(tumor)
    result = CoexpressionPropagator(network).filter(["X1", "X2"])
    assert result.kept == frozenset()
    assert result.seed_genes == []


@pytest.mark.parametrize("seed", range(5))
def test_stricter_connectivity_never_grows(random_expression, seed):
    network = CoexpressionNetwork.from_expression(random_expression)
    rng = np.random.RandomState(seed)
    seeds = list(rng.choice(network.genes, size=8, replace=False))

    sizes = []
    for perc in [0.5, 0.3, 0.2, 0.1, 0.05]:
        kept = CoexpressionPropagator(network, 0.1, perc).filter(seeds).kept
        sizes.append(len(kept))
    assert sizes == sorted(sizes, reverse=True)


def test_stricter_affinity_threshold_changes_membership(random_expression):
    network = CoexpressionNetwork.from_expression(random_expression)
    seeds = ["G1", "G2", "G3", "G4"]
    loose, t_loose = CoexpressionPropagator(network, 0.3).membership(seeds)
    strict, t_strict = CoexpressionPropagator(network, 0.05).membership(seeds)

    assert t_strict >= t_loose
    assert np.nansum(strict.to_numpy()) <= np.nansum(loose.to_numpy())
