import numpy as np
import pandas as pd
import pytest

from cispsig.config import SignatureConfig
from cispsig.exceptions import MethodFailure
from cispsig.signature.de_methods import (
    SAMMethod, ModeratedTMethod, MaxTMethod, WelchBHMethod, build_method, welch_t,
)

ALL_METHODS = [
    SAMMethod(fdr=0.05),
    ModeratedTMethod(alpha=0.05),
    MaxTMethod(alpha=0.05),
    WelchBHMethod(alpha=0.05),
]


def _planted(n_per_group=15, n_genes=40, n_signal=4, shift=3.0, seed=0):
    """genes x samples matrix with the first n_signal genes raised in group 1."""
    rng = np.random.RandomState(seed)
    samples = [f"S{i:02d}" for i in range(2 * n_per_group)]
    genes = [f"G{i:02d}" for i in range(n_genes)]
    values = rng.normal(size=(n_genes, len(samples)))
    values[:n_signal, :n_per_group] += shift

    expression = pd.DataFrame(values, index=genes, columns=samples)
    labels = pd.Series([1] * n_per_group + [0] * n_per_group, index=samples)
    return expression, labels, set(genes[:n_signal])


@pytest.mark.parametrize("method", ALL_METHODS, ids=lambda m: m.name)
def test_recovers_planted_genes(method):
    expression, labels, signal = _planted()
    called = method.run(expression, labels, budget=200, random_state=0)

    assert signal <= called
    assert len(called - signal) <= 2


@pytest.mark.parametrize("method", ALL_METHODS, ids=lambda m: m.name)
def test_null_data_calls_little(method):
    expression, labels, _ = _planted(n_signal=0)
    called = method.run(expression, labels, budget=200, random_state=0)
    assert len(called) <= 2


@pytest.mark.parametrize("method", [SAMMethod(), MaxTMethod()], ids=lambda m: m.name)
def test_permutation_methods_reproducible(method):
    expression, labels, _ = _planted(shift=1.0)
    a = method.run(expression, labels, budget=100, random_state=5)
    b = method.run(expression, labels, budget=100, random_state=5)
    assert a == b


@pytest.mark.parametrize("method", ALL_METHODS, ids=lambda m: m.name)
def test_single_sample_group_fails(method):
    expression, labels, _ = _planted()
    labels = labels.copy()
    labels[:] = 0
    labels.iloc[0] = 1
    with pytest.raises(MethodFailure) as info:
        method.run(expression, labels, budget=10, random_state=0)
    assert info.value.method == method.name


@pytest.mark.parametrize("method", ALL_METHODS[:3], ids=lambda m: m.name)
def test_constant_matrix_fails(method):
    expression, labels, _ = _planted()
    expression.loc[:, :] = 1.0
    with pytest.raises(MethodFailure):
        method.run(expression, labels, budget=10, random_state=0)


def test_unlabelled_sample_fails():
    expression, labels, _ = _planted()
    with pytest.raises(MethodFailure):
        WelchBHMethod().run(expression, labels.iloc[1:])


def test_non_finite_values_fail():
    expression, labels, _ = _planted()
    expression.iloc[0, 0] = np.nan
    with pytest.raises(MethodFailure):
        ModeratedTMethod().run(expression, labels)


def test_welch_t_sign():
    expression, labels, _ = _planted()
    t = welch_t(expression.to_numpy(), labels.to_numpy())
    assert np.all(t[:4] > 0)


def test_sam_qvalues_monotone_in_statistic():
    rng = np.random.RandomState(1)
    d = np.concatenate([rng.normal(size=50), [6.0, 7.0, 8.0]])
    perm = rng.normal(size=(100, len(d)))
    q = SAMMethod.qvalues(d, perm)

    order = np.argsort(-np.abs(d))
    assert np.all(np.diff(q[order]) >= -1e-12)
    assert np.all(q[-3:] < 0.05)


def test_trigamma_inverse():
    from scipy import special
    for x in [0.1, 1.0, 5.0]:
        y = ModeratedTMethod.trigamma_inverse(x)
        assert special.polygamma(1, y) == pytest.approx(x, rel=1e-6)


def test_maxt_adjusted_pvalues_bounded():
    expression, labels, _ = _planted()
    adjusted = MaxTMethod.adjusted_pvalues(
        expression.to_numpy(), labels.to_numpy(), 50, np.random.RandomState(0)
    )
    assert np.all((adjusted >= 0) & (adjusted <= 1))


def test_build_method_uses_config():
    config = SignatureConfig(sam_fdr=0.1, de_alpha=0.01, sam_perm=20, mult_perm=30)
    sam = build_method("sam", config)
    maxt = build_method("maxt", config)

    assert sam.fdr == 0.1 and sam.default_permutations == 20
    assert maxt.alpha == 0.01 and maxt.default_permutations == 30
    assert isinstance(build_method("welch_bh", config), WelchBHMethod)
    with pytest.raises(ValueError):
        build_method("limma_voom", config)
