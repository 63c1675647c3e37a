"""Shared fixtures: planted-signal cohorts and a fast configuration."""

import numpy as np
import pandas as pd
import pytest

from cispsig.config import SignatureConfig
from cispsig.data import make_planted_cohort, make_tumor_expression, planted_gene_names
from cispsig.signature.de_methods import WelchBHMethod


@pytest.fixture
def planted_groups():
    """(coexpressed signal, signal only, decoy, noise) gene names."""
    return planted_gene_names()


@pytest.fixture
def cell_lines():
    return make_planted_cohort(n_samples=100, random_state=0)


@pytest.fixture
def tumor():
    return make_tumor_expression(n_samples=200, random_state=1)


@pytest.fixture
def fast_config():
    return SignatureConfig(sam_perm=50, mult_perm=200)


@pytest.fixture
def random_expression():
    """Independent random tumor-like expression (samples x genes)."""
    rng = np.random.RandomState(7)
    genes = [f"G{i}" for i in range(30)]
    return pd.DataFrame(
        rng.normal(size=(60, len(genes))),
        index=[f"S{i}" for i in range(60)],
        columns=genes,
    )


class FlakyWelch(WelchBHMethod):
    """Fails whenever a given sample is missing from the labelled matrix."""

    def __init__(self, required_sample):
        super().__init__(alpha=0.05)
        self.required_sample = required_sample

    def run(self, expression, labels, budget=None, random_state=None):
        if self.required_sample not in expression.columns:
            raise RuntimeError(f"{self.required_sample} not labelled")
        return super().run(expression, labels, budget, random_state)


@pytest.fixture
def flaky_methods(cell_lines):
    """DE methods failing in exactly the fold holding out the most sensitive line."""
    return {"welch_bh": FlakyWelch(cell_lines.response.idxmin())}
