"""
Synthetic cohorts with a planted sensitivity signal.

Used by the test suite and by `main.py extract --synthetic` to exercise the
full pipeline without downloading public data.

Gene layout (defaults):
- SIG0..SIG2: shifted in the sensitive quintile AND co-expressed in tumors
- SIG3..SIG4: shifted in the sensitive quintile only
- COEX0..COEX2: co-expressed with SIG0..SIG2 in tumors, no response signal
- NOISE0..NOISE11: pure noise
"""

from typing import Optional, Tuple, List

import numpy as np
import pandas as pd

from .datasets import CellLineDataset


def planted_gene_names(
    n_coexpressed_signal: int = 3,
    n_signal_only: int = 2,
    n_coexpressed_decoy: int = 3,
    n_noise: int = 12,
) -> Tuple[List[str], List[str], List[str], List[str]]:
    """Gene names of each planted group (coexpressed signal, signal only, decoy, noise)."""
    n_signal = n_coexpressed_signal + n_signal_only
    signal = [f"SIG{i}" for i in range(n_signal)]
    return (
        signal[:n_coexpressed_signal],
        signal[n_coexpressed_signal:],
        [f"COEX{i}" for i in range(n_coexpressed_decoy)],
        [f"NOISE{i}" for i in range(n_noise)],
    )


def make_planted_cohort(
    n_samples: int = 100,
    shift: float = 2.0,
    sensitive_fraction: float = 0.2,
    random_state: Optional[int] = 0,
    **layout,
) -> CellLineDataset:
    """
    Cell-line cohort where signal genes are raised by `shift` SDs in the
    most sensitive fraction (lowest response).

    Args:
        n_samples: Number of cell lines
        shift: Mean shift (in noise SD units) of signal genes
        sensitive_fraction: Fraction of lowest responders carrying the shift
        random_state: Seed
        **layout: Group sizes passed to planted_gene_names

    Returns:
        CellLineDataset with log2-scale responses
    """
    rng = np.random.RandomState(random_state)
    coexp_signal, signal_only, decoy, noise = planted_gene_names(**layout)
    genes = coexp_signal + signal_only + decoy + noise
    sample_ids = [f"CL{i:03d}" for i in range(n_samples)]

    response = pd.Series(rng.normal(2.0, 1.5, n_samples), index=sample_ids)
    expression = pd.DataFrame(
        rng.normal(0.0, 1.0, (n_samples, len(genes))),
        index=sample_ids,
        columns=genes,
    )

    cut = np.quantile(response.values, sensitive_fraction)
    sensitive = response.values <= cut
    for gene in coexp_signal + signal_only:
        expression.loc[sensitive, gene] += shift

    auc = pd.Series(1.0 / (1.0 + np.exp(-response.values)), index=sample_ids)
    return CellLineDataset(response=response, expression=expression, auc=auc)


def make_tumor_expression(
    n_samples: int = 200,
    signal_noise: float = 0.1,
    decoy_noise: float = 0.6,
    random_state: Optional[int] = 1,
    **layout,
) -> pd.DataFrame:
    """
    Tumor expression (samples x genes) with one co-expression module.

    SIG0..SIG2 track a shared latent factor tightly; COEX genes track it
    loosely; all other genes are independent.
    """
    rng = np.random.RandomState(random_state)
    coexp_signal, signal_only, decoy, noise = planted_gene_names(**layout)
    genes = coexp_signal + signal_only + decoy + noise

    data = pd.DataFrame(
        rng.normal(0.0, 1.0, (n_samples, len(genes))),
        index=[f"TUMOR{i:04d}" for i in range(n_samples)],
        columns=genes,
    )

    latent = rng.normal(0.0, 1.0, n_samples)
    for gene in coexp_signal:
        data[gene] = latent + signal_noise * rng.normal(0.0, 1.0, n_samples)
    for gene in decoy:
        data[gene] = latent + decoy_noise * rng.normal(0.0, 1.0, n_samples)

    return data
