"""
Utilities for cispsig.

Provides:
- Signature scoring (median of per-gene z-scores)
- Evaluation metrics (held-out AUROC, Spearman, Jaccard stability)
"""

from .scoring import (
    compute_signature_score,
    standardize,
)
from .metrics import (
    compute_auroc,
    compute_spearman,
    holdout_metrics,
    jaccard_index,
    pairwise_jaccard,
)

__all__ = [
    "compute_signature_score",
    "standardize",
    "compute_auroc",
    "compute_spearman",
    "holdout_metrics",
    "jaccard_index",
    "pairwise_jaccard",
]
