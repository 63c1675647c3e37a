"""
Evaluation metrics for cispsig.

Provides:
- Held-out classification (AUROC) and rank-correlation metrics
- Signature stability (Jaccard similarity)
"""

import logging
from itertools import combinations
from typing import Dict, Iterable, List, Sequence, Union

import numpy as np
import pandas as pd
from scipy.stats import spearmanr
from sklearn.metrics import roc_auc_score

from .scoring import compute_signature_score
from ..signature.labels import SENSITIVE, RESISTANT, label_with_thresholds

logger = logging.getLogger(__name__)


def compute_auroc(
    y_true: Union[np.ndarray, pd.Series],
    y_pred: Union[np.ndarray, pd.Series],
) -> float:
    """
    Compute Area Under ROC Curve.

    Args:
        y_true: True binary labels
        y_pred: Predicted scores

    Returns:
        AUROC score (0.5 when only one class is present)
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred, dtype=float)

    # Handle edge cases
    if len(np.unique(y_true)) < 2:
        return 0.5

    return float(roc_auc_score(y_true, y_pred))


def compute_spearman(x: Union[np.ndarray, pd.Series], y: Union[np.ndarray, pd.Series]) -> float:
    """Spearman correlation; NaN when either input is constant or too short."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) < 3 or np.all(x == x[0]) or np.all(y == y[0]):
        return float("nan")
    rho, _ = spearmanr(x, y)
    return float(rho)


def holdout_metrics(
    expression: pd.DataFrame,
    response: pd.Series,
    genes: Iterable[str],
    low_threshold: float,
    high_threshold: float,
) -> Dict[str, float]:
    """
    Evaluate a fold's signature on its held-out samples.

    Held-out samples are labelled with the training cut points, scored with
    the signature, and compared against those labels (AUROC, sensitive = 1)
    and against the raw response (Spearman).

    Args:
        expression: Held-out expression (samples x genes)
        response: Held-out log2 response
        genes: Signature genes of the fold
        low_threshold: Sensitive cut point from training
        high_threshold: Resistant cut point from training

    Returns:
        Dictionary with holdout_auroc, holdout_spearman and sample counts
    """
    labels = label_with_thresholds(response, low_threshold, high_threshold)
    labelled = labels[labels.isin([SENSITIVE, RESISTANT])]

    metrics = {
        "holdout_n": int(len(response)),
        "holdout_sensitive": int((labelled == SENSITIVE).sum()),
        "holdout_resistant": int((labelled == RESISTANT).sum()),
        "holdout_auroc": 0.5,
        "holdout_spearman": float("nan"),
    }

    genes = [g for g in genes if g in expression.columns]
    if not genes:
        return metrics

    scores = compute_signature_score(expression, genes)
    metrics["holdout_spearman"] = compute_spearman(scores.loc[response.index], response)
    if len(labelled):
        y_true = (labelled == SENSITIVE).astype(int)
        metrics["holdout_auroc"] = compute_auroc(y_true, scores.loc[labelled.index])

    return metrics


def jaccard_index(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard similarity of two gene sets; two empty sets count as identical."""
    a, b = set(a), set(b)
    union = a | b
    if not union:
        return 1.0
    return len(a & b) / len(union)


def pairwise_jaccard(signatures: Sequence[Iterable[str]]) -> List[float]:
    """Jaccard index for every pair of signatures."""
    return [jaccard_index(a, b) for a, b in combinations(signatures, 2)]
