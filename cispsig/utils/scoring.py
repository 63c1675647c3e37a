"""
Signature scoring.

A sample's score is the median, over signature genes, of each gene's
expression standardised within the scored sample set. Scores therefore
depend on which samples are scored together and are not comparable across
differently filtered sample sets.
"""

import logging
from typing import Iterable

import pandas as pd
from sklearn.preprocessing import StandardScaler

logger = logging.getLogger(__name__)


def standardize(expression: pd.DataFrame) -> pd.DataFrame:
    """Z-score every column (population SD); constant columns become 0."""
    scaler = StandardScaler()
    z = scaler.fit_transform(expression.to_numpy(dtype=float))
    return pd.DataFrame(z, index=expression.index, columns=expression.columns)


def compute_signature_score(
    expression: pd.DataFrame,
    genes: Iterable[str],
) -> pd.Series:
    """
    Score samples with a gene signature.

    Args:
        expression: Expression table (samples x genes)
        genes: Signature gene identifiers

    Returns:
        Series of scores indexed like `expression`

    Raises:
        ValueError: none of the genes is present in the table
    """
    genes = list(dict.fromkeys(genes))
    present = [g for g in genes if g in expression.columns]
    missing = len(genes) - len(present)
    if missing:
        logger.warning(f"{missing} of {len(genes)} signature genes missing from expression table")
    if not present:
        raise ValueError("None of the signature genes are present in the expression table")

    z = standardize(expression.loc[:, present])
    return z.median(axis=1).rename("signature_score")
