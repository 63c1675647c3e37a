"""
Majority-vote consolidation of per-fold gene sets into the signature.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence, Iterable, FrozenSet

import pandas as pd

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class ConsolidatedSignature:
    """Genes kept by majority vote plus the tally behind the decision."""
    genes: FrozenSet[str]
    occurrences: pd.Series
    n_folds: int

    @property
    def min_count(self) -> int:
        """Smallest occurrence count that passes the strict-majority rule."""
        return self.n_folds // 2 + 1

    def __len__(self) -> int:
        return len(self.genes)

    def __contains__(self, gene) -> bool:
        return gene in self.genes


def consolidate_signature(
    gene_sets: Sequence[Iterable[str]],
    n_folds: Optional[int] = None,
) -> ConsolidatedSignature:
    """
    Keep genes occurring in more than half of the folds.

    Args:
        gene_sets: One connectivity-filtered gene set per fold
        n_folds: Number of folds voting (defaults to len(gene_sets))

    Returns:
        ConsolidatedSignature
    """
    n_folds = len(gene_sets) if n_folds is None else n_folds
    if n_folds < 1:
        raise ConfigurationError("Cannot consolidate zero folds")
    if len(gene_sets) > n_folds:
        raise ConfigurationError(
            f"Got {len(gene_sets)} gene sets for {n_folds} folds"
        )

    counts = Counter()
    for genes in gene_sets:
        counts.update(set(genes))

    occurrences = pd.Series(dict(counts), dtype=int, name="occurrences")
    occurrences = occurrences.sort_index().sort_values(ascending=False, kind="mergesort")

    kept = frozenset(g for g, c in counts.items() if c > n_folds / 2)
    logger.debug(f"Majority vote over {n_folds} folds kept {len(kept)} of {len(counts)} genes")

    return ConsolidatedSignature(genes=kept, occurrences=occurrences, n_folds=n_folds)
