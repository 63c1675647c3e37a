"""
Co-expression propagation.

A Spearman gene-gene affinity matrix is built once from an independent
tumor expression dataset. For each fold, the seed genes define a binary
membership matrix (strong co-expression with a seed) whose column means give
every gene a connectivity score; seeds are kept only if their own
connectivity ranks in the top fraction of all genes.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, FrozenSet

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from ..exceptions import DegenerateAffinityError

logger = logging.getLogger(__name__)


class CoexpressionNetwork:
    """
    Read-only Spearman affinity structure over genes.

    Self-correlations are stored as NaN so they never enter percentile or
    connectivity computations.
    """

    def __init__(self, affinity: np.ndarray, genes: List[str], excluded_genes: List[str] = None):
        """Wrap a float affinity matrix without copying it; the array is made read-only."""
        if affinity.shape != (len(genes), len(genes)):
            raise ValueError("Affinity matrix shape does not match gene list")
        self._affinity = np.asarray(affinity, dtype=float)
        self._affinity.setflags(write=False)
        self.genes = list(genes)
        self.excluded_genes = list(excluded_genes or [])
        self._position = {g: i for i, g in enumerate(self.genes)}

    @property
    def values(self) -> np.ndarray:
        return self._affinity

    def __len__(self) -> int:
        return len(self.genes)

    def __contains__(self, gene) -> bool:
        return gene in self._position

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self._affinity, index=self.genes, columns=self.genes)

    def rows(self, genes: Iterable[str]) -> np.ndarray:
        """Affinity rows for the given genes against all genes."""
        idx = [self._position[g] for g in genes]
        return self._affinity[idx, :]

    @classmethod
    def from_expression(cls, expression: pd.DataFrame) -> "CoexpressionNetwork":
        """
        Build the network from tumor expression (samples x genes).

        Constant genes and genes with missing values have undefined rank
        correlations; they are excluded instead of failing the run.

        Raises:
            DegenerateAffinityError: fewer than two usable genes remain
        """
        if expression.shape[0] < 3:
            raise DegenerateAffinityError(
                f"Need at least 3 tumor samples, got {expression.shape[0]}"
            )

        values = expression.to_numpy(dtype=float)
        incomplete = ~np.all(np.isfinite(values), axis=0)
        with np.errstate(invalid="ignore"):
            constant = np.nanstd(values, axis=0) == 0
        bad = incomplete | constant

        excluded = list(expression.columns[bad])
        if excluded:
            logger.warning(
                f"Excluding {len(excluded)} constant or incomplete genes from the "
                f"co-expression network (e.g. {excluded[:5]})"
            )

        genes = list(expression.columns[~bad])
        if len(genes) < 2:
            raise DegenerateAffinityError(
                f"Only {len(genes)} non-constant genes available for co-expression"
            )

        ranks = rankdata(values[:, ~bad], axis=0)
        corr = np.corrcoef(ranks, rowvar=False)
        corr += corr.T
        corr /= 2.0
        np.fill_diagonal(corr, np.nan)

        logger.info(f"Built co-expression network over {len(genes)} genes "
                    f"from {expression.shape[0]} tumor samples")
        return cls(corr, genes, excluded)


@dataclass
class ConnectivityResult:
    """Outcome of the connectivity filter for one fold and direction."""
    seed_genes: List[str]
    missing_seeds: List[str]
    membership: pd.DataFrame
    connectivity: pd.Series
    membership_threshold: float
    connectivity_cutoff: float
    kept: FrozenSet[str]

    def counts(self) -> dict:
        return {
            "seeds_in_network": len(self.seed_genes),
            "seeds_missing": len(self.missing_seeds),
            "kept": len(self.kept),
        }


class CoexpressionPropagator:
    """
    Filter seed genes by their co-expression connectivity.

    Args:
        network: Shared CoexpressionNetwork
        affinity_sig_perc: Fraction of strongest seed affinities counted as members
        conn_cutoff_perc: Top fraction of connectivity scores a seed must reach
    """

    def __init__(
        self,
        network: CoexpressionNetwork,
        affinity_sig_perc: float = 0.05,
        conn_cutoff_perc: float = 0.20,
    ):
        self.network = network
        self.affinity_sig_perc = affinity_sig_perc
        self.conn_cutoff_perc = conn_cutoff_perc

    def membership(self, seed_genes: List[str]):
        """
        Binarised seed x gene membership matrix.

        Returns:
            (membership DataFrame with NaN on self pairs, threshold)
        """
        rows = self.network.rows(seed_genes)
        finite = rows[np.isfinite(rows)]
        if finite.size == 0:
            threshold = np.nan
            member = np.full(rows.shape, np.nan)
        else:
            threshold = float(np.quantile(finite, 1.0 - self.affinity_sig_perc))
            member = np.where(np.isfinite(rows), (rows >= threshold).astype(float), np.nan)

        return pd.DataFrame(member, index=seed_genes, columns=self.network.genes), threshold

    @staticmethod
    def connectivity(membership: pd.DataFrame) -> pd.Series:
        """Mean membership per gene over seeds, self pairs excluded; undefined -> 0."""
        values = membership.to_numpy()
        defined = np.isfinite(values)
        n_defined = defined.sum(axis=0)
        totals = np.where(defined, values, 0.0).sum(axis=0)
        with np.errstate(invalid="ignore", divide="ignore"):
            scores = np.where(n_defined > 0, totals / np.maximum(n_defined, 1), 0.0)
        return pd.Series(scores, index=membership.columns, name="connectivity")

    def filter(self, seeds: Iterable[str]) -> ConnectivityResult:
        """
        Keep seeds whose connectivity reaches the (1 - conn_cutoff_perc)
        quantile of all genes' connectivity.
        """
        seeds = sorted(set(seeds))
        present = [g for g in seeds if g in self.network]
        missing = [g for g in seeds if g not in self.network]
        if missing:
            logger.info(f"{len(missing)} seed genes absent from the co-expression network")

        if not present:
            empty = pd.DataFrame(columns=self.network.genes, dtype=float)
            zeros = pd.Series(0.0, index=self.network.genes, name="connectivity")
            return ConnectivityResult(
                seed_genes=[], missing_seeds=missing, membership=empty,
                connectivity=zeros, membership_threshold=np.nan,
                connectivity_cutoff=np.nan, kept=frozenset(),
            )

        membership, threshold = self.membership(present)
        connectivity = self.connectivity(membership)
        cutoff = float(np.quantile(connectivity.to_numpy(), 1.0 - self.conn_cutoff_perc))

        if cutoff <= connectivity.min():
            logger.debug("Connectivity cutoff equals the minimum score; every seed passes")

        kept = frozenset(g for g in present if connectivity[g] >= cutoff)
        return ConnectivityResult(
            seed_genes=present,
            missing_seeds=missing,
            membership=membership,
            connectivity=connectivity,
            membership_threshold=threshold,
            connectivity_cutoff=cutoff,
            kept=kept,
        )
