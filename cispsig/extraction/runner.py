"""
Cross-validated signature extraction.

Runs the full pipeline for one configuration:

    partition -> per fold (DE consensus -> co-expression filter) -> majority vote

Folds are independent; they run sequentially or on a thread pool and only
share read-only inputs (cohort, co-expression network, configuration).
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional, Dict, List, FrozenSet, Any

import pandas as pd
from tqdm import tqdm

from ..config import SignatureConfig
from ..data.datasets import CellLineDataset
from ..data.processing import Fold, FoldPartitioner
from ..exceptions import ConfigurationError, IncompleteFoldsError, MethodFailure
from ..signature.coexpression import (
    CoexpressionNetwork,
    CoexpressionPropagator,
    ConnectivityResult,
)
from ..signature.consensus import DEConsensusEngine, SeedGenes
from ..signature.de_methods import DifferentialExpressionMethod
from ..signature.consolidation import ConsolidatedSignature, consolidate_signature
from ..utils.metrics import holdout_metrics

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"


@dataclass
class FoldResult:
    """Everything one fold produced, or why it failed."""
    fold: Fold
    status: str
    error: Optional[str] = None
    failed_method: Optional[str] = None
    seeds: Optional[SeedGenes] = None
    up: Optional[ConnectivityResult] = None
    down: Optional[ConnectivityResult] = None
    holdout: Dict[str, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    @property
    def signature_genes(self) -> FrozenSet[str]:
        """Connectivity-filtered up genes (the fold's vote)."""
        return self.up.kept if self.up is not None else frozenset()

    @property
    def down_genes(self) -> FrozenSet[str]:
        return self.down.kept if self.down is not None else frozenset()

    def counts(self) -> Dict[str, int]:
        """Gene counts at every stage of the fold."""
        counts = {
            "n_train": len(self.fold.train_ids),
            "n_test": len(self.fold.test_ids),
        }
        if self.seeds is not None:
            counts.update(self.seeds.labels.counts())
            counts.update(self.seeds.counts())
        if self.up is not None:
            counts["up_kept"] = len(self.up.kept)
            counts["up_missing"] = len(self.up.missing_seeds)
        if self.down is not None:
            counts["down_kept"] = len(self.down.kept)
            counts["down_missing"] = len(self.down.missing_seeds)
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fold": self.fold.index,
            "status": self.status,
            "error": self.error,
            "failed_method": self.failed_method,
            "counts": self.counts(),
            "holdout": {k: _json_number(v) for k, v in self.holdout.items()},
            "up_genes": sorted(self.signature_genes),
            "down_genes": sorted(self.down_genes),
        }


@dataclass
class SignatureResult:
    """Final signature with the per-fold evidence behind it."""
    signature: FrozenSet[str]
    down_signature: FrozenSet[str]
    consolidated: ConsolidatedSignature
    down_consolidated: ConsolidatedSignature
    fold_results: List[FoldResult]
    config: SignatureConfig
    excluded_genes: List[str] = field(default_factory=list)

    @property
    def completed_folds(self) -> List[FoldResult]:
        return [r for r in self.fold_results if r.ok]

    @property
    def failed_folds(self) -> List[FoldResult]:
        return [r for r in self.fold_results if not r.ok]

    def summary(self) -> pd.DataFrame:
        """One row per fold: status, stage counts and held-out metrics."""
        rows = []
        for r in self.fold_results:
            row = {"fold": r.fold.index, "status": r.status}
            row.update(r.counts())
            row.update(r.holdout)
            rows.append(row)
        return pd.DataFrame(rows).set_index("fold")

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready report."""
        return {
            "config": self.config.to_dict(),
            "config_tag": self.config.tag(),
            "signature": sorted(self.signature),
            "signature_size": len(self.signature),
            "down_signature": sorted(self.down_signature),
            "n_folds_voting": self.consolidated.n_folds,
            "min_count": self.consolidated.min_count,
            "occurrences": {g: int(c) for g, c in self.consolidated.occurrences.items()},
            "down_occurrences": {g: int(c) for g, c in self.down_consolidated.occurrences.items()},
            "excluded_network_genes": list(self.excluded_genes),
            "folds": [r.to_dict() for r in self.fold_results],
        }


def _json_number(value):
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


class SignatureExtractor:
    """
    Orchestrates signature extraction over cross-validation folds.

    Args:
        config: SignatureConfig for the run
        artifact_store: Optional ArtifactStore receiving per-fold artifacts
        methods: Override of DE method name -> method (defaults from config)
        show_progress: Show a tqdm progress bar over folds
    """

    def __init__(
        self,
        config: SignatureConfig,
        artifact_store=None,
        methods: Optional[Dict[str, DifferentialExpressionMethod]] = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.artifact_store = artifact_store
        self.methods = methods
        self.show_progress = show_progress

    def run(self, cell_lines: CellLineDataset, tumor: pd.DataFrame) -> SignatureResult:
        """
        Extract the signature.

        Args:
            cell_lines: Cleaned cell-line cohort (gene space already harmonized)
            tumor: Tumor expression (samples x genes) over the same genes

        Returns:
            SignatureResult

        Raises:
            ConfigurationError: invalid parameters or mismatched gene spaces
            InsufficientDataError: a fold has too few labelled samples
            DegenerateAffinityError: co-expression network cannot be built
            MethodFailure: a DE method failed and fail_fast is set
            IncompleteFoldsError: folds failed and drop_failed_folds is not set
        """
        config = self.config.validate()
        logger.info(f"Extracting {config.drug_name} signature (config {config.tag()})")
        logger.info(f"Configuration: {config.to_dict()}")

        self._check_gene_space(cell_lines, tumor)

        network = CoexpressionNetwork.from_expression(tumor)
        propagator = CoexpressionPropagator(
            network,
            affinity_sig_perc=config.affinity_sig_perc,
            conn_cutoff_perc=config.conn_cutoff_perc,
        )
        engine = DEConsensusEngine(config, methods=self.methods)

        folds = FoldPartitioner(config.n_folds, config.random_state).split(cell_lines.sample_ids)
        logger.info(f"Partitioned {len(cell_lines)} cell lines into {len(folds)} folds")

        fold_results = self._map_folds(folds, cell_lines, engine, propagator)

        if self.artifact_store is not None:
            self.artifact_store.save_folds(fold_results, network.genes)

        result = self._consolidate(fold_results, network.excluded_genes)

        if self.artifact_store is not None:
            self.artifact_store.save_result(result)

        return result

    def run_fold(
        self,
        fold: Fold,
        cell_lines: CellLineDataset,
        engine: DEConsensusEngine,
        propagator: CoexpressionPropagator,
    ) -> FoldResult:
        """Seed genes, connectivity filter and held-out metrics for one fold."""
        training = cell_lines.subset(fold.train_ids)

        try:
            seeds = engine.run(training, fold_index=fold.index)
        except MethodFailure as e:
            if self.config.fail_fast:
                raise
            logger.error(f"Fold {fold.index} failed: {e}")
            return FoldResult(
                fold=fold, status=STATUS_FAILED, error=str(e), failed_method=e.method,
            )

        up = propagator.filter(seeds.up)
        down = propagator.filter(seeds.down)

        held_out = cell_lines.subset(fold.test_ids)
        holdout = holdout_metrics(
            held_out.expression,
            held_out.response,
            up.kept,
            seeds.labels.low_threshold,
            seeds.labels.high_threshold,
        )

        result = FoldResult(
            fold=fold, status=STATUS_OK, seeds=seeds, up=up, down=down, holdout=holdout,
        )
        counts = ", ".join(f"{k}={v}" for k, v in result.counts().items())
        logger.info(f"Fold {fold.index}: {counts}")
        logger.info(
            f"Fold {fold.index} held-out: AUROC={holdout['holdout_auroc']:.3f}, "
            f"Spearman={holdout['holdout_spearman']:.3f}"
        )
        return result

    def _map_folds(self, folds, cell_lines, engine, propagator) -> List[FoldResult]:
        def work(fold):
            return self.run_fold(fold, cell_lines, engine, propagator)

        disable = not self.show_progress
        if self.config.n_jobs > 1 and len(folds) > 1:
            workers = min(self.config.n_jobs, len(folds))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(tqdm(executor.map(work, folds), total=len(folds),
                                    desc="Folds", disable=disable))
        else:
            results = [work(fold) for fold in tqdm(folds, desc="Folds", disable=disable)]

        return sorted(results, key=lambda r: r.fold.index)

    def _consolidate(self, fold_results: List[FoldResult], excluded_genes) -> SignatureResult:
        completed = [r for r in fold_results if r.ok]
        failed = [r for r in fold_results if not r.ok]

        if failed:
            detail = "; ".join(r.error for r in failed)
            if not self.config.drop_failed_folds:
                raise IncompleteFoldsError(
                    f"{len(failed)} of {len(fold_results)} folds failed: {detail}"
                )
            if not completed:
                raise IncompleteFoldsError(f"All {len(fold_results)} folds failed: {detail}")
            logger.warning(
                f"Dropping {len(failed)} failed folds; voting over {len(completed)} completed folds"
            )

        consolidated = consolidate_signature(
            [r.signature_genes for r in completed], n_folds=len(completed),
        )
        down_consolidated = consolidate_signature(
            [r.down_genes for r in completed], n_folds=len(completed),
        )

        logger.info(
            f"Signature: {len(consolidated)} genes in more than {len(completed) / 2:g} "
            f"of {len(completed)} folds: {sorted(consolidated.genes)}"
        )
        logger.info(f"Down-regulated branch: {len(down_consolidated)} genes")

        return SignatureResult(
            signature=consolidated.genes,
            down_signature=down_consolidated.genes,
            consolidated=consolidated,
            down_consolidated=down_consolidated,
            fold_results=fold_results,
            config=self.config,
            excluded_genes=list(excluded_genes),
        )

    @staticmethod
    def _check_gene_space(cell_lines: CellLineDataset, tumor: pd.DataFrame) -> None:
        cell_genes = set(cell_lines.genes)
        tumor_genes = set(tumor.columns)
        if cell_genes != tumor_genes:
            only_cells = len(cell_genes - tumor_genes)
            only_tumor = len(tumor_genes - cell_genes)
            raise ConfigurationError(
                f"Cell-line and tumor gene spaces differ ({only_cells} genes only in "
                f"cell lines, {only_tumor} only in tumors); run harmonize_gene_space first"
            )
