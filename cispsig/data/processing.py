"""
Data processing pipelines for cispsig.

Handles:
- Drug-response aggregation and log2 conversion
- Sample identifier harmonization between response and expression tables
- Gene-space intersection between cell-line and tumor datasets
- Cross-validation fold generation
"""

import logging
from dataclasses import dataclass
from typing import Optional, List, Tuple, Sequence

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold

from .datasets import CellLineDataset
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DataProcessor:
    """
    Main data processor for cispsig.

    Joins GDSC drug response with cell-line expression and aligns the gene
    space with an independent tumor expression dataset.
    """

    def __init__(
        self,
        response_loader,
        expression_loader,
        tumor_loader=None,
        tumor_log_transform: bool = False,
    ):
        """
        Initialize with data loaders.

        Args:
            response_loader: GDSCResponseLoader instance
            expression_loader: GDSCExpressionLoader instance
            tumor_loader: TumorExpressionLoader instance (optional)
            tumor_log_transform: Apply log2(x + 1) to tumor expression
        """
        self.response_loader = response_loader
        self.expression_loader = expression_loader
        self.tumor_loader = tumor_loader
        self.tumor_log_transform = tumor_log_transform

    def process(self) -> Tuple[CellLineDataset, Optional[pd.DataFrame]]:
        """
        Process and harmonize all data sources.

        Returns:
            Tuple of (cell-line dataset, tumor expression or None)
        """
        logger.info("Processing cispsig data...")

        responses = self.aggregate_responses(self.response_loader.load())
        expression = self.clean_expression(self.expression_loader.load())
        cell_lines = self.join(responses, expression)

        tumor = None
        if self.tumor_loader is not None:
            tumor = self.clean_expression(self.tumor_loader.load())
            if self.tumor_log_transform:
                tumor = np.log2(tumor + 1)
            cell_lines, tumor = harmonize_gene_space(cell_lines, tumor)

        logger.info(f"Processed {len(cell_lines)} cell lines x {len(cell_lines.genes)} genes")
        return cell_lines, tumor

    @staticmethod
    def aggregate_responses(responses: pd.DataFrame) -> pd.DataFrame:
        """
        Collapse duplicate measurements and convert LN_IC50 to log2.

        Args:
            responses: Columns COSMIC_ID, LN_IC50 and optionally AUC

        Returns:
            DataFrame indexed by sample id with columns response[, auc]
        """
        responses = responses.dropna(subset=["COSMIC_ID", "LN_IC50"]).copy()
        responses["COSMIC_ID"] = responses["COSMIC_ID"].astype(int).astype(str)

        n_dup = responses["COSMIC_ID"].duplicated().sum()
        if n_dup:
            logger.info(f"Averaging {n_dup} duplicate response measurements")

        value_cols = ["LN_IC50"] + (["AUC"] if "AUC" in responses.columns else [])
        grouped = responses.groupby("COSMIC_ID")[value_cols].mean()

        out = pd.DataFrame(index=grouped.index)
        out["response"] = grouped["LN_IC50"] / np.log(2)
        if "AUC" in grouped.columns:
            out["auc"] = grouped["AUC"]
        out.index.name = None
        return out

    @staticmethod
    def clean_expression(expression: pd.DataFrame) -> pd.DataFrame:
        """Collapse duplicate gene symbols by mean and drop incomplete genes."""
        expression = expression.copy()
        expression.index = expression.index.astype(str)
        expression.columns = expression.columns.astype(str)

        if expression.columns.has_duplicates:
            n_dup = expression.columns.duplicated().sum()
            logger.info(f"Collapsing {n_dup} duplicate gene columns")
            expression = expression.T.groupby(level=0).mean().T

        if expression.index.has_duplicates:
            expression = expression.groupby(level=0).mean()

        incomplete = expression.columns[expression.isna().any()]
        if len(incomplete):
            logger.info(f"Dropping {len(incomplete)} genes with missing values")
            expression = expression.drop(columns=incomplete)

        return expression

    @staticmethod
    def join(responses: pd.DataFrame, expression: pd.DataFrame) -> CellLineDataset:
        """Inner-join responses with expression on sample id."""
        common = responses.index.intersection(expression.index).sort_values()
        if len(common) == 0:
            raise ConfigurationError("No cell lines shared by response and expression data")

        logger.info(
            f"Matched {len(common)} cell lines "
            f"({len(responses)} with response, {len(expression)} with expression)"
        )
        responses = responses.loc[common]
        return CellLineDataset(
            response=responses["response"],
            expression=expression.loc[common],
            auc=responses["auc"] if "auc" in responses.columns else None,
        )


def harmonize_gene_space(
    cell_lines: CellLineDataset,
    tumor: pd.DataFrame,
) -> Tuple[CellLineDataset, pd.DataFrame]:
    """
    Restrict both datasets to their shared genes.

    Computed once upstream of extraction; folds never re-derive it.

    Args:
        cell_lines: Cleaned cell-line dataset
        tumor: Tumor expression (samples x genes)

    Returns:
        Tuple of (cell_lines, tumor) over identical, sorted gene columns
    """
    shared = sorted(set(cell_lines.genes) & set(tumor.columns))
    if len(shared) < 2:
        raise ConfigurationError(
            f"Cell-line and tumor datasets share only {len(shared)} genes"
        )

    logger.info(
        f"Gene space: {len(shared)} shared "
        f"(cell lines {len(cell_lines.genes)}, tumor {tumor.shape[1]})"
    )
    return cell_lines.restrict_genes(shared), tumor.loc[:, shared]


@dataclass(frozen=True)
class Fold:
    """One cross-validation partition: held-out ids and the training remainder."""
    index: int
    test_ids: Tuple[str, ...]
    train_ids: Tuple[str, ...]

    @property
    def name(self) -> str:
        return f"fold_{self.index}"


class FoldPartitioner:
    """
    Split a cohort into balanced, disjoint folds.

    The cohort is shuffled with a fixed seed and cut into n contiguous blocks,
    so block sizes differ by at most one and identical seed + input order give
    identical folds.
    """

    def __init__(self, n_folds: int = 5, random_state: int = 42):
        self.n_folds = n_folds
        self.random_state = random_state

    def split(self, sample_ids: Sequence[str]) -> List[Fold]:
        """
        Partition sample ids into folds.

        Args:
            sample_ids: Cohort sample identifiers

        Returns:
            List of Fold objects, one per held-out block
        """
        ids = np.asarray(list(sample_ids), dtype=object)

        if len(set(ids)) != len(ids):
            raise ConfigurationError("Duplicate sample identifiers in cohort")
        if self.n_folds < 2:
            raise ConfigurationError(f"n_folds must be at least 2, got {self.n_folds}")
        if self.n_folds > len(ids):
            raise ConfigurationError(
                f"n_folds={self.n_folds} exceeds cohort size {len(ids)}"
            )

        kf = KFold(n_splits=self.n_folds, shuffle=True, random_state=self.random_state)

        folds = []
        for i, (train_idx, test_idx) in enumerate(kf.split(ids)):
            folds.append(Fold(
                index=i,
                test_ids=tuple(ids[test_idx]),
                train_ids=tuple(ids[train_idx]),
            ))

        logger.info(
            f"Partitioned {len(ids)} samples into {self.n_folds} folds "
            f"(sizes {[len(f.test_ids) for f in folds]})"
        )
        return folds
