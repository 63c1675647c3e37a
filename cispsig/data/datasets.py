"""
Dataset containers for cispsig.

Provides:
- CellLineDataset: cleaned cell-line cohort (drug response + expression)
"""

import logging
from pathlib import Path
from typing import Optional, List, Union

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RESPONSE_COLUMN = "response"
AUC_COLUMN = "auc"


class CellLineDataset:
    """
    Cleaned cell-line cohort for one drug-response experiment.

    Expression is held samples x genes; `response` is the log2 IC50 per
    sample. Lower response means more sensitive.
    """

    def __init__(
        self,
        response: pd.Series,
        expression: pd.DataFrame,
        auc: Optional[pd.Series] = None,
    ):
        """
        Initialize dataset.

        Args:
            response: Drug response per sample (log2 IC50)
            expression: Expression table (samples x genes)
            auc: Optional area-under-curve per sample
        """
        if not response.index.equals(expression.index):
            raise ConfigurationError("Response and expression sample indices differ")
        if response.index.has_duplicates:
            raise ConfigurationError("Duplicate sample identifiers in cell-line dataset")
        if response.isna().any():
            raise ConfigurationError("Missing drug-response values in cell-line dataset")
        if auc is not None and not auc.index.equals(response.index):
            raise ConfigurationError("AUC and response sample indices differ")

        self.response = response.astype(float).rename(RESPONSE_COLUMN)
        self.expression = expression.astype(float)
        self.auc = auc.astype(float).rename(AUC_COLUMN) if auc is not None else None

    def __len__(self) -> int:
        return len(self.response)

    @property
    def sample_ids(self) -> List[str]:
        return list(self.response.index)

    @property
    def genes(self) -> List[str]:
        return list(self.expression.columns)

    def subset(self, sample_ids) -> "CellLineDataset":
        """Restrict to the given samples (order preserved)."""
        ids = list(sample_ids)
        return CellLineDataset(
            response=self.response.loc[ids],
            expression=self.expression.loc[ids],
            auc=self.auc.loc[ids] if self.auc is not None else None,
        )

    def restrict_genes(self, genes) -> "CellLineDataset":
        """Restrict expression to the given genes."""
        return CellLineDataset(
            response=self.response,
            expression=self.expression.loc[:, list(genes)],
            auc=self.auc,
        )

    def to_frame(self) -> pd.DataFrame:
        """Fixed-schema table: response, [auc], then one column per gene."""
        parts = [self.response]
        if self.auc is not None:
            parts.append(self.auc)
        parts.append(self.expression)
        return pd.concat(parts, axis=1)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        response_col: str = RESPONSE_COLUMN,
        auc_col: Optional[str] = AUC_COLUMN,
    ) -> "CellLineDataset":
        """
        Build from a fixed-schema table.

        Args:
            df: Table indexed by sample id
            response_col: Column holding log2 drug response
            auc_col: Column holding AUC (ignored if absent)
        """
        if response_col not in df.columns:
            raise ConfigurationError(f"Missing response column '{response_col}'")

        has_auc = auc_col is not None and auc_col in df.columns
        meta_cols = [response_col] + ([auc_col] if has_auc else [])
        expression = df.drop(columns=meta_cols)

        non_numeric = [c for c in expression.columns
                       if not np.issubdtype(expression[c].dtype, np.number)]
        if non_numeric:
            raise ConfigurationError(f"Non-numeric expression columns: {non_numeric[:5]}")

        return cls(
            response=df[response_col],
            expression=expression,
            auc=df[auc_col] if has_auc else None,
        )

    @classmethod
    def from_csv(cls, path: Union[str, Path], **kwargs) -> "CellLineDataset":
        """Load a cleaned dataset written by DataProcessor."""
        df = pd.read_csv(path, index_col=0)
        df.index = df.index.astype(str)
        dataset = cls.from_frame(df, **kwargs)
        logger.info(f"Loaded {len(dataset)} cell lines x {len(dataset.genes)} genes from {path}")
        return dataset

    def to_csv(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(path)
