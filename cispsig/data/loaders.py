"""
Data loaders for cispsig.

Provides unified interfaces for loading:
- GDSC fitted dose response (IC50 / AUC for one drug)
- GDSC RMA-normalised basal cell-line expression
- Tumor expression atlases (genes in rows, e.g. TCGA pan-cancer from Xena)
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import pandas as pd

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """Base class for data loaders."""

    def __init__(self, data_dir: str, filename: str):
        self.data_dir = Path(data_dir)
        self.filename = filename
        self.data = None

    @property
    def path(self) -> Path:
        return self.data_dir / self.filename

    def _require(self) -> Path:
        if not self.path.exists():
            raise FileNotFoundError(
                f"{self.path} not found. Run `python main.py download` first "
                f"or place the file there manually."
            )
        return self.path

    @abstractmethod
    def load(self) -> pd.DataFrame:
        """Load the data."""
        pass

    @abstractmethod
    def validate(self) -> bool:
        """Validate the loaded data."""
        pass


class GDSCResponseLoader(BaseLoader):
    """
    Load GDSC fitted dose-response values for a single drug.

    GDSC reports natural-log IC50 (LN_IC50) and AUC per (cell line, drug)
    pair, keyed by COSMIC identifier.
    """

    REQUIRED_COLUMNS = ["COSMIC_ID", "DRUG_NAME", "LN_IC50"]
    KEEP_COLUMNS = ["COSMIC_ID", "CELL_LINE_NAME", "DRUG_NAME", "LN_IC50", "AUC"]

    def __init__(
        self,
        data_dir: str = "data/gdsc",
        drug_name: str = "Cisplatin",
        filename: str = "dose_response.xlsx",
    ):
        super().__init__(data_dir, filename)
        self.drug_name = drug_name

    def load(self) -> pd.DataFrame:
        """
        Load dose-response rows for the configured drug.

        Returns:
            DataFrame with COSMIC_ID, LN_IC50 and (if present) AUC
        """
        path = self._require()
        if path.suffix in (".xlsx", ".xls"):
            raw = pd.read_excel(path, engine="openpyxl")
        else:
            raw = pd.read_csv(path)

        missing = [c for c in self.REQUIRED_COLUMNS if c not in raw.columns]
        if missing:
            raise ValueError(f"{path} is missing columns {missing}")

        drug_mask = raw["DRUG_NAME"].astype(str).str.strip().str.lower() == self.drug_name.lower()
        data = raw.loc[drug_mask, [c for c in self.KEEP_COLUMNS if c in raw.columns]]

        if data.empty:
            raise ValueError(f"No dose-response rows for drug '{self.drug_name}' in {path}")

        logger.info(f"Loaded {len(data)} {self.drug_name} responses from {path.name}")
        self.data = data.reset_index(drop=True)
        return self.data

    def validate(self) -> bool:
        if self.data is None:
            return False
        return all(col in self.data.columns for col in ["COSMIC_ID", "LN_IC50"])


class GDSCExpressionLoader(BaseLoader):
    """
    Load GDSC basal expression (RMA, log2) as samples x genes.

    The source table has one row per probe set with GENE_SYMBOLS and one
    DATA.<COSMIC_ID> column per cell line.
    """

    SAMPLE_PREFIX = "DATA."

    def __init__(
        self,
        data_dir: str = "data/gdsc",
        filename: str = "Cell_line_RMA_proc_basalExp.txt.zip",
    ):
        super().__init__(data_dir, filename)

    def load(self) -> pd.DataFrame:
        path = self._require()
        raw = pd.read_csv(path, sep="\t")

        if "GENE_SYMBOLS" not in raw.columns:
            raise ValueError(f"{path} has no GENE_SYMBOLS column")

        raw = raw.dropna(subset=["GENE_SYMBOLS"])
        sample_cols = [c for c in raw.columns if c.startswith(self.SAMPLE_PREFIX)]

        expression = raw.set_index("GENE_SYMBOLS")[sample_cols].T
        expression.index = [
            # Some release columns carry a suffix like DATA.1240121.1
            c[len(self.SAMPLE_PREFIX):].split(".")[0] for c in expression.index
        ]
        expression.columns.name = None

        logger.info(f"Loaded cell-line expression: {expression.shape[0]} samples x "
                    f"{expression.shape[1]} probes")
        self.data = expression
        return expression

    def validate(self) -> bool:
        return self.data is not None and self.data.shape[1] > 0


class TumorExpressionLoader(BaseLoader):
    """
    Load an independent tumor expression matrix as samples x genes.

    Expects a tab-separated table with genes in rows and samples in columns
    (the UCSC Xena layout); the first column holds gene identifiers.
    """

    def __init__(
        self,
        data_dir: str = "data/tumor",
        filename: str = "tumor_expression.tsv.gz",
        sample_prefix: Optional[str] = None,
    ):
        """
        Args:
            data_dir: Directory holding the matrix
            filename: Matrix file name (gzip allowed)
            sample_prefix: Keep only samples whose id starts with this prefix
        """
        super().__init__(data_dir, filename)
        self.sample_prefix = sample_prefix

    def load(self) -> pd.DataFrame:
        path = self._require()
        raw = pd.read_csv(path, sep="\t", index_col=0)

        expression = raw.T
        expression.index = expression.index.astype(str)
        expression.columns = expression.columns.astype(str)
        expression.columns.name = None

        if self.sample_prefix:
            expression = expression.loc[expression.index.str.startswith(self.sample_prefix)]

        logger.info(f"Loaded tumor expression: {expression.shape[0]} samples x "
                    f"{expression.shape[1]} genes")
        self.data = expression
        return expression

    def validate(self) -> bool:
        return self.data is not None and self.data.shape[0] > 1
