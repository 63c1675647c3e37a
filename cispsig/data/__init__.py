"""
Data loading and processing modules for cispsig.

Handles:
- GDSC drug response and cell-line basal expression
- TCGA pan-cancer tumor expression (co-expression reference)
- Cleaning, joining and gene-space harmonization
- Cross-validation folds
- Planted-signal synthetic cohorts
"""

from .download import DataDownloader
from .loaders import (
    BaseLoader,
    GDSCResponseLoader,
    GDSCExpressionLoader,
    TumorExpressionLoader,
)
from .processing import (
    DataProcessor,
    Fold,
    FoldPartitioner,
    harmonize_gene_space,
)
from .datasets import CellLineDataset
from .synthetic import (
    planted_gene_names,
    make_planted_cohort,
    make_tumor_expression,
)

__all__ = [
    "DataDownloader",
    "BaseLoader",
    "GDSCResponseLoader",
    "GDSCExpressionLoader",
    "TumorExpressionLoader",
    "DataProcessor",
    "Fold",
    "FoldPartitioner",
    "harmonize_gene_space",
    "CellLineDataset",
    "planted_gene_names",
    "make_planted_cohort",
    "make_tumor_expression",
]
