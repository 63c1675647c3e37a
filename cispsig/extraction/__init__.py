"""
Signature extraction runs.

Provides:
- SignatureExtractor: cross-validated extraction over folds
- FoldResult / SignatureResult: per-fold evidence and final signature
- ArtifactStore: folds.h5, report.json and signature files
"""

from .runner import (
    SignatureExtractor,
    FoldResult,
    SignatureResult,
)
from .artifacts import ArtifactStore

__all__ = [
    "SignatureExtractor",
    "FoldResult",
    "SignatureResult",
    "ArtifactStore",
]
