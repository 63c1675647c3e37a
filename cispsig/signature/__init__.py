"""
Signature-extraction core.

Components:
- labels: response-percentile class labels
- de_methods: pluggable differential-expression tests
- consensus: per-fold DE consensus with direction tagging
- coexpression: tumor co-expression network and connectivity filter
- consolidation: majority vote across folds
"""

from .labels import (
    ResponseLabels,
    assign_response_labels,
    label_with_thresholds,
)
from .de_methods import (
    DifferentialExpressionMethod,
    SAMMethod,
    ModeratedTMethod,
    MaxTMethod,
    WelchBHMethod,
    build_method,
)
from .consensus import (
    SeedGenes,
    DEConsensusEngine,
    tag_directions,
)
from .coexpression import (
    CoexpressionNetwork,
    CoexpressionPropagator,
    ConnectivityResult,
)
from .consolidation import (
    ConsolidatedSignature,
    consolidate_signature,
)

__all__ = [
    "ResponseLabels",
    "assign_response_labels",
    "label_with_thresholds",
    "DifferentialExpressionMethod",
    "SAMMethod",
    "ModeratedTMethod",
    "MaxTMethod",
    "WelchBHMethod",
    "build_method",
    "SeedGenes",
    "DEConsensusEngine",
    "tag_directions",
    "CoexpressionNetwork",
    "CoexpressionPropagator",
    "ConnectivityResult",
    "ConsolidatedSignature",
    "consolidate_signature",
]
