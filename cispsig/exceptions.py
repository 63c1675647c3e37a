"""
Error taxonomy for cispsig.

- ConfigurationError: invalid parameters or invocation
- InsufficientDataError: too few labelled samples for a DE run
- MethodFailure: a differential-expression procedure failed for a fold
- DegenerateAffinityError: co-expression network cannot be built
- IncompleteFoldsError: consolidation refused because folds failed
"""

from typing import Optional


class SignatureError(Exception):
    """Base class for all signature-extraction errors."""


class ConfigurationError(SignatureError):
    """Invalid parameter combination."""


class InsufficientDataError(SignatureError):
    """A fold's labelled training subset is too small in one class."""


class MethodFailure(SignatureError):
    """
    A differential-expression method failed internally.

    Attributes:
        method: Name of the failing method
        fold: Index of the fold being processed (if known)
    """

    def __init__(self, method: str, message: str, fold: Optional[int] = None):
        self.method = method
        self.detail = message
        self.fold = fold
        where = f" (fold {fold})" if fold is not None else ""
        super().__init__(f"{method}{where}: {message}")


class DegenerateAffinityError(SignatureError):
    """Too few non-constant genes to build a co-expression network."""


class IncompleteFoldsError(SignatureError):
    """Majority vote requested over an incomplete set of folds."""
