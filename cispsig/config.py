"""
Configuration for signature extraction.

A single SignatureConfig is built once per run (from defaults, a JSON file
and/or command-line overrides) and passed explicitly to every component.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Optional, Dict, Tuple, Any, Union

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Names accepted in SignatureConfig.de_methods
KNOWN_DE_METHODS = ("sam", "moderated_t", "maxt", "welch_bh")

# Fields that do not change the extracted signature
_RUNTIME_FIELDS = {"n_jobs", "method_timeout", "fail_fast"}


@dataclass(frozen=True)
class SignatureConfig:
    """Parameters of one signature-extraction run."""
    drug_name: str = "Cisplatin"
    # Label assignment
    de_comp_perc: float = 0.20
    rm_extreme_perc: float = 0.0
    # Differential expression
    de_methods: Tuple[str, ...] = ("sam", "moderated_t", "maxt")
    sam_perm: int = 100
    mult_perm: int = 1000
    sam_fdr: float = 0.05
    de_alpha: float = 0.05
    # Cross-validation
    n_folds: int = 5
    random_state: int = 42
    # Co-expression propagation
    affinity_sig_perc: float = 0.05
    conn_cutoff_perc: float = 0.20
    # Execution
    n_jobs: int = 1
    method_timeout: Optional[float] = None
    fail_fast: bool = False
    drop_failed_folds: bool = False

    def __post_init__(self):
        # JSON gives lists
        if not isinstance(self.de_methods, tuple):
            object.__setattr__(self, "de_methods", tuple(self.de_methods))

    def validate(self) -> "SignatureConfig":
        """
        Check parameter ranges.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: on any invalid value
        """
        if not 0.0 < self.de_comp_perc <= 0.5:
            raise ConfigurationError(
                f"de_comp_perc must be in (0, 0.5], got {self.de_comp_perc}"
            )
        if not 0.0 <= self.rm_extreme_perc < 0.5:
            raise ConfigurationError(
                f"rm_extreme_perc must be in [0, 0.5), got {self.rm_extreme_perc}"
            )
        if 2 * self.rm_extreme_perc >= 1.0:
            raise ConfigurationError("rm_extreme_perc trims every sample")
        for name in ("sam_fdr", "de_alpha", "affinity_sig_perc", "conn_cutoff_perc"):
            value = getattr(self, name)
            if not 0.0 < value < 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1), got {value}")
        if self.n_folds < 2:
            raise ConfigurationError(f"n_folds must be at least 2, got {self.n_folds}")
        if self.sam_perm < 1 or self.mult_perm < 1:
            raise ConfigurationError("Permutation budgets must be positive")
        if not self.de_methods:
            raise ConfigurationError("At least one DE method is required")
        unknown = [m for m in self.de_methods if m not in KNOWN_DE_METHODS]
        if unknown:
            raise ConfigurationError(
                f"Unknown DE methods: {unknown}. Available: {list(KNOWN_DE_METHODS)}"
            )
        if len(set(self.de_methods)) != len(self.de_methods):
            raise ConfigurationError(f"Duplicate DE methods: {list(self.de_methods)}")
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be positive, got {self.n_jobs}")
        if self.method_timeout is not None and self.method_timeout <= 0:
            raise ConfigurationError("method_timeout must be positive")
        return self

    def budget_for(self, method: str) -> Optional[int]:
        """Permutation budget handed to a DE method."""
        if method == "sam":
            return self.sam_perm
        if method == "maxt":
            return self.mult_perm
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        d = asdict(self)
        d["de_methods"] = list(self.de_methods)
        return d

    def tag(self) -> str:
        """Short stable hash of the parameters that affect the signature."""
        params = {k: v for k, v in self.to_dict().items() if k not in _RUNTIME_FIELDS}
        digest = hashlib.sha1(json.dumps(params, sort_keys=True).encode("utf-8"))
        return digest.hexdigest()[:10]

    def update(self, **overrides) -> "SignatureConfig":
        """Return a copy with non-None overrides applied."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "SignatureConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**values)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "SignatureConfig":
        """Load configuration from a JSON file."""
        with open(path, "r") as f:
            values = json.load(f)
        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(values)
