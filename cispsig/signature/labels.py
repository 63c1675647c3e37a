"""
Drug-response class labels.

Training samples are split by response percentiles into sensitive (low
IC50), resistant (high IC50) and an excluded ambiguous middle.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError, InsufficientDataError

logger = logging.getLogger(__name__)

SENSITIVE = "sensitive"
RESISTANT = "resistant"
EXCLUDED = "excluded"

MIN_CLASS_SIZE = 2


@dataclass
class ResponseLabels:
    """Per-sample labels with the cut points that produced them."""
    labels: pd.Series
    low_threshold: float
    high_threshold: float

    @property
    def sensitive(self) -> pd.Index:
        return self.labels.index[self.labels == SENSITIVE]

    @property
    def resistant(self) -> pd.Index:
        return self.labels.index[self.labels == RESISTANT]

    @property
    def labelled(self) -> pd.Index:
        return self.labels.index[self.labels != EXCLUDED]

    def binary(self) -> pd.Series:
        """1 for sensitive, 0 for resistant; excluded samples dropped."""
        kept = self.labels[self.labels != EXCLUDED]
        return (kept == SENSITIVE).astype(int)

    def counts(self) -> dict:
        return {
            SENSITIVE: len(self.sensitive),
            RESISTANT: len(self.resistant),
            EXCLUDED: int((self.labels == EXCLUDED).sum()),
        }


def assign_response_labels(
    response: pd.Series,
    de_comp_perc: float = 0.20,
    rm_extreme_perc: float = 0.0,
) -> ResponseLabels:
    """
    Label samples by drug-response percentiles.

    Tails beyond `rm_extreme_perc` are trimmed first; on the remaining
    responses, values below the `de_comp_perc` quantile are sensitive and
    values at or above the `1 - de_comp_perc` quantile are resistant.

    Args:
        response: log2 drug response per sample
        de_comp_perc: Class split fraction, in (0, 0.5]
        rm_extreme_perc: Outlier trim fraction per tail, in [0, 0.5)

    Returns:
        ResponseLabels

    Raises:
        ConfigurationError: invalid fractions
        InsufficientDataError: fewer than two samples in a class
    """
    if not 0.0 < de_comp_perc <= 0.5:
        raise ConfigurationError(f"de_comp_perc must be in (0, 0.5], got {de_comp_perc}")
    if not 0.0 <= rm_extreme_perc < 0.5:
        raise ConfigurationError(f"rm_extreme_perc must be in [0, 0.5), got {rm_extreme_perc}")

    response = response.astype(float)
    labels = pd.Series(EXCLUDED, index=response.index, dtype=object)

    eligible = response
    if rm_extreme_perc > 0:
        lo, hi = np.quantile(response.values, [rm_extreme_perc, 1.0 - rm_extreme_perc])
        eligible = response[(response >= lo) & (response <= hi)]
        logger.debug(f"Trimmed {len(response) - len(eligible)} extreme responses")

    if len(eligible) == 0:
        raise InsufficientDataError("No samples left after trimming extreme responses")

    low, high = np.quantile(eligible.values, [de_comp_perc, 1.0 - de_comp_perc])
    labels[eligible.index[eligible < low]] = SENSITIVE
    labels[eligible.index[eligible >= high]] = RESISTANT

    result = ResponseLabels(labels=labels, low_threshold=float(low), high_threshold=float(high))

    counts = result.counts()
    if counts[SENSITIVE] < MIN_CLASS_SIZE or counts[RESISTANT] < MIN_CLASS_SIZE:
        raise InsufficientDataError(
            f"Need at least {MIN_CLASS_SIZE} samples per class, got "
            f"{counts[SENSITIVE]} sensitive / {counts[RESISTANT]} resistant"
        )

    return result


def label_with_thresholds(response: pd.Series, low: float, high: float) -> pd.Series:
    """Label (e.g. held-out) samples with cut points fixed elsewhere."""
    labels = pd.Series(EXCLUDED, index=response.index, dtype=object)
    labels[response < low] = SENSITIVE
    labels[response >= high] = RESISTANT
    return labels
