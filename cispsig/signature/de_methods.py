"""
Differential-expression methods.

Every method implements the same capability:

    run(expression, labels, budget=None, random_state=None) -> Set[str]

where `expression` is genes x samples, `labels` maps sample id to 1
(sensitive) or 0 (resistant), and the result is the set of genes called
differentially expressed at the method's own significance contract.

Implementations:
- SAMMethod: Significance Analysis of Microarrays (Tusher et al. 2001)
- ModeratedTMethod: empirical-Bayes moderated t (Smyth 2004, limma)
- MaxTMethod: Welch t with Westfall-Young step-down maxT adjustment
- WelchBHMethod: Welch t-test with Benjamini-Hochberg correction
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Set, Tuple

import numpy as np
import pandas as pd
from scipy import stats, special
from statsmodels.stats.multitest import multipletests

from ..exceptions import MethodFailure

logger = logging.getLogger(__name__)


class DifferentialExpressionMethod(ABC):
    """Base class for two-group differential-expression tests."""

    name = "base"

    @abstractmethod
    def run(
        self,
        expression: pd.DataFrame,
        labels: pd.Series,
        budget: Optional[int] = None,
        random_state: Optional[int] = None,
    ) -> Set[str]:
        """
        Call differentially expressed genes.

        Args:
            expression: Expression matrix (genes x samples)
            labels: 1 = sensitive, 0 = resistant, indexed by sample id
            budget: Permutation budget (ignored by parametric methods)
            random_state: Seed for permutations

        Returns:
            Set of significant gene identifiers
        """
        pass

    def _prepare(
        self,
        expression: pd.DataFrame,
        labels: pd.Series,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Align labels to columns and return (values, label vector, gene ids)."""
        missing = expression.columns.difference(labels.index)
        if len(missing):
            raise MethodFailure(self.name, f"{len(missing)} samples have no label")

        y = labels.loc[expression.columns].to_numpy().astype(int)
        if not set(np.unique(y)) <= {0, 1}:
            raise MethodFailure(self.name, "labels must be binary (0/1)")

        n1 = int(y.sum())
        n0 = len(y) - n1
        if n1 < 2 or n0 < 2:
            raise MethodFailure(self.name, f"need two samples per group, got {n1}/{n0}")

        X = expression.to_numpy(dtype=float)
        if not np.all(np.isfinite(X)):
            raise MethodFailure(self.name, "expression contains non-finite values")

        return X, y, expression.index.to_numpy()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _group_moments(X: np.ndarray, y: np.ndarray):
    """Per-gene mean and unbiased variance in each group (1 then 0)."""
    g1 = X[:, y == 1]
    g0 = X[:, y == 0]
    return (
        g1.mean(axis=1), g0.mean(axis=1),
        g1.var(axis=1, ddof=1), g0.var(axis=1, ddof=1),
        g1.shape[1], g0.shape[1],
    )


def welch_t(X: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Welch t statistic per gene (sensitive minus resistant); 0 where undefined."""
    m1, m0, v1, v0, n1, n0 = _group_moments(X, y)
    se = np.sqrt(v1 / n1 + v0 / n0)
    with np.errstate(divide="ignore", invalid="ignore"):
        t = (m1 - m0) / se
    t[~np.isfinite(t)] = 0.0
    return t


class SAMMethod(DifferentialExpressionMethod):
    """
    Significance Analysis of Microarrays for two unpaired groups.

    The relative difference d = r / (s + s0) uses a fudge factor s0 chosen to
    minimise the coefficient of variation of d across the range of s.
    False discoveries are estimated from label permutations and turned into
    per-gene q-values.
    """

    name = "sam"

    def __init__(self, fdr: float = 0.05, default_permutations: int = 100):
        self.fdr = fdr
        self.default_permutations = default_permutations

    def run(self, expression, labels, budget=None, random_state=None):
        X, y, genes = self._prepare(expression, labels)
        n_perm = budget or self.default_permutations
        rng = np.random.RandomState(random_state)

        r, s = self._difference_and_scale(X, y)
        if np.all(s == 0):
            raise MethodFailure(self.name, "all genes have zero within-group variance")

        s0 = self.estimate_s0(r, s)
        d = r / (s + s0)

        perm_d = np.empty((n_perm, len(d)))
        for b in range(n_perm):
            yb = rng.permutation(y)
            rb, sb = self._difference_and_scale(X, yb)
            perm_d[b] = rb / (sb + s0)

        qvalues = self.qvalues(d, perm_d)
        called = set(genes[qvalues <= self.fdr])
        logger.debug(f"SAM: s0={s0:.4g}, {len(called)} genes at FDR {self.fdr}")
        return called

    @staticmethod
    def _difference_and_scale(X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        m1, m0, v1, v0, n1, n0 = _group_moments(X, y)
        pooled = ((n1 - 1) * v1 + (n0 - 1) * v0) / (n1 + n0 - 2)
        s = np.sqrt((1.0 / n1 + 1.0 / n0) * pooled)
        return m1 - m0, s

    @staticmethod
    def estimate_s0(r: np.ndarray, s: np.ndarray, n_bins: int = 100) -> float:
        """
        Fudge factor minimising the CV of median absolute deviations of d
        computed within quantile bins of s.
        """
        n_bins = int(min(n_bins, max(2, len(s) // 5)))
        edges = np.quantile(s, np.linspace(0, 1, n_bins + 1))
        bins = np.clip(np.searchsorted(edges, s, side="right") - 1, 0, n_bins - 1)

        best_s0, best_cv = None, np.inf
        for alpha in np.arange(0.0, 1.0001, 0.05):
            s_alpha = np.quantile(s, alpha)
            denom = s + s_alpha
            if np.any(denom == 0):
                continue
            d = r / denom
            mads = []
            for k in range(n_bins):
                dk = d[bins == k]
                if len(dk) > 1:
                    mads.append(np.median(np.abs(dk - np.median(dk))))
            mads = np.asarray(mads)
            if len(mads) < 2 or mads.mean() == 0:
                continue
            cv = mads.std() / mads.mean()
            if cv < best_cv:
                best_s0, best_cv = s_alpha, cv

        if best_s0 is None:
            # Every candidate left a zero denominator; fall back to the smallest positive s
            positive = s[s > 0]
            best_s0 = float(positive.min()) if len(positive) else 1.0
        return float(best_s0)

    @staticmethod
    def qvalues(d: np.ndarray, perm_d: np.ndarray) -> np.ndarray:
        """Permutation q-values for observed statistics d."""
        p = len(d)
        abs_d = np.abs(d)
        abs_perm = np.sort(np.abs(perm_d), axis=1)

        # Proportion of true nulls from the central half of the permutation distribution
        q25, q75 = np.quantile(perm_d.ravel(), [0.25, 0.75])
        pi0 = min(1.0, np.sum((d > q25) & (d < q75)) / (0.5 * p))

        order = np.argsort(-abs_d)
        thresholds = abs_d[order]
        # Ties share the largest call count
        n_called = p - np.searchsorted(np.sort(abs_d), thresholds, side="left")

        false_counts = np.empty((abs_perm.shape[0], p))
        for b, row in enumerate(abs_perm):
            false_counts[b] = p - np.searchsorted(row, thresholds, side="left")
        n_false = np.median(false_counts, axis=0)

        fdr = np.minimum(1.0, pi0 * n_false / n_called)
        q_sorted = np.minimum.accumulate(fdr[::-1])[::-1]

        q = np.empty(p)
        q[order] = q_sorted
        return q


class ModeratedTMethod(DifferentialExpressionMethod):
    """
    limma-style moderated t-test for a two-group design.

    Residual variances are shrunk towards a common prior fitted by empirical
    Bayes (scaled inverse chi-square), then p-values are BH-adjusted.
    """

    name = "moderated_t"

    def __init__(self, alpha: float = 0.05):
        self.alpha = alpha

    def run(self, expression, labels, budget=None, random_state=None):
        X, y, genes = self._prepare(expression, labels)
        t, df_total = self.moderated_t(X, y)
        pvalues = 2.0 * stats.t.sf(np.abs(t), df_total)
        _, adjusted, _, _ = multipletests(pvalues, method="fdr_bh")
        return set(genes[adjusted <= self.alpha])

    def moderated_t(self, X: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, float]:
        m1, m0, v1, v0, n1, n0 = _group_moments(X, y)
        df_resid = n1 + n0 - 2
        if df_resid < 1:
            raise MethodFailure(self.name, "no residual degrees of freedom")

        s2 = ((n1 - 1) * v1 + (n0 - 1) * v0) / df_resid
        if not np.any(s2 > 0):
            raise MethodFailure(self.name, "all genes have zero residual variance")

        s2_prior, df_prior = self.fit_f_dist(s2, df_resid)
        if np.isinf(df_prior):
            s2_post = np.full_like(s2, s2_prior)
        else:
            s2_post = (df_resid * s2 + df_prior * s2_prior) / (df_resid + df_prior)

        stdev_unscaled = np.sqrt(1.0 / n1 + 1.0 / n0)
        t = (m1 - m0) / (stdev_unscaled * np.sqrt(s2_post))
        df_total = min(df_resid + df_prior, df_resid * len(s2))
        return t, df_total

    @classmethod
    def fit_f_dist(cls, s2: np.ndarray, df: float) -> Tuple[float, float]:
        """Moment estimates of the prior variance and prior degrees of freedom."""
        x = s2[np.isfinite(s2)]
        m = np.median(x)
        if m == 0:
            m = np.mean(x[x > 0])
        x = np.maximum(x, 1e-5 * m)

        z = np.log(x)
        e = z - special.digamma(df / 2.0) + np.log(df / 2.0)
        emean = e.mean()
        evar = e.var(ddof=1) - special.polygamma(1, df / 2.0) if len(e) > 1 else 0.0

        if evar > 0:
            df_prior = 2.0 * cls.trigamma_inverse(evar)
            s2_prior = np.exp(emean + special.digamma(df_prior / 2.0) - np.log(df_prior / 2.0))
        else:
            df_prior = np.inf
            s2_prior = np.exp(emean)
        return float(s2_prior), float(df_prior)

    @staticmethod
    def trigamma_inverse(x: float, tol: float = 1e-8, max_iter: int = 50) -> float:
        """Solve trigamma(y) = x by Newton iteration."""
        if x > 1e7:
            return 1.0 / np.sqrt(x)
        if x < 1e-6:
            return 1.0 / x

        y = 0.5 + 1.0 / x
        for _ in range(max_iter):
            tri = special.polygamma(1, y)
            dif = tri * (1.0 - tri / x) / special.polygamma(2, y)
            y += dif
            if -dif / y < tol:
                break
        else:
            logger.warning("trigamma_inverse did not converge")
        return float(y)


class MaxTMethod(DifferentialExpressionMethod):
    """
    Welch t statistics with Westfall-Young step-down maxT adjusted p-values
    (family-wise error control over label permutations).
    """

    name = "maxt"

    def __init__(self, alpha: float = 0.05, default_permutations: int = 1000):
        self.alpha = alpha
        self.default_permutations = default_permutations

    def run(self, expression, labels, budget=None, random_state=None):
        X, y, genes = self._prepare(expression, labels)
        n_perm = budget or self.default_permutations
        rng = np.random.RandomState(random_state)

        if np.all(X.std(axis=1) == 0):
            raise MethodFailure(self.name, "all genes are constant")

        adjusted = self.adjusted_pvalues(X, y, n_perm, rng)
        return set(genes[adjusted <= self.alpha])

    @staticmethod
    def adjusted_pvalues(
        X: np.ndarray,
        y: np.ndarray,
        n_perm: int,
        rng: np.random.RandomState,
    ) -> np.ndarray:
        observed = np.abs(welch_t(X, y))
        order = np.argsort(-observed)
        sorted_obs = observed[order]

        exceed = np.zeros(len(observed))
        for _ in range(n_perm):
            perm_t = np.abs(welch_t(X, rng.permutation(y)))[order]
            # Successive maxima from the least significant gene upwards
            successive_max = np.maximum.accumulate(perm_t[::-1])[::-1]
            exceed += successive_max >= sorted_obs

        adj_sorted = np.maximum.accumulate(exceed / n_perm)
        adjusted = np.empty(len(observed))
        adjusted[order] = adj_sorted
        return adjusted


class WelchBHMethod(DifferentialExpressionMethod):
    """Welch t-test per gene with Benjamini-Hochberg correction."""

    name = "welch_bh"

    def __init__(self, alpha: float = 0.05):
        self.alpha = alpha

    def run(self, expression, labels, budget=None, random_state=None):
        X, y, genes = self._prepare(expression, labels)
        _, pvalues = stats.ttest_ind(X[:, y == 1], X[:, y == 0], axis=1, equal_var=False)
        pvalues = np.where(np.isfinite(pvalues), pvalues, 1.0)
        _, adjusted, _, _ = multipletests(pvalues, method="fdr_bh")
        return set(genes[adjusted <= self.alpha])


def build_method(name: str, config) -> DifferentialExpressionMethod:
    """
    Instantiate a DE method by name.

    Args:
        name: One of "sam", "moderated_t", "maxt", "welch_bh"
        config: SignatureConfig supplying significance levels
    """
    if name == "sam":
        return SAMMethod(fdr=config.sam_fdr, default_permutations=config.sam_perm)
    if name == "moderated_t":
        return ModeratedTMethod(alpha=config.de_alpha)
    if name == "maxt":
        return MaxTMethod(alpha=config.de_alpha, default_permutations=config.mult_perm)
    if name == "welch_bh":
        return WelchBHMethod(alpha=config.de_alpha)
    raise ValueError(f"Unknown DE method: {name}")
