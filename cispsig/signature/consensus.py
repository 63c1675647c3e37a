"""
Differential-expression consensus.

For one fold's training subset: label samples by response percentiles, run
every configured DE method on the same labelled matrix, intersect their
calls and tag each surviving gene by direction.
"""

import logging
import multiprocessing
from dataclasses import dataclass, field
from typing import Optional, Dict, FrozenSet, Tuple

import numpy as np
import pandas as pd

from .de_methods import DifferentialExpressionMethod, build_method
from .labels import ResponseLabels, assign_response_labels
from ..data.datasets import CellLineDataset
from ..exceptions import MethodFailure

logger = logging.getLogger(__name__)


@dataclass
class SeedGenes:
    """Consensus DE genes of one fold, split by direction."""
    up: FrozenSet[str]
    down: FrozenSet[str]
    extra: FrozenSet[str]
    per_method: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    labels: Optional[ResponseLabels] = None

    @property
    def consensus(self) -> FrozenSet[str]:
        return self.up | self.down | self.extra

    def direction(self, name: str) -> FrozenSet[str]:
        if name not in ("up", "down"):
            raise ValueError(f"Unknown direction: {name}")
        return getattr(self, name)

    def counts(self) -> Dict[str, int]:
        counts = {f"de_{name}": len(genes) for name, genes in self.per_method.items()}
        counts.update({
            "consensus": len(self.consensus),
            "up": len(self.up),
            "down": len(self.down),
            "extra": len(self.extra),
        })
        return counts


def tag_directions(
    expression: pd.DataFrame,
    binary_labels: pd.Series,
    genes,
) -> Tuple[FrozenSet[str], FrozenSet[str], FrozenSet[str]]:
    """
    Split genes by comparing group means.

    Args:
        expression: Expression matrix (genes x samples)
        binary_labels: 1 = sensitive, 0 = resistant
        genes: Genes to tag

    Returns:
        (up, down, extra): higher in sensitive, higher in resistant, equal means
    """
    genes = sorted(genes)
    if not genes:
        return frozenset(), frozenset(), frozenset()

    sub = expression.loc[genes, binary_labels.index]
    sensitive_mean = sub.loc[:, (binary_labels == 1).to_numpy()].mean(axis=1)
    resistant_mean = sub.loc[:, (binary_labels == 0).to_numpy()].mean(axis=1)

    up = frozenset(sensitive_mean.index[sensitive_mean > resistant_mean])
    down = frozenset(sensitive_mean.index[sensitive_mean < resistant_mean])
    extra = frozenset(sensitive_mean.index[sensitive_mean == resistant_mean])
    return up, down, extra


class DEConsensusEngine:
    """
    Run the configured DE methods on one training subset and intersect them.

    A gene becomes a seed only if every method calls it.
    """

    def __init__(
        self,
        config,
        methods: Optional[Dict[str, DifferentialExpressionMethod]] = None,
    ):
        """
        Args:
            config: SignatureConfig
            methods: Override of name -> method (defaults built from config.de_methods)
        """
        self.config = config
        if methods is None:
            methods = {name: build_method(name, config) for name in config.de_methods}
        self.methods = methods

    def run(self, training: CellLineDataset, fold_index: Optional[int] = None) -> SeedGenes:
        """
        Compute seed genes for one training subset.

        Args:
            training: Cohort minus the held-out fold
            fold_index: Fold number, used for seeding and error reporting

        Returns:
            SeedGenes

        Raises:
            InsufficientDataError: too few labelled samples
            MethodFailure: any DE method failed
        """
        labels = assign_response_labels(
            training.response,
            de_comp_perc=self.config.de_comp_perc,
            rm_extreme_perc=self.config.rm_extreme_perc,
        )
        binary = labels.binary()

        # Canonical order so results do not depend on input row/column order
        samples = sorted(binary.index)
        genes = sorted(training.genes)
        binary = binary.loc[samples]
        matrix = training.expression.loc[samples, genes].T

        per_method = {}
        for i, (name, method) in enumerate(self.methods.items()):
            seed = self._method_seed(fold_index, i)
            called = self._call(name, method, matrix, binary, seed, fold_index)
            per_method[name] = frozenset(called)
            logger.debug(f"  fold {fold_index} {name}: {len(called)} genes")

        consensus = frozenset.intersection(*per_method.values()) if per_method else frozenset()
        up, down, extra = tag_directions(matrix, binary, consensus)

        return SeedGenes(up=up, down=down, extra=extra, per_method=per_method, labels=labels)

    def _method_seed(self, fold_index: Optional[int], method_index: int) -> int:
        entropy = [self.config.random_state, fold_index if fold_index is not None else 0, method_index]
        return int(np.random.SeedSequence(entropy).generate_state(1)[0])

    def _call(self, name, method, matrix, binary, seed, fold_index):
        budget = self.config.budget_for(name)
        timeout = self.config.method_timeout

        try:
            if timeout is None:
                return method.run(matrix, binary, budget=budget, random_state=seed)
            return self._call_with_deadline(name, method, matrix, binary, budget, seed,
                                            timeout, fold_index)
        except MethodFailure as e:
            if e.fold is None:
                raise MethodFailure(e.method, e.detail, fold_index) from e
            raise
        except Exception as e:
            raise MethodFailure(name, f"{type(e).__name__}: {e}", fold_index) from e

    @staticmethod
    def _call_with_deadline(name, method, matrix, binary, budget, seed, timeout, fold_index):
        """
        Run one DE method in a child process that is terminated at the deadline.

        The deadline covers worker start-up. Workers are spawned, not forked,
        since folds may run on threads.
        """
        ctx = multiprocessing.get_context("spawn")
        receiver, sender = ctx.Pipe(duplex=False)
        worker = ctx.Process(
            target=_run_method_worker,
            args=(sender, method, matrix, binary, budget, seed),
            daemon=True,
        )
        worker.start()
        sender.close()

        try:
            if not receiver.poll(timeout):
                raise MethodFailure(name, f"exceeded {timeout}s deadline", fold_index)
            try:
                ok, payload = receiver.recv()
            except EOFError:
                worker.join()
                raise MethodFailure(
                    name, f"worker exited with code {worker.exitcode}", fold_index
                )
        finally:
            if worker.is_alive():
                worker.terminate()
            worker.join()
            receiver.close()

        if not ok:
            raise MethodFailure(name, payload, fold_index)
        return payload


def _run_method_worker(conn, method, matrix, binary, budget, seed):
    """Child-process entry point; sends back (ok, genes or error text)."""
    try:
        genes = set(method.run(matrix, binary, budget=budget, random_state=seed))
        conn.send((True, genes))
    except Exception as e:
        conn.send((False, f"{type(e).__name__}: {e}"))
    finally:
        conn.close()
