#!/usr/bin/env python3
"""
Signature stability across random seeds.

Repeats extraction with different partition/permutation seeds and reports
signature sizes, pairwise Jaccard similarity and how often each gene is
selected. Saves results to <output-dir>/seed_stability.csv and
<output-dir>/gene_frequency.csv.

Usage:
    python scripts/run_seed_stability.py --cell-lines data/processed/cell_lines.csv \
        --tumor data/processed/tumor_expression.csv.gz --seeds 1 2 3 4 5
    python scripts/run_seed_stability.py --synthetic --sam-perm 50 --mult-perm 200
"""

import argparse
import logging
import sys
import time
from collections import Counter
from pathlib import Path

import numpy as np
import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from cispsig.config import SignatureConfig
from cispsig.data import CellLineDataset, make_planted_cohort, make_tumor_expression
from cispsig.extraction import SignatureExtractor
from cispsig.utils import jaccard_index

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def load_inputs(args):
    if args.synthetic:
        return make_planted_cohort(random_state=0), make_tumor_expression(random_state=1)

    cell_lines = CellLineDataset.from_csv(args.cell_lines)
    tumor = pd.read_csv(args.tumor, index_col=0)
    tumor.index = tumor.index.astype(str)
    return cell_lines, tumor


def main():
    parser = argparse.ArgumentParser(description="Signature stability across seeds")
    parser.add_argument("--cell-lines", type=str, default="data/processed/cell_lines.csv")
    parser.add_argument("--tumor", type=str, default="data/processed/tumor_expression.csv.gz")
    parser.add_argument("--synthetic", action="store_true")
    parser.add_argument("--config", type=str, default=None)
    parser.add_argument("--seeds", type=int, nargs="+", default=[1, 2, 3, 4, 5])
    parser.add_argument("--sam-perm", type=int, default=None)
    parser.add_argument("--mult-perm", type=int, default=None)
    parser.add_argument("--n-jobs", type=int, default=None)
    parser.add_argument("--output-dir", type=str, default="results/stability")
    args = parser.parse_args()

    base = SignatureConfig.from_json(args.config) if args.config else SignatureConfig()
    base = base.update(sam_perm=args.sam_perm, mult_perm=args.mult_perm, n_jobs=args.n_jobs)

    cell_lines, tumor = load_inputs(args)
    logger.info(f"Running extraction for {len(args.seeds)} seeds on {len(cell_lines)} cell lines")

    signatures = {}
    rows = []
    for seed in args.seeds:
        config = base.update(random_state=seed)
        start = time.time()
        result = SignatureExtractor(config, show_progress=False).run(cell_lines, tumor)
        elapsed = time.time() - start

        signatures[seed] = result.signature
        auroc = [r.holdout["holdout_auroc"] for r in result.completed_folds]
        rows.append({
            "seed": seed,
            "signature_size": len(result.signature),
            "down_size": len(result.down_signature),
            "mean_holdout_auroc": float(np.mean(auroc)) if auroc else float("nan"),
            "time_sec": elapsed,
        })
        logger.info(f"  Seed {seed}: {len(result.signature)} genes ({elapsed:.0f}s)")

    seeds = list(signatures)
    pairs = pd.DataFrame(
        [[jaccard_index(signatures[a], signatures[b]) for b in seeds] for a in seeds],
        index=seeds, columns=seeds,
    )
    upper = pairs.to_numpy()[np.triu_indices(len(seeds), k=1)]

    frequency = Counter(g for genes in signatures.values() for g in genes)
    gene_frequency = pd.Series(frequency, name="n_seeds", dtype=int).sort_values(ascending=False)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows).to_csv(output_dir / "seed_stability.csv", index=False)
    pairs.to_csv(output_dir / "pairwise_jaccard.csv")
    gene_frequency.to_csv(output_dir / "gene_frequency.csv")

    logger.info(f"\n{'='*60}")
    logger.info("SEED STABILITY")
    logger.info(f"{'='*60}")
    if len(upper):
        logger.info(f"  Pairwise Jaccard: {upper.mean():.3f} ± {upper.std():.3f} "
                    f"(min {upper.min():.3f})")
    stable = gene_frequency[gene_frequency == len(seeds)]
    logger.info(f"  Genes selected under every seed: {len(stable)}")
    logger.info(f"  Results saved to {output_dir}")


if __name__ == "__main__":
    main()
