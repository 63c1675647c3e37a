#!/usr/bin/env python3
"""
Batch signature scoring.

Scores every expression table given on the command line with one signature
and writes one CSV of scores per input. When a table carries a `response`
column (cleaned cell-line tables), the Spearman correlation between score
and response is reported.

Usage:
    python scripts/score_samples.py --signature results/signature.txt \
        data/processed/cell_lines.csv cohort_b.tsv
"""

import argparse
import logging
import sys
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).parent.parent))

from cispsig.extraction import ArtifactStore
from cispsig.utils import compute_signature_score, compute_spearman

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def read_table(path: Path, genes_in_rows: bool) -> pd.DataFrame:
    sep = "\t" if path.name.endswith((".tsv", ".tsv.gz", ".txt")) else ","
    table = pd.read_csv(path, sep=sep, index_col=0)
    if genes_in_rows:
        table = table.T
    table.index = table.index.astype(str)
    return table


def main():
    parser = argparse.ArgumentParser(description="Score expression tables with a signature")
    parser.add_argument("tables", type=str, nargs="+")
    parser.add_argument("--signature", type=str, required=True)
    parser.add_argument("--genes-in-rows", action="store_true")
    parser.add_argument("--output-dir", type=str, default="results/scores")
    args = parser.parse_args()

    genes = ArtifactStore.read_signature(args.signature)
    logger.info(f"Scoring with {len(genes)} signature genes")

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for table_path in map(Path, args.tables):
        table = read_table(table_path, args.genes_in_rows)
        response = table["response"] if "response" in table.columns else None
        expression = table.drop(columns=["response", "auc"], errors="ignore")

        scores = compute_signature_score(expression, genes)
        stem = table_path.name.split(".")[0]
        scores.to_frame().to_csv(output_dir / f"{stem}_scores.csv")

        message = f"  {table_path.name}: {len(scores)} samples"
        if response is not None:
            rho = compute_spearman(scores, response.loc[scores.index])
            message += f", Spearman(score, response) = {rho:.3f}"
        logger.info(message)


if __name__ == "__main__":
    main()
