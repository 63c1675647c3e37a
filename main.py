#!/usr/bin/env python3
"""
cispsig: Main Entry Point

Command-line interface for cisplatin-sensitivity signature extraction.
"""

import argparse
import logging
import sys
from pathlib import Path

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def download_data(args):
    """Download public datasets."""
    from cispsig.data import DataDownloader

    logger.info("Starting data download...")
    downloader = DataDownloader(args.data_dir, tumor_url=args.tumor_url)
    results = downloader.download_all(skip_large=args.skip_large)

    for source, success in results.items():
        status = "SKIPPED" if success is None else ("SUCCESS" if success else "FAILED")
        logger.info(f"  {source}: {status}")


def prepare_data(args):
    """Clean, join and harmonize raw data into analysis-ready tables."""
    from cispsig.data import (
        DataProcessor, GDSCResponseLoader, GDSCExpressionLoader, TumorExpressionLoader,
    )

    data_dir = Path(args.data_dir)
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    processor = DataProcessor(
        response_loader=GDSCResponseLoader(data_dir / "gdsc", drug_name=args.drug),
        expression_loader=GDSCExpressionLoader(data_dir / "gdsc"),
        tumor_loader=TumorExpressionLoader(data_dir / "tumor", sample_prefix=args.tumor_prefix),
        tumor_log_transform=args.tumor_log_transform,
    )
    cell_lines, tumor = processor.process()

    cell_path = output_dir / "cell_lines.csv"
    tumor_path = output_dir / "tumor_expression.csv.gz"
    cell_lines.to_csv(cell_path)
    tumor.to_csv(tumor_path)
    logger.info(f"Wrote {cell_path} and {tumor_path}")


def build_config(args):
    """Configuration from defaults, an optional JSON file and CLI overrides."""
    from cispsig.config import SignatureConfig

    config = SignatureConfig.from_json(args.config) if args.config else SignatureConfig()
    config = config.update(
        drug_name=args.drug,
        n_folds=args.n_folds,
        random_state=args.random_state,
        de_methods=tuple(args.de_methods) if args.de_methods else None,
        de_comp_perc=args.de_comp_perc,
        rm_extreme_perc=args.rm_extreme_perc,
        sam_perm=args.sam_perm,
        mult_perm=args.mult_perm,
        sam_fdr=args.sam_fdr,
        de_alpha=args.de_alpha,
        affinity_sig_perc=args.affinity_sig_perc,
        conn_cutoff_perc=args.conn_cutoff_perc,
        n_jobs=args.n_jobs,
        method_timeout=args.method_timeout,
        fail_fast=True if args.fail_fast else None,
        drop_failed_folds=True if args.drop_failed_folds else None,
    )
    return config.validate()


def extract_signature(args):
    """Run cross-validated signature extraction."""
    import pandas as pd
    from cispsig.data import (
        CellLineDataset, make_planted_cohort, make_tumor_expression,
    )
    from cispsig.extraction import SignatureExtractor, ArtifactStore

    config = build_config(args)

    if args.synthetic:
        logger.info("Using planted-signal synthetic data")
        cell_lines = make_planted_cohort(random_state=config.random_state)
        tumor = make_tumor_expression(random_state=config.random_state + 1)
    else:
        cell_lines = CellLineDataset.from_csv(args.cell_lines)
        tumor = pd.read_csv(args.tumor, index_col=0)
        tumor.index = tumor.index.astype(str)
        logger.info(f"Loaded tumor expression: {tumor.shape[0]} samples x {tumor.shape[1]} genes")

    store = ArtifactStore(args.output_dir, config)
    extractor = SignatureExtractor(config, artifact_store=store)
    result = extractor.run(cell_lines, tumor)

    logger.info(f"Per-fold summary:\n{result.summary().to_string()}")
    logger.info(f"Final signature ({len(result.signature)} genes): {sorted(result.signature)}")


def score_samples(args):
    """Score samples with a saved signature."""
    import pandas as pd
    from cispsig.extraction import ArtifactStore
    from cispsig.utils import compute_signature_score

    genes = ArtifactStore.read_signature(args.signature)
    logger.info(f"Loaded {len(genes)} signature genes from {args.signature}")

    sep = "\t" if args.expression.endswith((".tsv", ".tsv.gz", ".txt")) else ","
    expression = pd.read_csv(args.expression, sep=sep, index_col=0)
    if args.genes_in_rows:
        expression = expression.T
    expression.index = expression.index.astype(str)

    # Cleaned cell-line tables carry response columns next to the genes
    expression = expression.drop(columns=["response", "auc"], errors="ignore")

    scores = compute_signature_score(expression, genes)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    scores.to_frame().to_csv(output)
    logger.info(f"Scored {len(scores)} samples -> {output}")


def add_config_arguments(parser):
    """Flags overriding SignatureConfig fields."""
    parser.add_argument("--config", type=str, default=None,
                        help="JSON configuration file")
    parser.add_argument("--drug", type=str, default=None,
                        help="Drug name")
    parser.add_argument("--n-folds", type=int, default=None,
                        help="Number of cross-validation folds")
    parser.add_argument("--random-state", type=int, default=None,
                        help="Seed for partitioning and permutations")
    parser.add_argument("--de-methods", type=str, nargs="+", default=None,
                        choices=["sam", "moderated_t", "maxt", "welch_bh"],
                        help="DE methods in the consensus")
    parser.add_argument("--de-comp-perc", type=float, default=None,
                        help="Response percentile splitting sensitive/resistant")
    parser.add_argument("--rm-extreme-perc", type=float, default=None,
                        help="Fraction of extreme responses trimmed per tail")
    parser.add_argument("--sam-perm", type=int, default=None,
                        help="SAM permutations")
    parser.add_argument("--mult-perm", type=int, default=None,
                        help="maxT permutations")
    parser.add_argument("--sam-fdr", type=float, default=None,
                        help="SAM q-value cutoff")
    parser.add_argument("--de-alpha", type=float, default=None,
                        help="Adjusted p-value cutoff")
    parser.add_argument("--affinity-sig-perc", type=float, default=None,
                        help="Fraction of strongest co-expression counted as membership")
    parser.add_argument("--conn-cutoff-perc", type=float, default=None,
                        help="Top fraction of connectivity kept")
    parser.add_argument("--n-jobs", type=int, default=None,
                        help="Folds processed in parallel")
    parser.add_argument("--method-timeout", type=float, default=None,
                        help="Per-method deadline in seconds")
    parser.add_argument("--fail-fast", action="store_true",
                        help="Abort on the first DE method failure")
    parser.add_argument("--drop-failed-folds", action="store_true",
                        help="Consolidate over completed folds only")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="cispsig: cisplatin-sensitivity signature extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Download data
  python main.py download --data-dir data

  # Clean and harmonize
  python main.py prepare --data-dir data --output-dir data/processed

  # Extract the signature
  python main.py extract --cell-lines data/processed/cell_lines.csv \\
      --tumor data/processed/tumor_expression.csv.gz --output-dir results

  # Smoke test on planted synthetic data
  python main.py extract --synthetic --sam-perm 50 --mult-perm 200 --output-dir results/synthetic

  # Score samples
  python main.py score --signature results/signature.txt --expression samples.csv
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Download command
    download_parser = subparsers.add_parser("download", help="Download datasets")
    download_parser.add_argument("--data-dir", type=str, default="data",
                                 help="Directory to save data")
    download_parser.add_argument("--skip-large", action="store_true",
                                 help="Skip large files (tumor expression)")
    download_parser.add_argument("--tumor-url", type=str, default=None,
                                 help="Alternative tumor expression matrix URL")

    # Prepare command
    prepare_parser = subparsers.add_parser("prepare", help="Clean and harmonize data")
    prepare_parser.add_argument("--data-dir", type=str, default="data",
                                help="Directory with downloaded data")
    prepare_parser.add_argument("--output-dir", type=str, default="data/processed",
                                help="Directory for cleaned tables")
    prepare_parser.add_argument("--drug", type=str, default="Cisplatin",
                                help="Drug name in GDSC")
    prepare_parser.add_argument("--tumor-prefix", type=str, default=None,
                                help="Keep only tumor samples with this id prefix")
    prepare_parser.add_argument("--tumor-log-transform", action="store_true",
                                help="Apply log2(x + 1) to tumor expression")

    # Extract command
    extract_parser = subparsers.add_parser("extract", help="Extract signature")
    extract_parser.add_argument("--cell-lines", type=str, default="data/processed/cell_lines.csv",
                                help="Cleaned cell-line table")
    extract_parser.add_argument("--tumor", type=str, default="data/processed/tumor_expression.csv.gz",
                                help="Harmonized tumor expression table")
    extract_parser.add_argument("--synthetic", action="store_true",
                                help="Use planted-signal synthetic data")
    extract_parser.add_argument("--output-dir", type=str, default="results",
                                help="Directory for artifacts")
    add_config_arguments(extract_parser)

    # Score command
    score_parser = subparsers.add_parser("score", help="Score samples")
    score_parser.add_argument("--signature", type=str, required=True,
                              help="Signature file (one gene per line)")
    score_parser.add_argument("--expression", type=str, required=True,
                              help="Expression table (samples x genes)")
    score_parser.add_argument("--genes-in-rows", action="store_true",
                              help="Expression table has genes in rows")
    score_parser.add_argument("--output", type=str, default="scores.csv",
                              help="Output path")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    from cispsig.exceptions import SignatureError

    try:
        if args.command == "download":
            download_data(args)
        elif args.command == "prepare":
            prepare_data(args)
        elif args.command == "extract":
            extract_signature(args)
        elif args.command == "score":
            score_samples(args)
    except SignatureError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
