"""
Persistence of extraction artifacts.

Layout of an output directory:

    folds.h5        per-fold seeds, membership, connectivity and kept genes,
                    grouped by configuration tag then fold
    report.json     configuration, per-fold counts/status, held-out metrics
                    and the final signature
    signature.txt   final signature, one gene per line (sorted)
    down_signature.txt
    config.json     configuration used for the run
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List, Union

import h5py
import numpy as np

from ..config import SignatureConfig

logger = logging.getLogger(__name__)

FOLDS_FILE = "folds.h5"
REPORT_FILE = "report.json"
SIGNATURE_FILE = "signature.txt"
DOWN_SIGNATURE_FILE = "down_signature.txt"
CONFIG_FILE = "config.json"

_STR = h5py.string_dtype(encoding="utf-8")


def _write_strings(group, name: str, values: Iterable[str]) -> None:
    data = np.array(sorted(values), dtype=object)
    group.create_dataset(name, data=data, dtype=_STR)


def _read_strings(group, name: str) -> List[str]:
    return [str(v) for v in group[name].asstr()[()]]


def _write_array(group, name: str, values: np.ndarray) -> None:
    values = np.asarray(values, dtype=float)
    if values.size:
        group.create_dataset(name, data=values, compression="gzip")
    else:
        group.create_dataset(name, data=values)


class ArtifactStore:
    """
    Writes and reads the artifacts of extraction runs.

    Runs with different configurations can share a directory: fold
    artifacts are keyed by the configuration tag.
    """

    def __init__(self, output_dir: Union[str, Path], config: SignatureConfig):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.config = config
        self.tag = config.tag()

    @property
    def folds_path(self) -> Path:
        return self.output_dir / FOLDS_FILE

    def save_folds(self, fold_results, network_genes: List[str]) -> Path:
        """
        Write every fold's intermediate sets to folds.h5.

        Args:
            fold_results: FoldResult list from SignatureExtractor
            network_genes: Column order of membership/connectivity arrays
        """
        with h5py.File(self.folds_path, "a") as h5:
            if self.tag in h5:
                del h5[self.tag]
            run = h5.create_group(self.tag)
            run.attrs["config"] = json.dumps(self.config.to_dict(), sort_keys=True)
            _write_strings(run, "network_genes", network_genes)

            for result in fold_results:
                group = run.create_group(result.fold.name)
                group.attrs["index"] = result.fold.index
                group.attrs["status"] = result.status
                group.attrs["error"] = result.error or ""
                _write_strings(group, "test_ids", result.fold.test_ids)

                if not result.ok:
                    continue

                seeds = group.create_group("seeds")
                for name in ("up", "down", "extra"):
                    _write_strings(seeds, name, getattr(result.seeds, name))
                de = group.create_group("de")
                for method, genes in result.seeds.per_method.items():
                    _write_strings(de, method, genes)

                for direction in ("up", "down"):
                    self._write_connectivity(group.create_group(direction), getattr(result, direction))

        logger.info(f"Saved fold artifacts to {self.folds_path} [{self.tag}]")
        return self.folds_path

    @staticmethod
    def _write_connectivity(group, result) -> None:
        group.attrs["membership_threshold"] = result.membership_threshold
        group.attrs["connectivity_cutoff"] = result.connectivity_cutoff
        _write_strings(group, "seed_genes", result.seed_genes)
        _write_strings(group, "missing_seeds", result.missing_seeds)
        _write_strings(group, "kept", result.kept)
        # Rows follow seed_genes (sorted), columns follow network_genes
        _write_array(group, "membership", result.membership.to_numpy(dtype=float))
        _write_array(group, "connectivity", result.connectivity.to_numpy(dtype=float))

    def load_fold(self, index: int) -> Dict[str, Any]:
        """
        Read one fold's artifacts back.

        Returns:
            Dictionary with status, test_ids and, for completed folds,
            seed sets, per-method DE sets and kept genes per direction
        """
        with h5py.File(self.folds_path, "r") as h5:
            group = h5[self.tag][f"fold_{index}"]
            fold = {
                "index": int(group.attrs["index"]),
                "status": str(group.attrs["status"]),
                "error": str(group.attrs["error"]) or None,
                "test_ids": _read_strings(group, "test_ids"),
            }
            if "seeds" in group:
                fold["seeds"] = {k: set(_read_strings(group["seeds"], k)) for k in group["seeds"]}
                fold["de"] = {k: set(_read_strings(group["de"], k)) for k in group["de"]}
                for direction in ("up", "down"):
                    sub = group[direction]
                    fold[direction] = {
                        "kept": set(_read_strings(sub, "kept")),
                        "seed_genes": _read_strings(sub, "seed_genes"),
                        "connectivity": sub["connectivity"][()],
                        "membership": sub["membership"][()],
                        "connectivity_cutoff": float(sub.attrs["connectivity_cutoff"]),
                    }
        return fold

    def save_result(self, result) -> Path:
        """Write report.json, signature files and config.json."""
        report_path = self.output_dir / REPORT_FILE
        with open(report_path, "w") as f:
            json.dump(result.to_dict(), f, indent=2)

        self.write_signature(result.signature, self.output_dir / SIGNATURE_FILE)
        self.write_signature(result.down_signature, self.output_dir / DOWN_SIGNATURE_FILE)

        with open(self.output_dir / CONFIG_FILE, "w") as f:
            json.dump(self.config.to_dict(), f, indent=2)

        logger.info(f"Saved report to {report_path}")
        return report_path

    @staticmethod
    def write_signature(genes: Iterable[str], path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            for gene in sorted(genes):
                f.write(f"{gene}\n")

    @staticmethod
    def read_signature(path: Union[str, Path]) -> List[str]:
        """Read a signature file (one gene per line, blank lines ignored)."""
        with open(path, "r") as f:
            return [line.strip() for line in f if line.strip()]
