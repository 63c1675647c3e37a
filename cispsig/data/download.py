"""
Data download utilities for cispsig.

Downloads publicly available data from:
- GDSC (Genomics of Drug Sensitivity in Cancer): dose response, basal expression
- UCSC Xena TCGA Pan-Cancer hub: tumor RNA-seq expression
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import requests
from tqdm import tqdm

logger = logging.getLogger(__name__)


class DataDownloader:
    """
    Unified data downloader for all cispsig data sources.

    All data sources are publicly available:
    - GDSC release 8.5: Open access (cancerrxgene.org)
    - TCGA Pan-Cancer Atlas via UCSC Xena: Open access (xenabrowser.net)
    """

    GDSC_BASE = "https://cog.sanger.ac.uk/cancerrxgene/GDSC_release8.5"

    # Local name -> remote file. Cisplatin is screened in GDSC1.
    GDSC_FILES = {
        "dose_response.xlsx": "GDSC1_fitted_dose_response_24Jul22.xlsx",
        "Cell_line_RMA_proc_basalExp.txt.zip": "Cell_line_RMA_proc_basalExp.txt.zip",
    }

    TUMOR_EXPRESSION_URL = (
        "https://tcga-pancan-atlas-hub.s3.us-east-1.amazonaws.com/download/"
        "EB%2B%2BAdjustPANCAN_IlluminaHiSeq_RNASeqV2.geneExp.xena.gz"
    )

    def __init__(self, data_dir: str = "data", tumor_url: Optional[str] = None):
        """
        Initialize the data downloader.

        Args:
            data_dir: Root directory for downloaded data
            tumor_url: Override for the tumor expression matrix URL
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.tumor_url = tumor_url or self.TUMOR_EXPRESSION_URL

        self.dirs = {
            "gdsc": self.data_dir / "gdsc",
            "tumor": self.data_dir / "tumor",
        }
        for d in self.dirs.values():
            d.mkdir(parents=True, exist_ok=True)

    def download_all(self, skip_large: bool = False) -> Dict[str, Optional[bool]]:
        """
        Download all data sources.

        Args:
            skip_large: If True, skip the tumor expression matrix (~300MB)

        Returns:
            Dictionary mapping data source to download success status
        """
        results = {}

        logger.info("Starting cispsig data download...")

        results["gdsc"] = self.download_gdsc()

        if not skip_large:
            results["tumor"] = self.download_tumor_expression()
        else:
            logger.info("Skipping tumor expression download (skip_large=True)")
            results["tumor"] = None

        self._write_manifest(results)
        return results

    def download_gdsc(self) -> bool:
        """Download GDSC dose response and basal expression."""
        logger.info("Downloading GDSC data...")
        success = True

        for local_name, remote_name in tqdm(self.GDSC_FILES.items(), desc="GDSC"):
            output_path = self.dirs["gdsc"] / local_name
            if self._is_present(output_path):
                logger.info(f"  {local_name} already exists, skipping")
                continue

            url = f"{self.GDSC_BASE}/{remote_name}"
            try:
                self._download_file(url, output_path)
                logger.info(f"  Downloaded {local_name}")
            except requests.RequestException as e:
                logger.error(f"  Failed to download {local_name}: {e}")
                success = False

        return success

    def download_tumor_expression(self) -> bool:
        """Download the independent tumor expression matrix."""
        logger.info("Downloading tumor expression matrix...")
        output_path = self.dirs["tumor"] / "tumor_expression.tsv.gz"

        if self._is_present(output_path):
            logger.info("  tumor expression already exists, skipping")
            return True

        try:
            self._download_file(self.tumor_url, output_path)
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to download tumor expression: {e}")
            return False

    @staticmethod
    def _is_present(path: Path) -> bool:
        return path.exists() and path.stat().st_size > 0

    def _download_file(
        self,
        url: str,
        output_path: Path,
        chunk_size: int = 8192,
    ) -> None:
        """Download a file from URL with progress bar."""
        partial = output_path.with_suffix(output_path.suffix + ".part")

        response = requests.get(url, stream=True, timeout=60)
        response.raise_for_status()

        total_size = int(response.headers.get('content-length', 0))

        try:
            with open(partial, 'wb') as f:
                with tqdm(total=total_size, unit='B', unit_scale=True,
                          desc=output_path.name) as pbar:
                    for chunk in response.iter_content(chunk_size=chunk_size):
                        if chunk:
                            f.write(chunk)
                            pbar.update(len(chunk))
        except Exception:
            partial.unlink(missing_ok=True)
            raise

        partial.replace(output_path)

    def _write_manifest(self, results: Dict[str, Optional[bool]]) -> None:
        """Record sources and outcome next to the data."""
        manifest = {
            "gdsc": {
                "base_url": self.GDSC_BASE,
                "files": self.GDSC_FILES,
                "success": results.get("gdsc"),
            },
            "tumor": {
                "url": self.tumor_url,
                "success": results.get("tumor"),
            },
        }
        with open(self.data_dir / "MANIFEST.json", 'w') as f:
            json.dump(manifest, f, indent=2)
