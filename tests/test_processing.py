import numpy as np
import pandas as pd
import pytest

from cispsig.data import (
    CellLineDataset,
    DataProcessor,
    GDSCExpressionLoader,
    GDSCResponseLoader,
    TumorExpressionLoader,
    harmonize_gene_space,
)
from cispsig.exceptions import ConfigurationError


@pytest.fixture
def raw_dir(tmp_path):
    """Miniature GDSC + tumor files in their release layouts."""
    gdsc = tmp_path / "gdsc"
    tumor = tmp_path / "tumor"
    gdsc.mkdir()
    tumor.mkdir()

    pd.DataFrame({
        "COSMIC_ID": [1001, 1001, 1002, 1003, 1004, 1001],
        "CELL_LINE_NAME": ["A", "A", "B", "C", "D", "A"],
        "DRUG_NAME": ["Cisplatin", "Cisplatin", "cisplatin", "Cisplatin", "Cisplatin", "Docetaxel"],
        "LN_IC50": [np.log(4.0), np.log(16.0), np.log(2.0), np.log(8.0), np.nan, 0.0],
        "AUC": [0.8, 0.6, 0.9, 0.7, 0.5, 0.1],
    }).to_csv(gdsc / "dose_response.csv", index=False)

    pd.DataFrame({
        "GENE_SYMBOLS": ["TP53", "ERCC1", "ERCC1", None, "XPA"],
        "GENE_title": ["t1", "t2", "t3", "t4", "t5"],
        "DATA.1001": [1.0, 2.0, 4.0, 9.0, 5.0],
        "DATA.1002": [2.0, 3.0, 5.0, 9.0, np.nan],
        "DATA.1003": [3.0, 4.0, 6.0, 9.0, 7.0],
        "DATA.1005": [4.0, 5.0, 7.0, 9.0, 8.0],
    }).to_csv(gdsc / "expression.txt", sep="\t", index=False)

    pd.DataFrame(
        {"T1": [1.0, 2.0, 3.0], "T2": [2.0, 1.0, 0.0], "T3": [0.5, 0.5, 1.5]},
        index=pd.Index(["TP53", "ERCC1", "BRCA1"], name="sample"),
    ).to_csv(tumor / "tumor.tsv", sep="\t")

    return tmp_path


def test_response_loader_filters_drug(raw_dir):
    loader = GDSCResponseLoader(raw_dir / "gdsc", drug_name="Cisplatin", filename="dose_response.csv")
    data = loader.load()
    assert len(data) == 5
    assert loader.validate()


def test_response_loader_unknown_drug(raw_dir):
    loader = GDSCResponseLoader(raw_dir / "gdsc", drug_name="Aspirin", filename="dose_response.csv")
    with pytest.raises(ValueError):
        loader.load()


def test_missing_file_points_to_download(tmp_path):
    loader = GDSCResponseLoader(tmp_path)
    with pytest.raises(FileNotFoundError, match="download"):
        loader.load()


def test_expression_loader_layout(raw_dir):
    expression = GDSCExpressionLoader(raw_dir / "gdsc", filename="expression.txt").load()
    assert list(expression.index) == ["1001", "1002", "1003", "1005"]
    assert list(expression.columns) == ["TP53", "ERCC1", "ERCC1", "XPA"]


def test_aggregate_responses_log2(raw_dir):
    raw = GDSCResponseLoader(raw_dir / "gdsc", filename="dose_response.csv").load()
    responses = DataProcessor.aggregate_responses(raw)

    # 1001: mean of ln(4), ln(16) = ln(8) -> log2 = 3
    assert responses.loc["1001", "response"] == pytest.approx(3.0)
    assert responses.loc["1002", "response"] == pytest.approx(1.0)
    assert responses.loc["1001", "auc"] == pytest.approx(0.7)
    assert "1004" not in responses.index


def test_clean_expression_collapses_duplicates(raw_dir):
    raw = GDSCExpressionLoader(raw_dir / "gdsc", filename="expression.txt").load()
    expression = DataProcessor.clean_expression(raw)

    assert sorted(expression.columns) == ["ERCC1", "TP53"]
    assert expression.loc["1001", "ERCC1"] == pytest.approx(3.0)


def test_full_processing(raw_dir):
    processor = DataProcessor(
        response_loader=GDSCResponseLoader(raw_dir / "gdsc", filename="dose_response.csv"),
        expression_loader=GDSCExpressionLoader(raw_dir / "gdsc", filename="expression.txt"),
        tumor_loader=TumorExpressionLoader(raw_dir / "tumor", filename="tumor.tsv"),
    )
    cell_lines, tumor = processor.process()

    assert cell_lines.sample_ids == ["1001", "1002", "1003"]
    assert cell_lines.genes == ["ERCC1", "TP53"]
    assert list(tumor.columns) == ["ERCC1", "TP53"]
    assert list(tumor.index) == ["T1", "T2", "T3"]


def test_harmonize_needs_shared_genes(cell_lines):
    tumor = pd.DataFrame(np.ones((3, 2)), columns=["OTHER1", "OTHER2"])
    with pytest.raises(ConfigurationError):
        harmonize_gene_space(cell_lines, tumor)


def test_harmonize_restricts_both(cell_lines, tumor):
    tumor = tumor.drop(columns=["NOISE0"]).assign(EXTRA=1.0)
    harmonized_cells, harmonized_tumor = harmonize_gene_space(cell_lines, tumor)
    assert harmonized_cells.genes == list(harmonized_tumor.columns)
    assert "NOISE0" not in harmonized_cells.genes
    assert "EXTRA" not in harmonized_tumor.columns


def test_dataset_csv_round_trip(cell_lines, tmp_path):
    path = tmp_path / "cell_lines.csv"
    cell_lines.to_csv(path)
    loaded = CellLineDataset.from_csv(path)

    assert loaded.sample_ids == cell_lines.sample_ids
    assert loaded.genes == cell_lines.genes
    assert np.allclose(loaded.response, cell_lines.response)
    assert loaded.auc is not None


def test_dataset_rejects_missing_response(cell_lines):
    response = cell_lines.response.copy()
    response.iloc[0] = np.nan
    with pytest.raises(ConfigurationError):
        CellLineDataset(response, cell_lines.expression)


def test_dataset_rejects_misaligned_tables(cell_lines):
    with pytest.raises(ConfigurationError):
        CellLineDataset(cell_lines.response.iloc[::-1], cell_lines.expression)
