import sys

import pandas as pd
import pytest

import main


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["main.py", *argv])
    main.main()


def test_extract_synthetic_then_score(tmp_path, monkeypatch, cell_lines):
    out = tmp_path / "results"
    _run(monkeypatch, "extract", "--synthetic", "--sam-perm", "30", "--mult-perm", "100",
         "--conn-cutoff-perc", "0.1", "--output-dir", str(out))

    signature = (out / "signature.txt").read_text().split()
    assert signature == ["SIG0", "SIG1", "SIG2"]

    table = tmp_path / "cell_lines.csv"
    cell_lines.to_csv(table)
    scores_path = tmp_path / "scores.csv"
    _run(monkeypatch, "score", "--signature", str(out / "signature.txt"),
         "--expression", str(table), "--output", str(scores_path))

    scores = pd.read_csv(scores_path, index_col=0)["signature_score"]
    assert len(scores) == len(cell_lines)


def test_config_file_and_overrides(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text('{"n_folds": 4, "sam_perm": 25}')
    parser_args = type("Args", (), {})()
    for name in ["drug", "n_folds", "random_state", "de_methods", "de_comp_perc",
                 "rm_extreme_perc", "sam_perm", "mult_perm", "sam_fdr", "de_alpha",
                 "affinity_sig_perc", "conn_cutoff_perc", "n_jobs", "method_timeout"]:
        setattr(parser_args, name, None)
    parser_args.config = str(config_path)
    parser_args.n_folds = 3
    parser_args.fail_fast = False
    parser_args.drop_failed_folds = True

    config = main.build_config(parser_args)
    assert config.n_folds == 3
    assert config.sam_perm == 25
    assert config.drop_failed_folds is True
    assert config.fail_fast is False


def test_signature_error_exits_nonzero(tmp_path, monkeypatch):
    with pytest.raises(SystemExit) as info:
        _run(monkeypatch, "extract", "--synthetic", "--n-folds", "1",
             "--output-dir", str(tmp_path))
    assert info.value.code == 1


def test_no_command_prints_help(monkeypatch):
    with pytest.raises(SystemExit):
        _run(monkeypatch)
