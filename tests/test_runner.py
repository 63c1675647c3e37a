import json

import numpy as np
import pytest

from cispsig.data import make_planted_cohort
from cispsig.exceptions import (
    ConfigurationError, IncompleteFoldsError, InsufficientDataError, MethodFailure,
)
from cispsig.extraction import SignatureExtractor


@pytest.mark.parametrize("random_state", [0, 1, 2])
def test_planted_signature_recovered(cell_lines, tumor, fast_config, planted_groups, random_state):
    coexp_signal, signal_only, decoy, noise = planted_groups
    config = fast_config.update(random_state=random_state, conn_cutoff_perc=0.1)

    result = SignatureExtractor(config, show_progress=False).run(cell_lines, tumor)

    assert result.signature == set(coexp_signal)
    assert not result.signature & set(signal_only + decoy + noise)
    assert len(result.completed_folds) == 5
    assert result.consolidated.n_folds == 5


def test_flat_connectivity_lets_every_seed_pass(cell_lines, tumor, fast_config, planted_groups):
    coexp_signal, signal_only, decoy, noise = planted_groups
    result = SignatureExtractor(fast_config, show_progress=False).run(cell_lines, tumor)

    # Fewer than 20% of genes have any connectivity, so the cutoff is 0
    assert set(coexp_signal + signal_only) <= result.signature
    assert not result.signature & set(decoy)


def test_fold_results_carry_stage_counts(cell_lines, tumor, fast_config):
    config = fast_config.update(conn_cutoff_perc=0.1)
    result = SignatureExtractor(config, show_progress=False).run(cell_lines, tumor)

    summary = result.summary()
    assert list(summary.index) == [0, 1, 2, 3, 4]
    assert set(summary["status"]) == {"ok"}
    for column in ["de_sam", "de_moderated_t", "de_maxt", "consensus", "up", "up_kept"]:
        assert column in summary.columns
    assert (summary["up_kept"] <= summary["up"]).all()
    assert (summary["consensus"] <= summary["de_maxt"]).all()

    aurocs = [r.holdout["holdout_auroc"] for r in result.fold_results]
    assert all(0.0 <= a <= 1.0 for a in aurocs)
    assert max(aurocs) > 0.8

    report = json.loads(json.dumps(result.to_dict()))
    assert report["signature"] == sorted(result.signature)
    assert len(report["folds"]) == 5


def test_parallel_matches_sequential(cell_lines, tumor, fast_config):
    sequential = SignatureExtractor(fast_config, show_progress=False).run(cell_lines, tumor)
    parallel = SignatureExtractor(fast_config.update(n_jobs=3), show_progress=False).run(cell_lines, tumor)

    assert parallel.signature == sequential.signature
    for a, b in zip(sequential.fold_results, parallel.fold_results):
        assert a.fold == b.fold
        assert a.seeds.per_method == b.seeds.per_method
        assert a.up.kept == b.up.kept


def test_failed_fold_blocks_consolidation(cell_lines, tumor, fast_config, flaky_methods):
    extractor = SignatureExtractor(fast_config, methods=flaky_methods, show_progress=False)
    with pytest.raises(IncompleteFoldsError, match="1 of 5 folds failed"):
        extractor.run(cell_lines, tumor)


def test_fail_fast_reraises(cell_lines, tumor, fast_config, flaky_methods):
    config = fast_config.update(fail_fast=True)
    extractor = SignatureExtractor(config, methods=flaky_methods, show_progress=False)
    with pytest.raises(MethodFailure) as info:
        extractor.run(cell_lines, tumor)
    assert info.value.method == "welch_bh"
    assert info.value.fold is not None


def test_drop_failed_folds_votes_over_completed(cell_lines, tumor, fast_config, planted_groups,
                                                flaky_methods):
    coexp_signal = planted_groups[0]
    config = fast_config.update(drop_failed_folds=True, conn_cutoff_perc=0.1)
    extractor = SignatureExtractor(config, methods=flaky_methods, show_progress=False)
    result = extractor.run(cell_lines, tumor)

    assert len(result.failed_folds) == 1
    assert len(result.completed_folds) == 4
    assert result.consolidated.n_folds == 4
    assert result.consolidated.min_count == 3
    assert set(coexp_signal) <= result.signature

    failed = result.failed_folds[0]
    assert failed.status == "failed"
    assert failed.failed_method == "welch_bh"
    assert result.summary().loc[failed.fold.index, "status"] == "failed"


def test_insufficient_data_propagates(tumor, fast_config):
    small = make_planted_cohort(n_samples=12, random_state=0)
    config = fast_config.update(n_folds=2)
    with pytest.raises(InsufficientDataError):
        SignatureExtractor(config, show_progress=False).run(small, tumor)


def test_gene_space_mismatch(cell_lines, tumor, fast_config):
    with pytest.raises(ConfigurationError, match="gene spaces differ"):
        SignatureExtractor(fast_config, show_progress=False).run(
            cell_lines, tumor.drop(columns=["NOISE3"])
        )


def test_invalid_config(cell_lines, tumor, fast_config):
    with pytest.raises(ConfigurationError):
        SignatureExtractor(fast_config.update(n_folds=1), show_progress=False).run(cell_lines, tumor)


def test_constant_tumor_genes_excluded(cell_lines, tumor, fast_config, planted_groups):
    tumor = tumor.copy()
    tumor["NOISE0"] = 1.0
    config = fast_config.update(conn_cutoff_perc=0.1)
    result = SignatureExtractor(config, show_progress=False).run(cell_lines, tumor)

    assert result.excluded_genes == ["NOISE0"]
    assert set(planted_groups[0]) <= result.signature


def test_down_branch_reported_separately(cell_lines, tumor, fast_config):
    shifted = cell_lines.expression.copy()
    sensitive = cell_lines.response <= np.quantile(cell_lines.response, 0.2)
    shifted.loc[sensitive.to_numpy(), "NOISE5"] -= 3.0
    dataset = type(cell_lines)(cell_lines.response, shifted, cell_lines.auc)

    result = SignatureExtractor(fast_config, show_progress=False).run(dataset, tumor)

    assert "NOISE5" in result.down_signature
    assert "NOISE5" not in result.signature
