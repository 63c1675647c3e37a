import pytest

from cispsig.exceptions import ConfigurationError
from cispsig.signature.consolidation import consolidate_signature


def test_strict_majority_of_five():
    folds = [{"X", "Y"}, {"X", "Y"}, {"X"}, set(), {"Z"}]
    result = consolidate_signature(folds)

    assert result.genes == {"X"}
    assert result.occurrences["X"] == 3
    assert result.occurrences["Y"] == 2
    assert result.min_count == 3


def test_even_fold_count_requires_more_than_half():
    folds = [{"A", "B"}, {"A", "B"}, {"A"}, set()]
    result = consolidate_signature(folds)
    assert result.genes == {"A"}
    assert result.min_count == 3


def test_order_of_folds_irrelevant():
    folds = [{"A"}, {"A", "B"}, {"B"}, {"A", "C"}, {"C"}]
    a = consolidate_signature(folds)
    b = consolidate_signature(list(reversed(folds)))
    assert a.genes == b.genes == {"A"}


def test_duplicates_within_fold_count_once():
    result = consolidate_signature([["A", "A", "A"], [], []])
    assert result.genes == frozenset()
    assert result.occurrences["A"] == 1


def test_explicit_fold_count_with_fewer_sets():
    # Two completed folds voting out of two
    result = consolidate_signature([{"A"}, {"A", "B"}], n_folds=2)
    assert result.genes == {"A"}


def test_occurrences_sorted_by_count():
    result = consolidate_signature([{"B", "A"}, {"A"}, {"C", "A"}])
    assert list(result.occurrences.index) == ["A", "B", "C"]


def test_zero_folds_rejected():
    with pytest.raises(ConfigurationError):
        consolidate_signature([])


def test_more_sets_than_folds_rejected():
    with pytest.raises(ConfigurationError):
        consolidate_signature([{"A"}, {"A"}], n_folds=1)
