"""
Tests for vocabulary.py: document-frequency thresholds, junk and numeric words.

Usage:
  pytest tests/test_vocabulary.py -v
"""

import polars as pl
import pytest

from BiblioLDA.errors import AllWordsFiltered, EmptyInput, InvalidThreshold
from BiblioLDA.models import FilterConfig
from BiblioLDA.tokenizer import count_tokens
from BiblioLDA.vocabulary import (
    document_frequencies,
    filter_vocabulary,
    is_numeric_token,
)

FISHERIES = [
    ("A", "fish water policy 1998 lorem study"),
    ("B", "fish farm policy 1998 lorem study"),
    ("C", "farm pen study"),
    ("D", "pen salmon"),
    ("E", "salmon tide"),
]


@pytest.fixture
def fisheries_tokens() -> pl.DataFrame:
    return count_tokens(FISHERIES)


def surviving(result) -> set[str]:
    return set(result.tokens["word"])


class TestNumericTokens:
    """Which literals count as numbers."""

    @pytest.mark.parametrize(
        "word",
        ["1998", "3.14", "-2", "+0.5", ".5", "1,000", "12,345.67", "007"],
    )
    def test_numbers(self, word):
        assert is_numeric_token(word)

    @pytest.mark.parametrize(
        "word",
        ["", "1st", "v2", "1e5", "3.14.15", "1,00", "covid19", "ii"],
    )
    def test_not_numbers(self, word):
        assert not is_numeric_token(word)


class TestDocumentFrequencies:
    def test_counts_distinct_documents(self, fisheries_tokens):
        freqs = dict(document_frequencies(fisheries_tokens).iter_rows())
        assert freqs["fish"] == 2
        assert freqs["study"] == 3
        assert freqs["tide"] == 1


class TestFilterVocabulary:
    """Combined exclusion set over a five document corpus."""

    def test_each_rule(self, fisheries_tokens):
        config = FilterConfig(junk_words={"lorem"})
        result = filter_vocabulary(fisheries_tokens, 5, config)

        assert surviving(result) == {"fish", "farm", "pen", "policy", "salmon"}
        reasons = dict(result.excluded.select("word", "reason").iter_rows())
        assert reasons == {
            "water": "rare",
            "tide": "rare",
            "study": "common",
            "lorem": "junk",
            "1998": "numeric",
        }
        assert result.vocabulary_size == 5

    def test_junk_words_are_case_insensitive(self, fisheries_tokens):
        result = filter_vocabulary(fisheries_tokens, 5, FilterConfig(junk_words={"LOREM"}))
        assert "lorem" not in surviving(result)

    def test_numeric_filter_can_be_disabled(self, fisheries_tokens):
        result = filter_vocabulary(fisheries_tokens, 5, FilterConfig(drop_numeric=False))
        assert "1998" in surviving(result)

    def test_common_threshold_is_strict(self):
        tokens = count_tokens(
            [("A", "pen net"), ("B", "pen net"), ("C", "net"), ("D", "other words")]
        )
        # D/2 = 2: "pen" in 2 documents stays, "net" in 3 goes
        result = filter_vocabulary(tokens, 4)
        assert "pen" in surviving(result)
        assert "net" not in surviving(result)

    def test_common_limit_uses_total_documents(self):
        # "pen" is in every tokenised document but only half the corpus
        tokens = count_tokens([("A", "pen"), ("B", "pen"), ("C", ""), ("D", "")])
        assert surviving(filter_vocabulary(tokens, 4)) == {"pen"}

    def test_singleton_threshold_configurable(self, fisheries_tokens):
        result = filter_vocabulary(fisheries_tokens, 5, FilterConfig(singleton_threshold=2))
        assert surviving(result) == set()

    def test_common_fraction_configurable(self, fisheries_tokens):
        result = filter_vocabulary(
            fisheries_tokens, 5, FilterConfig(common_fraction_threshold=1.0)
        )
        assert "study" in surviving(result)

    def test_rows_keep_their_counts(self):
        tokens = count_tokens([("A", "pen pen net"), ("B", "pen net"), ("C", "x")])
        result = filter_vocabulary(tokens, 3, FilterConfig(common_fraction_threshold=1.0))
        rows = {(d, w): c for d, w, c in result.tokens.iter_rows()}
        assert rows == {("A", "pen"): 2, ("A", "net"): 1, ("B", "pen"): 1, ("B", "net"): 1}

    def test_idempotent(self, fisheries_tokens):
        config = FilterConfig(junk_words={"lorem"})
        once = filter_vocabulary(fisheries_tokens, 5, config)
        twice = filter_vocabulary(once.tokens, 5, config)

        assert twice.excluded.height == 0
        assert twice.tokens.equals(once.tokens)

    def test_emptied_documents_reported(self, fisheries_tokens):
        result = filter_vocabulary(fisheries_tokens, 5, FilterConfig(junk_words={"lorem"}))
        assert result.emptied_documents == []

        tokens = count_tokens([("A", "pen net"), ("B", "pen net"), ("C", "lonely")])
        result = filter_vocabulary(tokens, 3, FilterConfig(common_fraction_threshold=1.0))
        assert result.emptied_documents == ["C"]

    def test_everything_filtered_warns(self):
        tokens = count_tokens(
            [
                ("A", "fish fish water"),
                ("B", "fish farm water pen"),
                ("C", "farm pen policy"),
            ]
        )
        with pytest.warns(AllWordsFiltered):
            result = filter_vocabulary(tokens, 3)

        assert result.tokens.height == 0
        assert result.emptied_documents == ["A", "B", "C"]
        assert set(result.excluded["word"]) == {"fish", "water", "farm", "pen", "policy"}


class TestThresholdValidation:
    """Bad configuration fails before any filtering happens."""

    @pytest.mark.parametrize(
        "config",
        [
            FilterConfig(common_fraction_threshold=1.5),
            FilterConfig(common_fraction_threshold=-0.1),
            FilterConfig(singleton_threshold=0),
        ],
    )
    def test_invalid_thresholds(self, fisheries_tokens, config):
        with pytest.raises(InvalidThreshold):
            filter_vocabulary(fisheries_tokens, 5, config)

    def test_zero_documents(self, fisheries_tokens):
        with pytest.raises(EmptyInput):
            filter_vocabulary(fisheries_tokens, 0)
