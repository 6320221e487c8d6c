"""
Vocabulary filtering by document frequency.

Every rule only contributes words to one exclusion set, and a word in that set
is dropped from every document. Document frequencies of surviving words are
therefore unchanged by filtering, which makes a second pass with the same
corpus size a no-op.
"""

import re
import typing as t
import warnings

import polars as pl

from BiblioLDA.data_io import ID_COLUMN
from BiblioLDA.errors import AllWordsFiltered, EmptyInput
from BiblioLDA.logging_config import get_logger
from BiblioLDA.models import FilterConfig

logger = get_logger(__name__)

# Optional sign, digits (optionally in comma thousands groups) and an
# optional fraction, or a bare fraction such as ".5".
NUMERIC_PATTERN = re.compile(r"[+-]?(?:(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?|\.\d+)")


class FilterResult(t.NamedTuple):
    tokens: pl.DataFrame
    "Token occurrences restricted to surviving words"
    excluded: pl.DataFrame
    "One row per removed word: word, n_documents, reason"
    emptied_documents: list[str]
    "Documents that had words before filtering and none after"

    @property
    def vocabulary_size(self) -> int:
        return self.tokens["word"].n_unique()


def is_numeric_token(word: str) -> bool:
    """True if ``word`` is an integer or decimal literal, e.g. "1998" or "3.14"."""
    return NUMERIC_PATTERN.fullmatch(word) is not None


def document_frequencies(tokens: pl.DataFrame) -> pl.DataFrame:
    """Number of distinct documents containing each word."""
    return (
        tokens.filter(pl.col("count") > 0)
        .group_by("word")
        .agg(pl.col(ID_COLUMN).n_unique().alias("n_documents"))
        .sort("word")
    )


def _exclusion_reason(
    word: str, n_docs: int, common_limit: float, junk: set[str], config: FilterConfig
) -> str | None:
    if n_docs <= config.singleton_threshold:
        return "rare"
    if n_docs > common_limit:
        return "common"
    if word in junk:
        return "junk"
    if config.drop_numeric and is_numeric_token(word):
        return "numeric"
    return None


def exclusion_table(
    vocabulary: pl.DataFrame, n_documents: int, config: FilterConfig
) -> pl.DataFrame:
    """Words to drop with the first rule that matched them."""
    junk = {w.lower() for w in config.junk_words}
    common_limit = config.common_fraction_threshold * n_documents

    rows = []
    for word, n_docs in vocabulary.select("word", "n_documents").iter_rows():
        reason = _exclusion_reason(word, n_docs, common_limit, junk, config)
        if reason is not None:
            rows.append((word, n_docs, reason))

    return pl.DataFrame(
        rows,
        schema={"word": pl.Utf8, "n_documents": pl.UInt32, "reason": pl.Utf8},
        orient="row",
    )


def filter_vocabulary(
    tokens: pl.DataFrame, n_documents: int, config: FilterConfig | None = None
) -> FilterResult:
    """
    Remove rare, over-common, junk and numeric words from a token table.

    Args:
        tokens: ``document_id``/``word``/``count`` occurrences
        n_documents: Total documents in the corpus, including those with no tokens
        config: Thresholds and exclusion list

    Raises:
        InvalidThreshold: If a threshold is out of range
        EmptyInput: If ``n_documents`` is less than one
    """
    config = config or FilterConfig()
    config.check_thresholds()
    if n_documents < 1:
        raise EmptyInput("Vocabulary filtering needs at least one document")

    vocabulary = document_frequencies(tokens)
    excluded = exclusion_table(vocabulary, n_documents, config)
    kept = tokens
    if excluded.height:
        kept = tokens.filter(~pl.col("word").is_in(excluded["word"].to_list()))

    before = set(tokens[ID_COLUMN].unique())
    after = set(kept[ID_COLUMN].unique())
    emptied = sorted(before - after)

    for reason, n in excluded.group_by("reason").len().sort("reason").iter_rows():
        logger.info(f"Excluded {n} {reason} words")
    logger.info(
        f"Vocabulary filtered: {vocabulary.height} -> {vocabulary.height - excluded.height} words "
        f"(D={n_documents}, common limit={config.common_fraction_threshold * n_documents:g})"
    )
    if emptied:
        logger.warning(f"{len(emptied)} documents lost all of their words")
    if kept.height == 0:
        warnings.warn(
            f"Vocabulary filtering removed every word from {n_documents} documents",
            AllWordsFiltered,
            stacklevel=2,
        )

    return FilterResult(tokens=kept, excluded=excluded, emptied_documents=emptied)
