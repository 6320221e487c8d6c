import typing as t
from collections import Counter

import nltk
import polars as pl
from nltk.tokenize import RegexpTokenizer

from BiblioLDA.data_io import ID_COLUMN, TEXT_COLUMN, normalize_corpus
from BiblioLDA.errors import EmptyInput
from BiblioLDA.logging_config import get_logger

logger = get_logger(__name__)

# Numbers keep inner periods and commas ("3.14", "1,000"); words keep inner
# apostrophes ("don't"). Anything else, including a period or comma between
# letters as in "fish,water", separates tokens.
TOKEN_PATTERN = r"\d+(?:[.,]\d+)+(?![^\W_])|[^\W_]+(?:'[^\W_]+)*"

_tokenizer = RegexpTokenizer(TOKEN_PATTERN)

Corpus = pl.DataFrame | t.Iterable[tuple[t.Any, str | None]]


def english_stop_words(extra: t.Iterable[str] = ()) -> frozenset[str]:
    """nltk's English stop words plus ``extra``, all lower-cased."""
    nltk.download("stopwords", quiet=True)
    from nltk.corpus import stopwords

    return frozenset(w.lower() for w in [*stopwords.words("english"), *extra])


def tokenize_text(text: str | None) -> list[str]:
    """Lower-case ``text`` and split it into word tokens."""
    if not text:
        return []
    return _tokenizer.tokenize(text.lower())


def as_corpus(documents: Corpus) -> pl.DataFrame:
    """Validated ``document_id``/``full_text`` table from a table or pairs."""
    if isinstance(documents, pl.DataFrame):
        return normalize_corpus(documents)
    rows = list(documents)
    if not rows:
        raise EmptyInput("No documents supplied")
    frame = pl.DataFrame(
        {
            ID_COLUMN: [None if doc_id is None else str(doc_id) for doc_id, _ in rows],
            TEXT_COLUMN: [text for _, text in rows],
        },
        schema={ID_COLUMN: pl.Utf8, TEXT_COLUMN: pl.Utf8},
    )
    return normalize_corpus(frame)


def count_tokens(
    documents: Corpus, stop_words: t.Iterable[str] = frozenset()
) -> pl.DataFrame:
    """
    Count word occurrences per document after stop-word removal.

    Args:
        documents: Corpus table or ordered ``(document_id, full_text)`` pairs
        stop_words: Words to discard, compared case-insensitively

    Returns:
        DataFrame with ``document_id``, ``word`` and ``count`` columns, one row
        per word present in a document. Documents without words have no rows.

    Raises:
        EmptyInput: If there are no documents
        SchemaMismatch: If IDs repeat or the table lacks required columns
    """
    corpus = as_corpus(documents)
    stop = {w.lower() for w in stop_words}
    logger.info(
        f"Tokenizing {corpus.height} documents with {len(stop)} stop words..."
    )

    doc_ids: list[str] = []
    words: list[str] = []
    counts: list[int] = []
    empty_docs = 0

    for doc_id, text in corpus.iter_rows():
        counter = Counter(w for w in tokenize_text(text) if w not in stop)
        if not counter:
            empty_docs += 1
        for word, count in counter.items():
            doc_ids.append(doc_id)
            words.append(word)
            counts.append(count)

    tokens = pl.DataFrame(
        {ID_COLUMN: doc_ids, "word": words, "count": counts},
        schema={ID_COLUMN: pl.Utf8, "word": pl.Utf8, "count": pl.UInt32},
    )
    logger.info(
        f"Tokenization complete: {tokens.height} (document, word) pairs, "
        f"{tokens['word'].n_unique()} distinct words, {empty_docs} documents without words"
    )
    return tokens
