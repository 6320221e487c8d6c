import typing as t

import numpy as np
import polars as pl
from scipy import sparse

from BiblioLDA.data_io import ID_COLUMN
from BiblioLDA.errors import EmptyInput, SchemaMismatch
from BiblioLDA.logging_config import get_logger

logger = get_logger(__name__)


class Cell(t.NamedTuple):
    document_id: str
    word: str
    count: int


class DocumentTermMatrix:
    """
    Sparse document-by-word count matrix with stable row and column identities.

    Rows follow the order of ``document_ids``; columns are words in lexical
    order. The underlying CSR matrix is never densified by this class and
    should be treated as read-only.
    """

    def __init__(
        self,
        counts: sparse.csr_matrix,
        document_ids: t.Sequence[str],
        words: t.Sequence[str],
    ):
        if counts.shape != (len(document_ids), len(words)):
            raise SchemaMismatch(
                f"Matrix shape {counts.shape} does not match "
                f"{len(document_ids)} documents x {len(words)} words"
            )
        self._counts = counts
        self.document_ids = tuple(document_ids)
        self.words = tuple(words)
        self._row_index = {doc_id: i for i, doc_id in enumerate(self.document_ids)}
        self._column_index = {word: j for j, word in enumerate(self.words)}

    def __repr__(self) -> str:
        return (
            f"DocumentTermMatrix({self.n_rows} documents x {self.n_cols} words, "
            f"nnz={self.nnz}, sparsity={self.sparsity:.2%})"
        )

    def __contains__(self, word: object) -> bool:
        return word in self._column_index

    @property
    def counts(self) -> sparse.csr_matrix:
        return self._counts

    @property
    def n_rows(self) -> int:
        return self._counts.shape[0]

    @property
    def n_cols(self) -> int:
        return self._counts.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self.n_rows, self.n_cols

    @property
    def nnz(self) -> int:
        return int(self._counts.nnz)

    @property
    def density(self) -> float:
        """Fraction of non-zero cells; 0.0 for a matrix without cells."""
        cells = self.n_rows * self.n_cols
        return self.nnz / cells if cells else 0.0

    @property
    def sparsity(self) -> float:
        return 1.0 - self.density if self.n_rows * self.n_cols else 1.0

    def row_index(self, document_id: str) -> int:
        return self._row_index[document_id]

    def column_index(self, word: str) -> int:
        return self._column_index[word]

    def iter_nonzero(self) -> t.Iterator[Cell]:
        """Yield non-zero cells row by row."""
        indptr, indices, data = (
            self._counts.indptr,
            self._counts.indices,
            self._counts.data,
        )
        for i, doc_id in enumerate(self.document_ids):
            for pos in range(indptr[i], indptr[i + 1]):
                if data[pos]:
                    yield Cell(doc_id, self.words[indices[pos]], int(data[pos]))

    def document_frequencies(self) -> np.ndarray:
        """Documents containing each column word."""
        return np.asarray((self._counts > 0).sum(axis=0)).ravel()

    def id2word(self) -> dict[int, str]:
        return dict(enumerate(self.words))

    def to_bow_corpus(self) -> list[list[tuple[int, int]]]:
        """Rows as gensim bag-of-words lists of ``(column, count)``."""
        indptr, indices, data = (
            self._counts.indptr,
            self._counts.indices,
            self._counts.data,
        )
        return [
            [
                (int(indices[pos]), int(data[pos]))
                for pos in range(indptr[i], indptr[i + 1])
                if data[pos]
            ]
            for i in range(self.n_rows)
        ]

    def to_frame(self) -> pl.DataFrame:
        """Non-zero cells as a ``document_id``/``word``/``count`` table."""
        return pl.DataFrame(
            list(self.iter_nonzero()),
            schema={ID_COLUMN: pl.Utf8, "word": pl.Utf8, "count": pl.UInt32},
            orient="row",
        )


def build_document_term_matrix(
    tokens: pl.DataFrame, document_ids: t.Sequence[str] | pl.Series
) -> DocumentTermMatrix:
    """
    Build the sparse DTM for every document of the original corpus.

    Args:
        tokens: Filtered ``document_id``/``word``/``count`` occurrences
        document_ids: All corpus document IDs in row order, including
            documents with no surviving words

    Raises:
        EmptyInput: If ``document_ids`` is empty
        SchemaMismatch: If IDs repeat or tokens reference unknown documents
    """
    document_ids = [str(doc_id) for doc_id in document_ids]
    if not document_ids:
        raise EmptyInput("Cannot build a document-term matrix without documents")
    row_index = {doc_id: i for i, doc_id in enumerate(document_ids)}
    if len(row_index) != len(document_ids):
        raise SchemaMismatch("Document IDs must be unique")

    cells = (
        tokens.filter(pl.col("count") > 0)
        .group_by(ID_COLUMN, "word")
        .agg(pl.col("count").sum())
    )
    unknown = set(cells[ID_COLUMN].unique()) - row_index.keys()
    if unknown:
        raise SchemaMismatch(
            f"Tokens reference {len(unknown)} unknown documents, e.g. {sorted(unknown)[:3]}"
        )

    words = sorted(set(cells["word"]))
    column_index = {word: j for j, word in enumerate(words)}

    rows = np.fromiter(
        (row_index[d] for d in cells[ID_COLUMN]), dtype=np.int64, count=cells.height
    )
    cols = np.fromiter(
        (column_index[w] for w in cells["word"]), dtype=np.int64, count=cells.height
    )
    data = cells["count"].cast(pl.Int64).to_numpy()

    counts = sparse.coo_matrix(
        (data, (rows, cols)), shape=(len(document_ids), len(words)), dtype=np.int64
    ).tocsr()
    counts.sort_indices()

    dtm = DocumentTermMatrix(counts, document_ids, words)
    logger.info(
        f"Document-term matrix: {dtm.n_rows} documents x {dtm.n_cols} words, "
        f"{dtm.nnz} non-zero cells, sparsity {dtm.sparsity:.2%}"
    )
    return dtm
