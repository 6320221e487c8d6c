import typing as t

import numpy as np
import polars as pl
from gensim.models import LdaModel

from BiblioLDA.data_io import ID_COLUMN
from BiblioLDA.errors import FitterFailure
from BiblioLDA.logging_config import get_logger
from BiblioLDA.matrix import DocumentTermMatrix

logger = get_logger(__name__)


class FittedTopics(t.NamedTuple):
    k: int
    seed: int
    beta: pl.DataFrame
    "topic, word, beta; each topic sums to 1 over the vocabulary"
    gamma: pl.DataFrame
    "document_id, topic, gamma; each document sums to 1 over topics"


class TopicModelFitter(t.Protocol):
    def fit(self, dtm: DocumentTermMatrix, k: int, seed: int) -> FittedTopics:
        """Fit ``k`` topics; raise FitterFailure if k is rejected or fitting fails."""
        ...


def beta_table(topic_word: np.ndarray, words: t.Sequence[str]) -> pl.DataFrame:
    """Long ``topic``/``word``/``beta`` table from a (k x V) weight array."""
    k, n_words = topic_word.shape
    return pl.DataFrame(
        {
            "topic": np.repeat(np.arange(k, dtype=np.int64), n_words),
            "word": list(words) * k,
            "beta": topic_word.astype(np.float64).ravel(),
        }
    )


def gamma_table(doc_topic: np.ndarray, document_ids: t.Sequence[str]) -> pl.DataFrame:
    """Long ``document_id``/``topic``/``gamma`` table from a (D x k) weight array."""
    n_docs, k = doc_topic.shape
    return pl.DataFrame(
        {
            ID_COLUMN: np.repeat(np.asarray(document_ids, dtype=object), k).tolist(),
            "topic": np.tile(np.arange(k, dtype=np.int64), n_docs),
            "gamma": doc_topic.astype(np.float64).ravel(),
        },
        schema={ID_COLUMN: pl.Utf8, "topic": pl.Int64, "gamma": pl.Float64},
    )


def check_topic_count(dtm: DocumentTermMatrix, k: int) -> None:
    if k < 1:
        raise FitterFailure(k, "number of topics must be positive")
    if k >= dtm.n_rows:
        raise FitterFailure(
            k, f"number of topics must be smaller than the {dtm.n_rows} documents"
        )
    if dtm.n_cols == 0:
        raise FitterFailure(k, "vocabulary is empty after filtering")


class GensimLdaFitter:
    """Variational LDA from gensim, seeded through ``random_state``."""

    def __init__(
        self,
        passes: int = 10,
        iterations: int = 50,
        alpha: str | float = "symmetric",
        eta: str | float | None = None,
        chunksize: int = 2000,
    ):
        self.passes = passes
        self.iterations = iterations
        self.alpha = alpha
        self.eta = eta
        self.chunksize = chunksize

    def fit(self, dtm: DocumentTermMatrix, k: int, seed: int) -> FittedTopics:
        check_topic_count(dtm, k)
        corpus = dtm.to_bow_corpus()
        logger.info(f"Fitting LDA with k={k}, seed={seed} on {dtm!r}")
        try:
            model = LdaModel(
                corpus=corpus,
                id2word=dtm.id2word(),
                num_topics=k,
                random_state=seed,
                passes=self.passes,
                iterations=self.iterations,
                alpha=self.alpha,
                eta=self.eta,
                chunksize=self.chunksize,
            )
            topic_word = model.get_topics()
            doc_topic, _ = model.inference(corpus)
        except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
            raise FitterFailure(k, f"gensim LdaModel failed: {e}") from e

        doc_topic = doc_topic.astype(np.float64)
        doc_topic /= doc_topic.sum(axis=1, keepdims=True)
        if not (np.isfinite(topic_word).all() and np.isfinite(doc_topic).all()):
            raise FitterFailure(k, "model produced non-finite weights")

        return FittedTopics(
            k=k,
            seed=seed,
            beta=beta_table(topic_word, dtm.words),
            gamma=gamma_table(doc_topic, dtm.document_ids),
        )
