"""
Topic coherence scorers.

Both scorers compute UMass coherence (Mimno et al., 2011) from document
co-occurrence of a topic's top words. ``GensimCoherenceScorer`` is the one the
pipeline uses; ``UMassCoherenceScorer`` sums the pair terms directly from the
matrix and is kept for comparison with tools that report the summed form.

A topic with fewer than two known words has no word pairs and scores 0.0.
"""

import math
import typing as t

import numpy as np
from gensim.corpora import Dictionary
from gensim.models import CoherenceModel

from BiblioLDA.logging_config import get_logger
from BiblioLDA.matrix import DocumentTermMatrix

logger = get_logger(__name__)


class CoherenceScorer(t.Protocol):
    def score(
        self, dtm: DocumentTermMatrix, top_words: t.Sequence[t.Sequence[str]]
    ) -> list[float]:
        """One coherence value per topic, in the order of ``top_words``."""
        ...


def _known_words(dtm: DocumentTermMatrix, words: t.Sequence[str]) -> list[str]:
    known = [w for w in words if w in dtm]
    if len(known) < len(words):
        logger.debug(f"Ignoring {len(words) - len(known)} words missing from the matrix")
    return known


class GensimCoherenceScorer:
    """gensim's ``u_mass`` CoherenceModel over the matrix's bag-of-words corpus.

    gensim averages the pair terms of a topic instead of summing them.
    """

    def score(
        self, dtm: DocumentTermMatrix, top_words: t.Sequence[t.Sequence[str]]
    ) -> list[float]:
        topics = [_known_words(dtm, words) for words in top_words]
        scores = [0.0] * len(topics)
        scorable = [i for i, words in enumerate(topics) if len(words) >= 2]
        if not scorable:
            return scores

        corpus = dtm.to_bow_corpus()
        model = CoherenceModel(
            topics=[topics[i] for i in scorable],
            corpus=corpus,
            dictionary=Dictionary.from_corpus(corpus, id2word=dtm.id2word()),
            coherence="u_mass",
        )
        for i, value in zip(scorable, model.get_coherence_per_topic()):
            scores[i] = float(value)
        return scores


class UMassCoherenceScorer:
    """Summed UMass: ``sum log((D(w_m, w_l) + 1) / D(w_l))`` over pairs ``l < m``."""

    def __init__(self, smoothing: float = 1.0):
        self.smoothing = smoothing

    def score_topic(self, dtm: DocumentTermMatrix, words: t.Sequence[str]) -> float:
        columns = [dtm.column_index(w) for w in _known_words(dtm, words)]
        if len(columns) < 2:
            return 0.0

        present = (dtm.counts[:, columns] > 0).astype(np.int64)
        co_docs = (present.T @ present).toarray()

        total = 0.0
        for m in range(1, len(columns)):
            for l in range(m):
                if co_docs[l, l] == 0:
                    continue
                total += math.log((co_docs[m, l] + self.smoothing) / co_docs[l, l])
        return total

    def score(
        self, dtm: DocumentTermMatrix, top_words: t.Sequence[t.Sequence[str]]
    ) -> list[float]:
        return [self.score_topic(dtm, words) for words in top_words]
