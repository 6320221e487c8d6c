import threading
import time

import numpy as np
import polars as pl
import pytest

from BiblioLDA.errors import FitterFailure
from BiblioLDA.fitters import FittedTopics, beta_table, check_topic_count, gamma_table
from BiblioLDA.matrix import DocumentTermMatrix, build_document_term_matrix
from BiblioLDA.tokenizer import count_tokens

AQUACULTURE_DOCS = [
    ("r1", "Salmon farm pen net salmon lice"),
    ("r2", "salmon farm net pen feed"),
    ("r3", "Fishery quota policy vessel"),
    ("r4", "quota policy fishery catch"),
    ("r5", "salmon pen feed"),
    ("r6", "policy vessel catch quota"),
]


@pytest.fixture
def aquaculture_docs() -> list[tuple[str, str]]:
    return list(AQUACULTURE_DOCS)


@pytest.fixture
def small_dtm() -> DocumentTermMatrix:
    """d1 {a, b}, d2 {a, b}, d3 {a}, d4 {c}, d5 empty."""
    tokens = pl.DataFrame(
        {
            "document_id": ["d1", "d1", "d2", "d2", "d3", "d4"],
            "word": ["a", "b", "a", "b", "a", "c"],
            "count": [2, 1, 1, 3, 4, 1],
        }
    )
    return build_document_term_matrix(tokens, ["d1", "d2", "d3", "d4", "d5"])


@pytest.fixture
def aquaculture_dtm(aquaculture_docs) -> DocumentTermMatrix:
    tokens = count_tokens(aquaculture_docs)
    return build_document_term_matrix(tokens, [doc_id for doc_id, _ in aquaculture_docs])


class FakeFitter:
    """Deterministic stand-in for an LDA library.

    Weights are drawn from ``seed``; ``fail`` maps k to an exception to raise
    and ``delay`` maps k to seconds to sleep before returning.
    """

    def __init__(self, fail=None, delay=None):
        self.fail = fail or {}
        self.delay = delay or {}
        self.calls: list[tuple[int, int]] = []

    def fit(self, dtm, k, seed):
        self.calls.append((k, seed))
        time.sleep(self.delay.get(k, 0))
        if k in self.fail:
            raise self.fail[k]
        check_topic_count(dtm, k)
        rng = np.random.default_rng(seed)
        topic_word = rng.random((k, dtm.n_cols))
        topic_word /= topic_word.sum(axis=1, keepdims=True)
        doc_topic = np.full((dtm.n_rows, k), 1.0 / k)
        return FittedTopics(
            k=k,
            seed=seed,
            beta=beta_table(topic_word, dtm.words),
            gamma=gamma_table(doc_topic, dtm.document_ids),
        )


class ConstantScorer:
    def __init__(self, value: float = -1.5):
        self.value = value

    def score(self, dtm, top_words):
        return [self.value for _ in top_words]


@pytest.fixture
def fake_fitter() -> FakeFitter:
    return FakeFitter()


@pytest.fixture
def failing_k3_fitter() -> FakeFitter:
    return FakeFitter(fail={3: FitterFailure(3, "did not converge")})


class ConcurrencyTrackingFitter(FakeFitter):
    """Records the largest number of fits running at once."""

    def __init__(self, delay: float):
        super().__init__()
        self.pause = delay
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def fit(self, dtm, k, seed):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.pause)
            return super().fit(dtm, k, seed)
        finally:
            with self._lock:
                self.active -= 1
