import math
import time
import typing as t
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

import numpy as np
import polars as pl
import pydantic

from BiblioLDA.coherence import CoherenceScorer
from BiblioLDA.data_io import ID_COLUMN
from BiblioLDA.errors import FitterFailure
from BiblioLDA.fitters import FittedTopics, TopicModelFitter
from BiblioLDA.logging_config import get_logger
from BiblioLDA.matrix import DocumentTermMatrix

logger = get_logger(__name__)

MAX_SEED = 2**31 - 1


class SweepEntry(pydantic.BaseModel):
    k: int
    seed: int
    mean_coherence: float | None = None
    "None when no coherence is available for this k"
    topic_coherence: list[float] = pydantic.Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.mean_coherence is not None


class SweepResult(pydantic.BaseModel):
    entries: list[SweepEntry]

    @property
    def topic_counts(self) -> list[int]:
        return [entry.k for entry in self.entries]

    def mean_coherence(self) -> dict[int, float | None]:
        return {entry.k: entry.mean_coherence for entry in self.entries}

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame(
            [(e.k, e.seed, e.mean_coherence, e.error) for e in self.entries],
            schema={
                "k": pl.Int64,
                "seed": pl.Int64,
                "mean_coherence": pl.Float64,
                "error": pl.Utf8,
            },
            orient="row",
        )


def derive_seeds(seed: int, count: int) -> list[int]:
    """Per-fit seeds drawn once from a generator seeded with ``seed``."""
    rng = np.random.default_rng(seed)
    return [int(s) for s in rng.integers(0, MAX_SEED, size=count)]


def top_terms(beta: pl.DataFrame, n: int = 10) -> pl.DataFrame:
    """
    The ``n`` highest-weighted words of each topic.

    Ties on ``beta`` are broken by ascending word so the selection is the same
    on every run. Adds a 1-based ``rank`` column.
    """
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    return (
        beta.sort(["topic", "beta", "word"], descending=[False, True, False])
        .group_by("topic", maintain_order=True)
        .head(n)
        .with_columns((pl.int_range(pl.len()).over("topic") + 1).alias("rank"))
        .select("topic", "word", "beta", "rank")
    )


def top_words_by_topic(beta: pl.DataFrame, n: int = 10) -> list[list[str]]:
    """Top words per topic, topics in ascending order."""
    terms = top_terms(beta, n)
    return [
        words
        for _, words in terms.group_by("topic", maintain_order=True)
        .agg(pl.col("word"))
        .sort("topic")
        .iter_rows()
    ]


def dominant_topics(gamma: pl.DataFrame) -> pl.DataFrame:
    """Topic with the largest gamma per document, lowest topic number on ties."""
    return (
        gamma.sort([ID_COLUMN, "gamma", "topic"], descending=[False, True, False])
        .group_by(ID_COLUMN, maintain_order=True)
        .first()
        .select(ID_COLUMN, "topic", "gamma")
    )


def score_fit(
    dtm: DocumentTermMatrix,
    fitted: FittedTopics,
    scorer: CoherenceScorer,
    top_n: int = 10,
) -> SweepEntry:
    """Coherence of each topic in ``fitted`` and their mean."""
    top_words = top_words_by_topic(fitted.beta, top_n)
    per_topic = [float(v) for v in scorer.score(dtm, top_words)]
    mean = float(np.mean(per_topic)) if per_topic else math.nan
    if not math.isfinite(mean):
        return SweepEntry(
            k=fitted.k,
            seed=fitted.seed,
            topic_coherence=per_topic,
            error="coherence is not finite",
        )
    return SweepEntry(
        k=fitted.k, seed=fitted.seed, mean_coherence=mean, topic_coherence=per_topic
    )


def _fit_and_score(
    dtm: DocumentTermMatrix,
    k: int,
    seed: int,
    fitter: TopicModelFitter,
    scorer: CoherenceScorer,
    top_n: int,
) -> SweepEntry:
    fitted = fitter.fit(dtm, k, seed)
    return score_fit(dtm, fitted, scorer, top_n)


def _collect(future: Future, k: int, seed: int) -> SweepEntry:
    try:
        entry = future.result()
    except FitterFailure as e:
        message = e.message
    except Exception as e:  # a failing k must not abort the sweep
        message = f"{type(e).__name__}: {e}"
    else:
        logger.info(f"k={k}: mean coherence {entry.mean_coherence}")
        return entry

    return _unavailable(k, seed, message)


def _unavailable(k: int, seed: int, message: str) -> SweepEntry:
    logger.warning(f"k={k}: no coherence available ({message})")
    return SweepEntry(k=k, seed=seed, error=message)


def sweep_topic_counts(
    dtm: DocumentTermMatrix,
    topic_counts: t.Sequence[int],
    fitter: TopicModelFitter,
    scorer: CoherenceScorer,
    seed: int,
    top_n: int = 10,
    max_workers: int = 1,
    timeout: float | None = None,
) -> SweepResult:
    """
    Fit and score one model per candidate topic count.

    Seeds are derived from ``seed`` before any fit starts, so results do not
    depend on ``max_workers`` or completion order. Entries follow
    ``topic_counts``; a k whose fit fails or times out gets
    ``mean_coherence=None`` and an ``error`` message. No best k is chosen.

    Fits start in request order, at most ``max_workers`` at a time. A fit
    that runs past ``timeout`` is abandoned and frees its slot for the next
    queued k; its thread is left to finish on its own.

    Args:
        dtm: Shared, read-only document-term matrix
        topic_counts: Candidate numbers of topics, in output order
        fitter: Topic model capability
        scorer: Coherence capability
        seed: Top-level reproducibility seed
        top_n: Words per topic passed to the scorer
        max_workers: Concurrent fits
        timeout: Seconds each fit may run, counted from its start
    """
    topic_counts = list(topic_counts)
    seeds = derive_seeds(seed, len(topic_counts))
    max_workers = max(1, max_workers)
    logger.info(
        f"Sweeping k in {topic_counts} (seed={seed}, top_n={top_n}, workers={max_workers})"
    )

    entries: list[SweepEntry | None] = [None] * len(topic_counts)
    queued = list(enumerate(zip(topic_counts, seeds)))
    running: dict[Future, tuple[int, int, int, float]] = {}
    abandoned = 0

    # One thread per k so an abandoned fit never holds a queued k's thread;
    # concurrency is capped by the dispatch loop below.
    executor = ThreadPoolExecutor(max_workers=max(1, len(topic_counts)))
    try:
        while queued or running:
            while queued and len(running) < max_workers:
                i, (k, s) = queued.pop(0)
                future = executor.submit(_fit_and_score, dtm, k, s, fitter, scorer, top_n)
                running[future] = (i, k, s, time.monotonic())

            wait_for = None
            if timeout is not None:
                first_deadline = min(start for *_, start in running.values()) + timeout
                wait_for = max(0.0, first_deadline - time.monotonic())
            done, _ = wait(running, timeout=wait_for, return_when=FIRST_COMPLETED)

            for future in done:
                i, k, s, _ = running.pop(future)
                entries[i] = _collect(future, k, s)

            if timeout is not None:
                now = time.monotonic()
                for future, (i, k, s, start) in list(running.items()):
                    if now - start >= timeout and not future.done():
                        running.pop(future)
                        future.cancel()
                        abandoned += 1
                        entries[i] = _unavailable(
                            k, s, f"fit did not finish within {timeout}s"
                        )
    finally:
        executor.shutdown(wait=abandoned == 0, cancel_futures=True)

    failed = sum(1 for e in entries if not e.ok)
    logger.info(f"Sweep complete: {len(entries) - failed} scored, {failed} unavailable")
    return SweepResult(entries=entries)
