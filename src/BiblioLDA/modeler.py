import math
import typing as t

import polars as pl

from BiblioLDA.coherence import CoherenceScorer, GensimCoherenceScorer
from BiblioLDA.data_io import ID_COLUMN
from BiblioLDA.fitters import GensimLdaFitter, TopicModelFitter
from BiblioLDA.logging_config import get_logger, setup_logging
from BiblioLDA.matrix import DocumentTermMatrix, build_document_term_matrix
from BiblioLDA.models import PipelineConfig
from BiblioLDA.sweep import (
    SweepResult,
    derive_seeds,
    score_fit,
    sweep_topic_counts,
    top_terms,
)
from BiblioLDA.tokenizer import Corpus, as_corpus, count_tokens
from BiblioLDA.vocabulary import FilterResult, filter_vocabulary
from TopicModeler.base_topic_modeler import BaseTopicModeler
from TopicModeler.models import Topic, TopicModelResult, WordScore

logger = get_logger(__name__)


class PreprocessedCorpus(t.NamedTuple):
    corpus: pl.DataFrame
    tokens: pl.DataFrame
    filtered: FilterResult
    dtm: DocumentTermMatrix


class LdaTopicModeler(BaseTopicModeler):
    """Tokenize, filter, build the DTM, then fit or sweep LDA models."""

    _config: PipelineConfig

    def __init__(
        self,
        model_config: PipelineConfig | None = None,
        fitter: TopicModelFitter | None = None,
        scorer: CoherenceScorer | None = None,
        corpus_id: str = "corpus",
    ):
        model_config = model_config or PipelineConfig()
        # fail before any document is read
        model_config.check_thresholds()
        super().__init__(model_config)
        self.fitter = fitter or GensimLdaFitter()
        self.scorer = scorer or GensimCoherenceScorer()
        self.corpus_id = corpus_id

    def preprocess_documents(self, documents: Corpus) -> PreprocessedCorpus:
        corpus = as_corpus(documents)
        tokens = count_tokens(corpus, self._config.stop_words)
        filtered = filter_vocabulary(
            tokens, corpus.height, self._config.filter_config()
        )
        dtm = build_document_term_matrix(filtered.tokens, corpus[ID_COLUMN])
        return PreprocessedCorpus(corpus, tokens, filtered, dtm)

    def sweep(self, documents: Corpus | PreprocessedCorpus) -> SweepResult:
        """Mean coherence for every k of ``topic_count_range``."""
        dtm = self._dtm(documents)
        return sweep_topic_counts(
            dtm,
            self._config.topic_count_range,
            self.fitter,
            self.scorer,
            seed=self._config.seed,
            top_n=self._config.top_n_terms,
            max_workers=self._config.max_workers,
            timeout=self._config.fit_timeout,
        )

    def run_topic_modeling(
        self,
        documents: Corpus | PreprocessedCorpus,
        num_topics: int | None = None,
    ) -> TopicModelResult:
        """
        Fit a single model and join its weights back to documents and words.

        Raises:
            ValueError: If no topic count is given here or in the config
            FitterFailure: If the fitter rejects ``num_topics``
        """
        k = num_topics if num_topics is not None else self._config.num_topics
        if k is None:
            raise ValueError("num_topics must be given or set in the config")
        dtm = self._dtm(documents)
        (seed,) = derive_seeds(self._config.seed, 1)

        fitted = self.fitter.fit(dtm, k, seed)
        scored = score_fit(dtm, fitted, self.scorer, self._config.top_n_terms)

        terms = top_terms(fitted.beta, self._config.top_n_terms)
        topics = []
        for topic_id in range(k):
            rows = terms.filter(pl.col("topic") == topic_id)
            coherence = (
                scored.topic_coherence[topic_id]
                if topic_id < len(scored.topic_coherence)
                else None
            )
            topics.append(
                Topic(
                    id=topic_id,
                    top_words=rows["word"].to_list(),
                    word_scores=[
                        WordScore(word=w, score=b)
                        for w, b in rows.select("word", "beta").iter_rows()
                    ],
                    coherence=coherence
                    if coherence is not None and math.isfinite(coherence)
                    else None,
                )
            )

        metrics = {"n_documents": float(dtm.n_rows), "n_words": float(dtm.n_cols)}
        if scored.mean_coherence is not None:
            metrics["mean_coherence"] = scored.mean_coherence
        logger.info(f"Fitted {k} topics: {metrics}")

        return TopicModelResult(
            model_id=f"lda-k{k}-seed{seed}",
            corpus_id=self.corpus_id,
            config=self._config,
            num_topics=k,
            seed=seed,
            topics=topics,
            word_topic=fitted.beta,
            document_topic=fitted.gamma,
            metrics=metrics,
        )

    def _dtm(self, documents: Corpus | PreprocessedCorpus) -> DocumentTermMatrix:
        if isinstance(documents, PreprocessedCorpus):
            return documents.dtm
        return self.preprocess_documents(documents).dtm


if __name__ == "__main__":
    import sys

    from BiblioLDA.data_io import DataReader, write_table
    from BiblioLDA.tokenizer import english_stop_words

    setup_logging(level="INFO")

    if len(sys.argv) < 2:
        logger.error("usage: python -m BiblioLDA.modeler CORPUS.csv [K]")
        sys.exit(2)

    reader = DataReader(".")
    documents = reader.read_corpus(sys.argv[1])
    config = PipelineConfig(
        stop_words=english_stop_words(),
        num_topics=int(sys.argv[2]) if len(sys.argv) > 2 else 6,
    )
    modeler = LdaTopicModeler(config)

    try:
        prepared = modeler.preprocess_documents(documents)
        sweep = modeler.sweep(prepared)
        write_table(sweep.to_frame(), "coherence_sweep.csv")

        result = modeler.run_topic_modeling(prepared)
        write_table(result.word_topic, f"beta_k{result.num_topics}.csv")
        write_table(result.document_topic, f"gamma_k{result.num_topics}.csv")
        for topic in result.topics:
            logger.info(f"Topic {topic.id}: {', '.join(topic.top_words)}")
    except Exception as e:
        logger.error(f"Run failed with error: {e}")
        raise
