import typing as t
from datetime import UTC, datetime

import polars as pl
import pydantic


class WordScore(pydantic.BaseModel):
    word: str
    score: float


class Topic(pydantic.BaseModel):
    id: int
    "The topic identifier, 0-based"
    label: str | None = None  # user-defined or auto-generated
    top_words: list[str] = pydantic.Field(default_factory=list)
    word_scores: list[WordScore] = pydantic.Field(default_factory=list)
    coherence: float | None = None
    metadata: dict[str, t.Any] = pydantic.Field(default_factory=dict)


# -----------------------------
# Topic Model Run / Results
# -----------------------------


class TopicModelConfig(pydantic.BaseModel):
    algorithm: str  # e.g. "LDA"
    num_topics: int | None = None
    seed: int = 1234


class TopicModelResult(pydantic.BaseModel):
    """A fitted model for one topic count, joined back to corpus identities.

    ``word_topic`` has columns ``topic``, ``word``, ``beta``;
    ``document_topic`` has ``document_id``, ``topic``, ``gamma``.
    """

    model_config = pydantic.ConfigDict(
        arbitrary_types_allowed=True, protected_namespaces=()
    )

    model_id: str
    corpus_id: str
    config: TopicModelConfig
    num_topics: int
    seed: int
    topics: list[Topic]
    word_topic: pl.DataFrame
    document_topic: pl.DataFrame
    metrics: dict[str, float] = pydantic.Field(default_factory=dict)
    created_at: datetime = pydantic.Field(default_factory=lambda: datetime.now(UTC))
