import typing as t

import pydantic

from BiblioLDA.errors import InvalidThreshold
from TopicModeler.models import TopicModelConfig


class FilterConfig(pydantic.BaseModel):
    """Vocabulary thresholds. Optimal values depend on the corpus."""

    model_config = pydantic.ConfigDict(frozen=True)

    singleton_threshold: int = 1
    common_fraction_threshold: float = 0.5
    junk_words: frozenset[str] = frozenset()
    drop_numeric: bool = True

    def check_thresholds(self) -> None:
        if self.singleton_threshold < 1:
            raise InvalidThreshold(
                f"singleton_threshold must be >= 1, got {self.singleton_threshold}"
            )
        if not 0.0 <= self.common_fraction_threshold <= 1.0:
            raise InvalidThreshold(
                "common_fraction_threshold must be within [0, 1], "
                f"got {self.common_fraction_threshold}"
            )


class PipelineConfig(TopicModelConfig):
    algorithm: str = "LDA"
    stop_words: frozenset[str] = frozenset()
    singleton_threshold: int = 1
    common_fraction_threshold: float = 0.5
    junk_words: frozenset[str] = frozenset()
    top_n_terms: int = 10
    topic_count_range: list[int] = pydantic.Field(
        default_factory=lambda: list(range(2, 11))
    )
    max_workers: int = 1
    fit_timeout: float | None = None  # seconds per fit

    @pydantic.field_validator("stop_words", "junk_words", mode="before")
    @classmethod
    def _lower_words(cls, value: t.Iterable[str]) -> frozenset[str]:
        return frozenset(word.lower() for word in value)

    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            singleton_threshold=self.singleton_threshold,
            common_fraction_threshold=self.common_fraction_threshold,
            junk_words=self.junk_words,
        )

    def check_thresholds(self) -> None:
        self.filter_config().check_thresholds()
        if self.top_n_terms < 1:
            raise InvalidThreshold(f"top_n_terms must be >= 1, got {self.top_n_terms}")
