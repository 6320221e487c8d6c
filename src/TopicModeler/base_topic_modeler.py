import typing as t
from abc import ABC, abstractmethod

import polars as pl

from TopicModeler.models import TopicModelConfig, TopicModelResult


class BaseTopicModeler(ABC):
    def __init__(self, model_config: TopicModelConfig):
        self._config = model_config

    @property
    def config(self) -> TopicModelConfig:
        return self._config

    @abstractmethod
    def preprocess_documents(self, documents: pl.DataFrame) -> t.Any:
        pass

    @abstractmethod
    def run_topic_modeling(
        self, documents: pl.DataFrame, *args, **kwargs
    ) -> TopicModelResult:
        pass
