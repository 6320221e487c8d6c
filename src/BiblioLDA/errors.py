"""Exceptions and warnings raised by the BiblioLDA pipeline."""


class BiblioLDAError(Exception):
    """Base class for pipeline errors."""


class EmptyInput(BiblioLDAError):
    """No documents were supplied."""


class SchemaMismatch(BiblioLDAError):
    """An input table is missing required columns or breaks its key."""


class InvalidThreshold(BiblioLDAError):
    """A vocabulary threshold is outside its allowed range."""


class FitterFailure(BiblioLDAError):
    """The topic-model fitter rejected k or failed to converge."""

    def __init__(self, k: int, message: str):
        super().__init__(f"k={k}: {message}")
        self.k = k
        self.message = message


class AllWordsFiltered(UserWarning):
    """Vocabulary filtering removed every word from the corpus."""
