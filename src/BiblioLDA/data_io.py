from pathlib import Path

import polars as pl

from BiblioLDA.errors import EmptyInput, SchemaMismatch
from BiblioLDA.logging_config import get_logger

logger = get_logger(__name__)

ID_COLUMN = "document_id"
TEXT_COLUMN = "full_text"


def normalize_corpus(
    frame: pl.DataFrame,
    id_column: str = ID_COLUMN,
    text_column: str = TEXT_COLUMN,
) -> pl.DataFrame:
    """
    Validate a corpus table and return it as ``document_id``/``full_text``.

    IDs are cast to strings and missing text becomes the empty string.

    Raises:
        SchemaMismatch: If a column is missing or document IDs repeat
        EmptyInput: If the table has no rows
    """
    missing = [c for c in (id_column, text_column) if c not in frame.columns]
    if missing:
        raise SchemaMismatch(
            f"Corpus is missing column(s) {missing}; found {frame.columns}"
        )

    corpus = frame.select(
        pl.col(id_column).cast(pl.Utf8).alias(ID_COLUMN),
        pl.col(text_column).cast(pl.Utf8).fill_null("").alias(TEXT_COLUMN),
    )
    if corpus.height == 0:
        raise EmptyInput("Corpus contains no documents")
    if corpus[ID_COLUMN].null_count():
        raise SchemaMismatch(f"Column {id_column!r} contains missing IDs")
    if corpus[ID_COLUMN].n_unique() != corpus.height:
        duplicated = corpus.filter(pl.col(ID_COLUMN).is_duplicated())[ID_COLUMN]
        raise SchemaMismatch(
            f"Document IDs must be unique; repeated: {sorted(set(duplicated))[:5]}"
        )
    return corpus


def write_table(frame: pl.DataFrame, path: str | Path, separator: str = ",") -> Path:
    """Write an output table (beta, gamma, sweep...) as delimited text."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.write_csv(path, separator=separator)
    logger.info(f"Wrote {frame.height} rows to {path}")
    return path


class DataReader:
    """A class for reading tabular corpus exports from a data directory."""

    def __init__(self, data_dir: str | Path = "data"):
        """
        Initialize the DataReader with a data directory.

        Args:
            data_dir: Path to the directory containing data files
        """
        self.data_dir = Path(data_dir)
        if not self.data_dir.exists():
            raise ValueError(f"Data directory {data_dir} does not exist")

    def read_corpus(
        self,
        file_path: str | Path,
        id_column: str = ID_COLUMN,
        text_column: str = TEXT_COLUMN,
        separator: str = ",",
    ) -> pl.DataFrame:
        """
        Read a delimited file holding one document per row.

        Args:
            file_path: File path, relative paths resolve against ``data_dir``
            id_column: Column holding the document identifier
            text_column: Column holding the full text
            separator: Field delimiter

        Returns:
            DataFrame with ``document_id`` and ``full_text`` columns
        """
        file_path = Path(file_path)
        if not file_path.is_absolute():
            file_path = self.data_dir / file_path
        if not file_path.exists():
            raise FileNotFoundError(f"File {file_path} not found")

        # Keep IDs as text so leading zeros survive
        frame = pl.read_csv(
            file_path,
            separator=separator,
            infer_schema_length=0,
        )
        corpus = normalize_corpus(frame, id_column, text_column)
        logger.info(f"Read {corpus.height} documents from {file_path}")
        return corpus

    def list_available_files(self) -> list[str]:
        """
        List all available data files in the data directory.

        Returns:
            List of filenames
        """
        return sorted(f.name for f in self.data_dir.iterdir() if f.is_file())
