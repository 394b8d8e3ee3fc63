"""File boundaries: binned dataset and residual input, ranked-pair output."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import numpy as np
import polars as pl
from loguru import logger

from fastinteract.dataset import Dataset
from fastinteract.exceptions import DatasetValidationError, ResidualCountError
from fastinteract.models import ScoredPair
from fastinteract.ranking import ranking_to_frame

_CSV_SEPARATORS: dict[str, str] = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def read_table(path: str | Path) -> pl.DataFrame:
    """Read a CSV, TSV or Parquet file, choosing the reader from the suffix.

    Args:
        path (str | Path): File to read.

    Returns:
        pl.DataFrame: The file contents.

    Raises:
        DatasetValidationError: If the suffix is not supported.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pl.read_parquet(path)
    if suffix in _CSV_SEPARATORS:
        return pl.read_csv(path, separator=_CSV_SEPARATORS[suffix], null_values=["", "?", "NA"])
    raise DatasetValidationError(f"Unsupported dataset file type {suffix!r}; expected .csv, .tsv, .txt or .parquet")


def read_dataset(
    path: str | Path,
    *,
    weight_column: str | None = None,
    exclude: Sequence[str] | None = None,
    bin_counts: Mapping[str, int] | None = None,
) -> Dataset:
    """Read a binned dataset file into a `Dataset`.

    Args:
        path (str | Path): CSV, TSV or Parquet file of binned attribute columns.
        weight_column (str | None): Optional column holding instance weights.
        exclude (Sequence[str] | None): Columns that are not attributes, such as
            labels or identifiers.
        bin_counts (Mapping[str, int] | None): Optional bin counts from the
            upstream discretizer, keyed by column name.

    Returns:
        Dataset: The dataset view with a zero target.
    """
    df = read_table(path)
    logger.info("Dataset read", path=str(path), rows=df.height, columns=df.width)
    return Dataset.from_polars(df, weight=weight_column, exclude=exclude, bin_counts=bin_counts)


def read_residuals(path: str | Path, *, expected_count: int | None = None) -> np.ndarray:
    """Read one residual per line, in instance order.

    Args:
        path (str | Path): Text file with one floating-point value per line.
        expected_count (int | None): When given, the number of values required.

    Returns:
        np.ndarray: float64 residuals.

    Raises:
        ResidualCountError: If `expected_count` is given and does not match.
        DatasetValidationError: If a line is empty or not a number.
    """
    try:
        df = pl.read_csv(
            path,
            has_header=False,
            new_columns=["residual"],
            schema_overrides={"residual": pl.Float64},
        )
    except pl.exceptions.PolarsError as exc:
        raise DatasetValidationError(f"Residual file {str(path)!r} could not be parsed: {exc}") from exc
    series = df["residual"]
    if series.null_count() > 0:
        raise DatasetValidationError(f"Residual file {str(path)!r} contains empty lines")
    residuals = series.to_numpy(allow_copy=True).astype(np.float64)
    if expected_count is not None and residuals.shape[0] != expected_count:
        raise ResidualCountError(expected=expected_count, actual=residuals.shape[0])
    logger.info("Residuals read", path=str(path), count=residuals.shape[0])
    return residuals


def write_ranking(
    path: str | Path,
    ranked: Sequence[ScoredPair],
) -> None:
    """Write a ranking as `f1<TAB>f2<TAB>weight` lines, without a header.

    Args:
        path (str | Path): Output file.
        ranked (Sequence[ScoredPair]): Scored pairs in ranking order.
    """
    ranking_to_frame(ranked).write_csv(path, separator="\t", include_header=False)
    logger.info("Ranking written", path=str(path), pair_count=len(ranked))
