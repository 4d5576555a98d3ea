"""Decode CSV and Excel files into the row sequence accepted by `run_pipeline`."""

from __future__ import annotations

from pathlib import Path

import polars as pl
from loguru import logger

from defectkit.exceptions import EmptyDatasetError, UnsupportedFileTypeError
from defectkit.polars_utils import RawValue

_CSV_SUFFIXES: frozenset[str] = frozenset({".csv"})
_EXCEL_SUFFIXES: frozenset[str] = frozenset({".xlsx", ".xls"})


def read_dataset_frame(path: str | Path) -> pl.DataFrame:
    """Read a dataset file into a DataFrame.

    CSV files are read without schema inference, so every cell stays a string
    and numeric parsing is left to the pipeline. Excel files are read from
    their first sheet. Fully empty lines are skipped.

    Args:
        path (str | Path): Path to a `.csv`, `.xlsx` or `.xls` file.

    Returns:
        pl.DataFrame: The decoded table.

    Raises:
        UnsupportedFileTypeError: If the extension is not supported.
        EmptyDatasetError: If the file contains no data rows.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in _CSV_SUFFIXES:
        df = pl.read_csv(path, infer_schema=False)
    elif suffix in _EXCEL_SUFFIXES:
        df = pl.read_excel(path, sheet_id=1)
    else:
        raise UnsupportedFileTypeError(suffix)

    df = df.filter(~pl.all_horizontal(pl.all().is_null()))
    if df.height == 0:
        raise EmptyDatasetError(f"Empty dataset: '{path.name}' contains no data rows")

    logger.info("Dataset file decoded", path=str(path), rows=df.height, cols=df.width)
    return df


def load_dataset(path: str | Path) -> list[dict[str, RawValue]]:
    """Read a dataset file into a list of `{column name: raw value}` rows.

    Args:
        path (str | Path): Path to a `.csv`, `.xlsx` or `.xls` file.

    Returns:
        list[dict[str, RawValue]]: One dict per data row, keyed by header.

    Raises:
        UnsupportedFileTypeError: If the extension is not supported.
        EmptyDatasetError: If the file contains no data rows.

    Examples:
        >>> rows = load_dataset("wafers.csv")  # doctest: +SKIP
        >>> report = run_pipeline(rows)  # doctest: +SKIP
    """
    return read_dataset_frame(path).to_dicts()
