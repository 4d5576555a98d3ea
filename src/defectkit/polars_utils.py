"""Utility functions for moving raw datasets in and out of Polars DataFrames."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import polars as pl

from defectkit.exceptions import EmptyDatasetError

type RawValue = str | int | float | None
type Dataset = Sequence[Mapping[str, RawValue]]


def rows_to_dataframe(rows: Dataset) -> pl.DataFrame:
    """Convert a sequence of uniformly keyed rows into an all-string DataFrame.

    Column order follows the keys of the first row. Every value is stored as
    its string form so that numeric parsing happens in one place
    (`coerce_numeric`); `None` and keys absent from a row become nulls.

    Args:
        rows (Dataset): Non-empty sequence of `{column name: raw value}` rows.

    Returns:
        pl.DataFrame: DataFrame with one `pl.String` column per input column.

    Raises:
        EmptyDatasetError: If `rows` is empty or the first row has no columns.

    Examples:
        >>> df = rows_to_dataframe([{"a": "1", "b": 2.5}, {"a": "x", "b": None}])
        >>> df.columns
        ['a', 'b']
        >>> df["b"].to_list()
        ['2.5', None]
    """
    if len(rows) == 0:
        raise EmptyDatasetError()
    columns = list(rows[0].keys())
    if not columns:
        raise EmptyDatasetError("Dataset rows have no columns")

    data = {col: [_to_text(row.get(col)) for row in rows] for col in columns}
    return pl.DataFrame(data, schema=dict.fromkeys(columns, pl.String))


def coerce_numeric(df: pl.DataFrame, columns: Sequence[str]) -> pl.DataFrame:
    """Parse the given string columns as `Float64`, turning unparsable values into nulls.

    Surrounding whitespace is ignored and `NaN` or infinite values are treated
    as missing, so after coercion nulls are the only missing-value marker.

    Args:
        df (pl.DataFrame): DataFrame whose columns hold raw string values.
        columns (Sequence[str]): Columns to parse, in output order.

    Returns:
        pl.DataFrame: A new DataFrame containing only `columns`, all `Float64`.

    Examples:
        >>> df = pl.DataFrame({"a": ["1", " 2.5 ", "abc", "-inf", None]})
        >>> coerce_numeric(df, ["a"])["a"].to_list()
        [1.0, 2.5, None, None, None]
    """
    return df.select([_finite_or_null(pl.col(col).cast(pl.String).str.strip_chars()).alias(col) for col in columns])


def _finite_or_null(text: pl.Expr) -> pl.Expr:
    parsed = text.cast(pl.Float64, strict=False)
    return pl.when(parsed.is_finite()).then(parsed).otherwise(None)


def to_markdown_table(df: pl.DataFrame, num_rows: int | None = None) -> str:
    """Convert a Polars DataFrame to a markdown table string.

    This function temporarily modifies global ``pl.Config`` state to render
    the table and is not thread-safe.

    Args:
        df (pl.DataFrame): The DataFrame to convert.
        num_rows (int | None): Maximum number of rows to display. Defaults to
            all rows.

    Returns:
        str: Markdown-formatted table string.

    Raises:
        ValueError: If `num_rows` is less than 1.

    Examples:
        >>> df = pl.DataFrame({"a": [1, 2, 3], "b": [4, 5, 6]})
        >>> print(to_markdown_table(df))
        | a | b |
        |---|---|
        | 1 | 4 |
        | 2 | 5 |
        | 3 | 6 |
    """
    if num_rows is not None and num_rows < 1:
        raise ValueError(f"num_rows must be at least 1, got {num_rows}")
    with pl.Config(
        tbl_formatting="MARKDOWN",
        tbl_hide_column_data_types=True,
        tbl_hide_column_names=False,
        tbl_hide_dataframe_shape=True,
        tbl_rows=num_rows if num_rows is not None else max(df.height, 1),
        tbl_cols=df.width,
        fmt_str_lengths=200,
    ):
        return str(df)


def _to_text(value: RawValue) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)
