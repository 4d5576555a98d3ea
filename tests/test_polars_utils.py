"""Tests for polars_utils module: rows_to_dataframe, coerce_numeric and to_markdown_table."""

from __future__ import annotations

import polars as pl
import pytest
from pytest_check import check

from defectkit.exceptions import EmptyDatasetError
from defectkit.polars_utils import coerce_numeric, rows_to_dataframe, to_markdown_table


class TestRowsToDataFrame:
    """Test suite for rows_to_dataframe."""

    def test_columns_follow_first_row_and_values_are_strings(self) -> None:
        """Column order comes from the first row; every value is stored as text."""
        # Arrange
        rows = [
            {"lot": "L01", "thickness": 724.5, "Pass/Fail": -1},
            {"lot": "L02", "thickness": None, "Pass/Fail": 1},
        ]

        # Act
        df = rows_to_dataframe(rows)

        # Assert
        with check:
            assert df.columns == ["lot", "thickness", "Pass/Fail"]
        with check:
            assert df.dtypes == [pl.String, pl.String, pl.String]
        with check:
            assert df["thickness"].to_list() == ["724.5", None]
        with check:
            assert df["Pass/Fail"].to_list() == ["-1", "1"]

    def test_missing_keys_become_nulls(self) -> None:
        """Keys absent from later rows should become nulls."""
        # Act
        df = rows_to_dataframe([{"a": "1", "b": "2"}, {"a": "3"}])

        # Assert
        assert df["b"].to_list() == ["2", None]

    @pytest.mark.parametrize("rows", [[], [{}]], ids=["no-rows", "no-columns"])
    def test_empty_input_raises(self, rows: list[dict[str, str]]) -> None:
        """No rows, or rows without keys, should raise EmptyDatasetError.

        Args:
            rows (list[dict[str, str]]): Degenerate input.
        """
        # Act & Assert
        with pytest.raises(EmptyDatasetError):
            rows_to_dataframe(rows)


class TestCoerceNumeric:
    """Test suite for coerce_numeric."""

    def test_unparsable_values_become_null(self) -> None:
        """Whitespace is stripped and junk, blanks and NaN literals become nulls."""
        # Arrange
        df = pl.DataFrame({"flow": ["1.5", " 2 ", "abc", "", "NaN", None], "other": ["x"] * 6})

        # Act
        result = coerce_numeric(df, ["flow"])

        # Assert
        with check:
            assert result.columns == ["flow"]
        with check:
            assert result.schema["flow"] == pl.Float64
        with check:
            assert result["flow"].to_list() == [1.5, 2.0, None, None, None, None]

    @pytest.mark.parametrize("text", ["inf", "-inf", "Infinity", " +INF "])
    def test_infinite_values_become_null(self, text: str) -> None:
        """Infinite readings parse as floats but are treated as missing.

        Args:
            text (str): Spelling of an infinite value.
        """
        # Arrange
        df = pl.DataFrame({"flow": ["1.0", text]})

        # Act
        result = coerce_numeric(df, ["flow"])

        # Assert
        assert result["flow"].to_list() == [1.0, None]


class TestToMarkdownTable:
    """Test suite for to_markdown_table function."""

    def test_default_returns_markdown_string(self) -> None:
        """Given DataFrame, When called with defaults, Then returns string with markdown table markers and data."""
        # Arrange
        df = pl.DataFrame({"metric": ["accuracy", "recall"], "value": [0.85, 0.6]})

        # Act
        result = to_markdown_table(df)

        # Assert
        with check:
            assert "|" in result
        with check:
            assert "---" in result
        with check:
            assert "accuracy" in result
        with check:
            assert "0.85" in result

    def test_num_rows_truncates_output(self) -> None:
        """Given a long DataFrame, When num_rows is small, Then later rows are not rendered."""
        # Arrange
        df = pl.DataFrame({"feature": [f"sensor_{i:03d}" for i in range(30)]})

        # Act
        result = to_markdown_table(df, num_rows=4)

        # Assert
        with check:
            assert "sensor_000" in result
        with check:
            assert "sensor_015" not in result

    def test_invalid_num_rows_raises(self) -> None:
        """Given num_rows below 1, Then ValueError is raised."""
        # Act & Assert
        with pytest.raises(ValueError, match="num_rows must be at least 1"):
            to_markdown_table(pl.DataFrame({"a": [1]}), num_rows=0)
