"""Custom exceptions for the defect analysis pipeline.

This module defines the error taxonomy raised by `run_pipeline` and the
dataset loader:

- DefectKitError: Base class for all defectkit failures. Catch this to handle
  any pipeline error.
- EmptyDatasetError: Raised when no rows (or no columns) are supplied.
- InvalidTargetError: Raised when target values cannot be normalized to the
  binary pass/fail labels.
- UnsupportedFileTypeError: Raised when the loader is given a file extension
  it cannot decode.

Column validation exceptions (subclass ValueError):
- ColumnsNotFoundError: Raised when requested columns do not exist in the dataset.
"""

from __future__ import annotations


class DefectKitError(Exception):
    """Base exception for all defectkit errors."""


class EmptyDatasetError(DefectKitError, ValueError):
    """Raised when the pipeline or loader receives a dataset with no rows.

    Examples:
        >>> err = EmptyDatasetError()
        >>> str(err)
        'Empty dataset'
    """

    def __init__(self, message: str = "Empty dataset") -> None:
        """Initialize EmptyDatasetError.

        Args:
            message (str): Description of the emptiness condition. Defaults to
                `"Empty dataset"`.
        """
        super().__init__(message)


class InvalidTargetError(DefectKitError, ValueError):
    """Raised when target values cannot be mapped to pass (0) / fail (1) labels.

    Attributes:
        column (str): The target column that failed validation.
        invalid_values (list[str]): Distinct offending raw values (as strings),
            truncated to the first few for readability.

    Examples:
        >>> err = InvalidTargetError(column="Pass/Fail", invalid_values=["2", "n/a"])
        >>> err.column
        'Pass/Fail'
    """

    column: str
    invalid_values: list[str]

    def __init__(self, column: str, invalid_values: list[str]) -> None:
        """Initialize InvalidTargetError.

        Args:
            column (str): The target column name.
            invalid_values (list[str]): Raw values that could not be normalized.
        """
        super().__init__(
            f"Target column '{column}' must contain -1 (fail), 1 (pass) or 0; found invalid values {invalid_values}"
        )
        self.column = column
        self.invalid_values = invalid_values


class UnsupportedFileTypeError(DefectKitError, ValueError):
    """Raised when a dataset file has an extension the loader cannot decode.

    Attributes:
        suffix (str): The rejected file extension, including the leading dot.
    """

    suffix: str

    def __init__(self, suffix: str) -> None:
        """Initialize UnsupportedFileTypeError.

        Args:
            suffix (str): The rejected file extension.
        """
        super().__init__(f"Unsupported file type '{suffix}'; expected .csv, .xlsx or .xls")
        self.suffix = suffix


class ColumnsNotFoundError(ValueError):
    """Raised when requested columns do not exist in the dataset.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the dataset.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["x", "y"],
        ...     available_columns=["a", "b", "c"],
        ... )
        >>> err.missing_columns
        ['x', 'y']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the dataset.
            available_columns (list[str]): Column names present in the dataset.
        """
        super().__init__(f"Columns not found in dataset: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns
