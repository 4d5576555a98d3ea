"""Preprocessing stages: target detection, label normalization, column screening, scaling and selection.

Each stage consumes the previous stage's output and returns a new, narrower
value; nothing is mutated across stage boundaries. Column screening and
imputation operate on Polars DataFrames; once the surviving columns are
numeric and complete they are packed into a `FeatureSet` and the remaining
stages work on numpy arrays.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import polars as pl
from loguru import logger

from defectkit.exceptions import ColumnsNotFoundError, InvalidTargetError
from defectkit.polars_utils import coerce_numeric
from defectkit.stats import pearson

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

_TARGET_NAME_MARKERS: tuple[str, ...] = ("pass", "fail")
_EXCLUDED_NAME_MARKER: str = "time"
_FAIL_CODE: float = -1.0
_PASS_CODE: float = 1.0
_SCORE_EPSILON: float = 1e-9
_MAX_REPORTED_INVALID_VALUES: int = 5

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class ExcludedFeature(NamedTuple):
    """A feature column that was dropped by a screening stage, with the reason.

    Attributes:
        name (str): The column name that was dropped.
        reason (str): Human-readable explanation for the exclusion.
    """

    name: str
    reason: str


@dataclass(frozen=True)
class FeatureSet:
    """A dense feature matrix together with its ordered column names.

    Attributes:
        columns (tuple[str, ...]): Column names, one per matrix column.
        matrix (np.ndarray): `float64` array with shape `(n_rows, len(columns))`.

    Raises:
        ValueError: If the matrix is not 2-D or its width differs from the
            number of column names.
    """

    columns: tuple[str, ...]
    matrix: np.ndarray

    def __post_init__(self) -> None:
        if self.matrix.ndim != 2 or self.matrix.shape[1] != len(self.columns):
            raise ValueError(
                f"matrix shape {self.matrix.shape} does not match {len(self.columns)} column names"
            )

    @property
    def n_rows(self) -> int:
        """Number of rows in the matrix."""
        return self.matrix.shape[0]

    @property
    def n_columns(self) -> int:
        """Number of feature columns."""
        return len(self.columns)

    def select(self, indices: Sequence[int]) -> FeatureSet:
        """Return a new FeatureSet with only the given column positions, in the given order."""
        positions = list(indices)
        return FeatureSet(
            columns=tuple(self.columns[i] for i in positions),
            matrix=self.matrix[:, positions],
        )


class TrainTestSplit(NamedTuple):
    """Row indices of the training and test partitions.

    Attributes:
        train (np.ndarray): Row indices assigned to training.
        test (np.ndarray): Row indices assigned to testing.
    """

    train: np.ndarray
    test: np.ndarray


# ---------------------------------------------------------------------------
# Public interface -- Target and label handling
# ---------------------------------------------------------------------------


def detect_target_column(columns: Sequence[str], target: str | None = None) -> str:
    """Pick the pass/fail label column.

    The first column whose name contains `"pass"` or `"fail"`
    (case-insensitive) is chosen; when none does, the last column is used.

    Args:
        columns (Sequence[str]): All column names in input order.
        target (str | None): Explicit target column; skips detection.

    Returns:
        str: The target column name.

    Raises:
        ColumnsNotFoundError: If an explicit `target` is not among `columns`.
        ValueError: If `columns` is empty.

    Examples:
        >>> detect_target_column(["Time", "s1", "Pass/Fail"])
        'Pass/Fail'
        >>> detect_target_column(["s1", "s2", "label"])
        'label'
    """
    if not columns:
        raise ValueError("Cannot detect a target column in a dataset without columns")
    if target is not None:
        if target not in columns:
            raise ColumnsNotFoundError(missing_columns=[target], available_columns=list(columns))
        return target
    for col in columns:
        lowered = col.lower()
        if any(marker in lowered for marker in _TARGET_NAME_MARKERS):
            return col
    return columns[-1]


def candidate_feature_columns(columns: Sequence[str], target: str) -> list[str]:
    """Return every non-target column whose name does not contain `"time"` (case-insensitive).

    Args:
        columns (Sequence[str]): All column names in input order.
        target (str): The target column name.

    Returns:
        list[str]: Candidate feature columns in input order.
    """
    return [col for col in columns if col != target and _EXCLUDED_NAME_MARKER not in col.lower()]


def normalize_labels(series: pl.Series) -> np.ndarray:
    """Map raw target values onto fail (1) / pass (0) labels.

    Values are parsed as numbers; `-1` becomes 1 (fail), `1` becomes 0 (pass)
    and any other number is kept as-is, so targets already coded as 0 pass
    through.

    Args:
        series (pl.Series): Raw target values (any dtype castable to string).

    Returns:
        np.ndarray: 1-D `float64` array of 0/1 labels.

    Raises:
        InvalidTargetError: If any value is unparsable or normalizes to
            something other than 0 or 1.

    Examples:
        >>> normalize_labels(pl.Series("Pass/Fail", ["-1", "1", "1"])).tolist()
        [1.0, 0.0, 0.0]
    """
    name = series.name
    raw = pl.col(name)
    labels = (
        coerce_numeric(series.to_frame(), [name])
        .select(
            pl.when(raw == _FAIL_CODE)
            .then(pl.lit(1.0))
            .when(raw == _PASS_CODE)
            .then(pl.lit(0.0))
            .otherwise(raw)
            .alias(name)
        )
        .to_series()
    )

    invalid_mask = labels.is_null() | ~labels.is_in([0.0, 1.0])
    if invalid_mask.any():
        invalid_values = series.filter(invalid_mask).cast(pl.String).fill_null("<missing>").unique(maintain_order=True)
        raise InvalidTargetError(
            column=series.name,
            invalid_values=invalid_values.head(_MAX_REPORTED_INVALID_VALUES).to_list(),
        )
    return labels.to_numpy().astype(np.float64)


# ---------------------------------------------------------------------------
# Public interface -- Column screening and imputation (Polars stages)
# ---------------------------------------------------------------------------


def drop_sparse_columns(
    df: pl.DataFrame,
    columns: Sequence[str],
    max_missing_fraction: float,
) -> tuple[list[str], list[ExcludedFeature]]:
    """Partition columns by the fraction of values that are missing or unparsable.

    Args:
        df (pl.DataFrame): Numeric (`Float64`) DataFrame; nulls mark missing values.
        columns (Sequence[str]): Columns to evaluate.
        max_missing_fraction (float): Columns whose missing fraction is
            strictly greater than this are dropped.

    Returns:
        tuple[list[str], list[ExcludedFeature]]: `(kept_names, excluded_features)`.
    """
    row_count = df.height
    kept: list[str] = []
    excluded: list[ExcludedFeature] = []
    for col in columns:
        missing_fraction = df[col].null_count() / row_count if row_count else 1.0
        if missing_fraction > max_missing_fraction:
            excluded.append(ExcludedFeature(name=col, reason=f"{missing_fraction:.0%} of values missing"))
        else:
            kept.append(col)
    return kept, excluded


def drop_constant_columns(
    df: pl.DataFrame,
    columns: Sequence[str],
) -> tuple[list[str], list[ExcludedFeature]]:
    """Partition columns by whether they carry at least two distinct non-missing values.

    Args:
        df (pl.DataFrame): Numeric (`Float64`) DataFrame; nulls mark missing values.
        columns (Sequence[str]): Columns to evaluate.

    Returns:
        tuple[list[str], list[ExcludedFeature]]: `(kept_names, excluded_features)`.
    """
    kept: list[str] = []
    excluded: list[ExcludedFeature] = []
    for col in columns:
        if df[col].drop_nulls().n_unique() < 2:
            excluded.append(ExcludedFeature(name=col, reason="fewer than 2 distinct values"))
        else:
            kept.append(col)
    return kept, excluded


def impute_median(df: pl.DataFrame, columns: Sequence[str]) -> FeatureSet:
    """Fill missing values with the column median and pack the result into a FeatureSet.

    A column with no observed values is filled with 0.

    Args:
        df (pl.DataFrame): Numeric (`Float64`) DataFrame; nulls mark missing values.
        columns (Sequence[str]): Columns to impute, in output order.

    Returns:
        FeatureSet: Complete (NaN-free) feature matrix.
    """
    if not columns:
        return FeatureSet(columns=(), matrix=np.empty((df.height, 0), dtype=np.float64))
    imputed = df.select([pl.col(col).fill_null(pl.col(col).median()).fill_null(0.0) for col in columns])
    return FeatureSet(columns=tuple(columns), matrix=imputed.to_numpy().astype(np.float64))


# ---------------------------------------------------------------------------
# Public interface -- Scaling and selection (numpy stages)
# ---------------------------------------------------------------------------


def standardize(feature_set: FeatureSet) -> FeatureSet:
    """Z-score every column with its population mean and standard deviation.

    A zero standard deviation is replaced by 1, so such a column becomes all zeros.

    Args:
        feature_set (FeatureSet): Complete feature matrix.

    Returns:
        FeatureSet: Standardized copy.
    """
    if feature_set.n_columns == 0:
        return feature_set
    means = feature_set.matrix.mean(axis=0)
    stds = feature_set.matrix.std(axis=0)
    stds[stds == 0] = 1.0
    return FeatureSet(columns=feature_set.columns, matrix=(feature_set.matrix - means) / stds)


def correlation_sample_indices(n_columns: int, max_columns: int) -> list[int]:
    """Return at most `max_columns` evenly spaced column positions over `range(n_columns)`.

    Examples:
        >>> correlation_sample_indices(10, 4)
        [0, 2, 5, 7]
        >>> correlation_sample_indices(3, 80)
        [0, 1, 2]
    """
    sample_size = min(n_columns, max_columns)
    return [i * n_columns // sample_size for i in range(sample_size)]


def prune_correlated(
    feature_set: FeatureSet,
    *,
    threshold: float,
    max_columns: int,
) -> tuple[FeatureSet, list[ExcludedFeature]]:
    """Keep an evenly spaced column sample, minus columns highly correlated with an earlier one.

    Pairs are visited in sample order; the later column of a pair is dropped
    when `|pearson r| > threshold`. A dropped column is never used as the
    earlier side of a comparison. Columns outside the sample are dropped too.

    Args:
        feature_set (FeatureSet): Standardized feature matrix.
        threshold (float): Absolute correlation cut-off.
        max_columns (int): Maximum number of columns sampled.

    Returns:
        tuple[FeatureSet, list[ExcludedFeature]]: Surviving columns (in
            original relative order) and the dropped ones.
    """
    sample = correlation_sample_indices(feature_set.n_columns, max_columns)
    matrix = feature_set.matrix
    dropped: set[int] = set()
    for position, i in enumerate(sample):
        if i in dropped:
            continue
        for j in sample[position + 1 :]:
            if j in dropped:
                continue
            if abs(pearson(matrix[:, i], matrix[:, j])) > threshold:
                dropped.add(j)

    kept = [i for i in sample if i not in dropped]
    sampled = set(sample)
    excluded = [
        ExcludedFeature(
            name=name,
            reason=f"|correlation| > {threshold} with an earlier column" if i in dropped else "not sampled",
        )
        for i, name in enumerate(feature_set.columns)
        if i in dropped or i not in sampled
    ]
    return feature_set.select(kept), excluded


def score_features(feature_set: FeatureSet, labels: np.ndarray) -> np.ndarray:
    """Score each column by standardized class-mean separation.

    `score = |mean(x | y=1) - mean(x | y=0)| / ((std(x | y=1) + std(x | y=0)) / 2 + 1e-9)`.
    Every score is 0 when either class is absent.

    Args:
        feature_set (FeatureSet): Feature matrix aligned with `labels`.
        labels (np.ndarray): 1-D 0/1 labels.

    Returns:
        np.ndarray: One non-negative score per column.
    """
    positive = labels == 1
    negative = labels == 0
    if not positive.any() or not negative.any():
        return np.zeros(feature_set.n_columns, dtype=np.float64)
    fail_rows = feature_set.matrix[positive]
    pass_rows = feature_set.matrix[negative]
    separation = np.abs(fail_rows.mean(axis=0) - pass_rows.mean(axis=0))
    spread = (fail_rows.std(axis=0) + pass_rows.std(axis=0)) / 2 + _SCORE_EPSILON
    return separation / spread


def select_top_features(
    feature_set: FeatureSet,
    scores: np.ndarray,
    k: int,
) -> tuple[FeatureSet, np.ndarray]:
    """Keep the `k` highest-scoring columns, ordered by descending score.

    Ties keep their original relative order.

    Args:
        feature_set (FeatureSet): Feature matrix.
        scores (np.ndarray): One score per column.
        k (int): Maximum number of columns to keep.

    Returns:
        tuple[FeatureSet, np.ndarray]: The selected columns and their scores,
            both in descending score order.
    """
    order = sorted(range(feature_set.n_columns), key=lambda i: -scores[i])[:k]
    return feature_set.select(order), np.asarray([scores[i] for i in order], dtype=np.float64)


def split_train_test(
    n_rows: int,
    *,
    train_fraction: float,
    rng: np.random.Generator,
) -> TrainTestSplit:
    """Shuffle row indices and cut them at `floor(n_rows * train_fraction)`.

    Args:
        n_rows (int): Number of rows to split.
        train_fraction (float): Share of rows assigned to training.
        rng (np.random.Generator): Shuffle randomness.

    Returns:
        TrainTestSplit: Disjoint index arrays covering `range(n_rows)`.
    """
    shuffled = rng.permutation(n_rows)
    boundary = math.floor(n_rows * train_fraction)
    logger.debug("Rows split", train_count=boundary, test_count=n_rows - boundary)
    return TrainTestSplit(train=shuffled[:boundary], test=shuffled[boundary:])
