"""Tests for target detection, label normalization, column screening, scaling and selection."""

from __future__ import annotations

import numpy as np
import polars as pl
import pytest
from pytest_check import check

from defectkit.exceptions import ColumnsNotFoundError, InvalidTargetError
from defectkit.polars_utils import coerce_numeric
from defectkit.preprocessing import (
    ExcludedFeature,
    FeatureSet,
    candidate_feature_columns,
    correlation_sample_indices,
    detect_target_column,
    drop_constant_columns,
    drop_sparse_columns,
    impute_median,
    normalize_labels,
    prune_correlated,
    score_features,
    select_top_features,
    split_train_test,
    standardize,
)
from defectkit.stats import pearson


def _make_sensor_frame() -> pl.DataFrame:
    """Build a small numeric sensor frame with sparse, constant and informative columns.

    Returns:
        pl.DataFrame: Six rows of `Float64` sensor readings.
    """
    raw = pl.DataFrame({
        "pressure": ["1.0", "2.0", "3.0", "4.0", "5.0", "6.0"],
        "sparse": ["1.0", None, None, None, "x", "2.0"],
        "constant": ["7", "7", "7", " 7 ", "7", None],
        "half_missing": ["1", "2", "3", None, None, None],
    })
    return coerce_numeric(raw, raw.columns)


class TestTargetDetection:
    """Tests for `detect_target_column` and `candidate_feature_columns`."""

    @pytest.mark.parametrize(
        ("columns", "expected"),
        [
            (["Time", "s1", "Pass/Fail"], "Pass/Fail"),
            (["s1", "FAIL_FLAG", "pass_flag"], "FAIL_FLAG"),
            (["s1", "s2", "label"], "label"),
        ],
        ids=["pass-fail", "first-match-wins", "fallback-last"],
    )
    def test_detects_target(self, columns: list[str], expected: str) -> None:
        """The first pass/fail-named column wins; otherwise the last column is used.

        Args:
            columns (list[str]): Column names.
            expected (str): Expected target column.
        """
        # Act
        result = detect_target_column(columns)

        # Assert
        assert result == expected

    def test_explicit_target_overrides_detection(self) -> None:
        """An explicit target should be used as-is when present."""
        # Act
        result = detect_target_column(["s1", "Pass/Fail", "yield_flag"], target="yield_flag")

        # Assert
        assert result == "yield_flag"

    def test_missing_explicit_target_raises(self) -> None:
        """An explicit target absent from the columns should raise ColumnsNotFoundError."""
        # Act & Assert
        with pytest.raises(ColumnsNotFoundError) as exc_info:
            detect_target_column(["s1", "s2"], target="outcome")

        with check:
            assert exc_info.value.missing_columns == ["outcome"]
        with check:
            assert exc_info.value.available_columns == ["s1", "s2"]

    def test_empty_columns_raise(self) -> None:
        """A dataset without columns has no target."""
        # Act & Assert
        with pytest.raises(ValueError, match="without columns"):
            detect_target_column([])

    def test_time_columns_and_target_are_not_candidates(self) -> None:
        """Candidate features exclude the target and any name containing "time" in any case."""
        # Act
        result = candidate_feature_columns(["Timestamp", "s1", "DownTime", "s2", "Pass/Fail"], "Pass/Fail")

        # Assert
        assert result == ["s1", "s2"]


class TestNormalizeLabels:
    """Tests for `normalize_labels`."""

    def test_maps_minus_one_to_fail_and_one_to_pass(self) -> None:
        """-1 should become 1 (fail), 1 should become 0 (pass), 0 stays 0."""
        # Arrange
        series = pl.Series("Pass/Fail", ["-1", "1", " 1 ", "0", "-1.0"])

        # Act
        result = normalize_labels(series)

        # Assert
        with check:
            assert result.dtype == np.float64
        with check:
            assert result.tolist() == [1.0, 0.0, 0.0, 0.0, 1.0]

    def test_integer_series_is_accepted(self) -> None:
        """Integer-typed targets should be normalized like their string form."""
        # Act
        result = normalize_labels(pl.Series("label", [-1, 0, 1]))

        # Assert
        assert result.tolist() == [1.0, 0.0, 0.0]

    def test_invalid_values_raise_with_details(self) -> None:
        """Unparsable, missing and out-of-range values should be reported together."""
        # Arrange
        series = pl.Series("Pass/Fail", ["-1", "2", "n/a", None, "2"])

        # Act & Assert
        with pytest.raises(InvalidTargetError) as exc_info:
            normalize_labels(series)

        with check:
            assert exc_info.value.column == "Pass/Fail"
        with check:
            assert exc_info.value.invalid_values == ["2", "n/a", "<missing>"]


class TestColumnScreening:
    """Tests for `drop_sparse_columns`, `drop_constant_columns` and `impute_median`."""

    def test_drops_columns_above_missing_fraction(self) -> None:
        """Unparsable values count as missing; exactly half missing is kept at a 0.5 limit."""
        # Arrange
        df = _make_sensor_frame()

        # Act
        kept, excluded = drop_sparse_columns(df, df.columns, max_missing_fraction=0.5)

        # Assert
        with check:
            assert kept == ["pressure", "constant", "half_missing"]
        with check:
            assert [feature.name for feature in excluded] == ["sparse"]
        with check:
            assert excluded[0].reason == "67% of values missing"

    def test_drops_constant_columns(self) -> None:
        """Columns with fewer than two distinct observed values are dropped."""
        # Arrange
        df = _make_sensor_frame()

        # Act
        kept, excluded = drop_constant_columns(df, ["pressure", "constant", "half_missing"])

        # Assert
        with check:
            assert kept == ["pressure", "half_missing"]
        with check:
            assert excluded == [ExcludedFeature(name="constant", reason="fewer than 2 distinct values")]

    def test_impute_median_fills_missing_values(self) -> None:
        """Missing values should be replaced by the column median."""
        # Arrange
        df = _make_sensor_frame()

        # Act
        result = impute_median(df, ["half_missing", "pressure"])

        # Assert
        with check:
            assert result.columns == ("half_missing", "pressure")
        with check:
            assert not np.isnan(result.matrix).any()
        with check:
            assert result.matrix[:, 0].tolist() == [1.0, 2.0, 3.0, 2.0, 2.0, 2.0]

    def test_impute_median_without_columns_keeps_row_count(self) -> None:
        """Imputing zero columns should yield an empty-width matrix with the same row count."""
        # Arrange
        df = _make_sensor_frame()

        # Act
        result = impute_median(df, [])

        # Assert
        with check:
            assert result.matrix.shape == (6, 0)
        with check:
            assert result.n_rows == 6


class TestFeatureSet:
    """Tests for the `FeatureSet` container."""

    def test_select_reorders_columns(self) -> None:
        """Selecting positions should reorder names and matrix columns together."""
        # Arrange
        feature_set = FeatureSet(columns=("a", "b", "c"), matrix=np.array([[1.0, 2.0, 3.0]]))

        # Act
        result = feature_set.select([2, 0])

        # Assert
        with check:
            assert result.columns == ("c", "a")
        with check:
            assert result.matrix.tolist() == [[3.0, 1.0]]

    def test_rejects_mismatched_column_names(self) -> None:
        """Matrix width must equal the number of column names."""
        # Act & Assert
        with pytest.raises(ValueError, match="does not match"):
            FeatureSet(columns=("a",), matrix=np.zeros((3, 2)))


class TestStandardize:
    """Tests for `standardize`."""

    def test_columns_have_zero_mean_and_unit_std(self) -> None:
        """Every non-constant column should end with mean 0 and population std 1."""
        # Arrange
        rng = np.random.default_rng(0)
        feature_set = FeatureSet(
            columns=("temp", "flow", "voltage"),
            matrix=rng.normal(loc=[100.0, -3.0, 0.5], scale=[20.0, 0.1, 4.0], size=(50, 3)),
        )

        # Act
        result = standardize(feature_set)

        # Assert
        with check:
            np.testing.assert_allclose(result.matrix.mean(axis=0), 0.0, atol=1e-9)
        with check:
            np.testing.assert_allclose(result.matrix.std(axis=0), 1.0, atol=1e-9)

    def test_zero_variance_column_becomes_zeros(self) -> None:
        """A constant column should be centred without dividing by zero."""
        # Arrange
        feature_set = FeatureSet(columns=("flat",), matrix=np.full((4, 1), 3.0))

        # Act
        result = standardize(feature_set)

        # Assert
        np.testing.assert_array_equal(result.matrix, np.zeros((4, 1)))


class TestPruneCorrelated:
    """Tests for `correlation_sample_indices` and `prune_correlated`."""

    @pytest.mark.parametrize(
        ("n_columns", "max_columns", "expected"),
        [(10, 4, [0, 2, 5, 7]), (3, 80, [0, 1, 2]), (0, 80, [])],
        ids=["sampled", "all", "empty"],
    )
    def test_sample_indices(self, n_columns: int, max_columns: int, expected: list[int]) -> None:
        """Sampling should be evenly spaced and capped at `max_columns`.

        Args:
            n_columns (int): Number of columns.
            max_columns (int): Sample cap.
            expected (list[int]): Expected positions.
        """
        # Act & Assert
        assert correlation_sample_indices(n_columns, max_columns) == expected

    def test_no_surviving_pair_exceeds_threshold(self) -> None:
        """After pruning, every pair of kept columns should have |r| <= threshold."""
        # Arrange
        rng = np.random.default_rng(4)
        base = rng.normal(size=(100, 4))
        near_copies = base[:, :2] + rng.normal(scale=0.05, size=(100, 2))
        feature_set = FeatureSet(
            columns=("a", "b", "c", "d", "a_copy", "b_copy"),
            matrix=np.column_stack([base, near_copies]),
        )

        # Act
        result, excluded = prune_correlated(feature_set, threshold=0.9, max_columns=80)

        # Assert
        with check:
            assert result.columns == ("a", "b", "c", "d")
        with check:
            assert {feature.name for feature in excluded} == {"a_copy", "b_copy"}
        for i in range(result.n_columns):
            for j in range(i + 1, result.n_columns):
                with check:
                    assert abs(pearson(result.matrix[:, i], result.matrix[:, j])) <= 0.9

    def test_dropped_column_is_not_used_for_later_comparisons(self) -> None:
        """A column dropped as a duplicate cannot eliminate columns after it."""
        # Arrange - orthogonal sign patterns give exact correlations: r(a, b) ~ 0.93, r(b, c) ~ 0.94, r(a, c) ~ 0.87
        u = np.array([1.0, -1.0, 1.0, -1.0, 1.0, -1.0, 1.0, -1.0])
        v = np.array([1.0, 1.0, -1.0, -1.0, 1.0, 1.0, -1.0, -1.0])
        w = np.array([1.0, 1.0, 1.0, 1.0, -1.0, -1.0, -1.0, -1.0])
        a = u
        b = u + 0.4 * v
        c = u + 0.4 * v + 0.4 * w
        feature_set = FeatureSet(columns=("a", "b", "c"), matrix=np.column_stack([a, b, c]))

        # Act
        result, _ = prune_correlated(feature_set, threshold=0.9, max_columns=80)

        # Assert
        assert result.columns == ("a", "c")

    def test_unsampled_columns_are_excluded(self) -> None:
        """Columns outside the evenly spaced sample should be dropped with their reason."""
        # Arrange
        rng = np.random.default_rng(2)
        feature_set = FeatureSet(columns=tuple(f"s{i}" for i in range(6)), matrix=rng.normal(size=(30, 6)))

        # Act
        result, excluded = prune_correlated(feature_set, threshold=0.9, max_columns=3)

        # Assert
        with check:
            assert result.columns == ("s0", "s2", "s4")
        with check:
            assert excluded == [ExcludedFeature(name, "not sampled") for name in ("s1", "s3", "s5")]


class TestFeatureScoring:
    """Tests for `score_features` and `select_top_features`."""

    def test_separating_column_scores_highest(self) -> None:
        """A column shifted between classes should outscore a noise column."""
        # Arrange
        rng = np.random.default_rng(3)
        labels = np.array([0.0, 1.0] * 50)
        shifted = labels * 3.0 + rng.normal(size=100)
        noise = rng.normal(size=100)
        feature_set = FeatureSet(columns=("noise", "shifted"), matrix=np.column_stack([noise, shifted]))

        # Act
        scores = score_features(feature_set, labels)

        # Assert
        with check:
            assert scores[1] > scores[0]
        with check:
            assert np.all(scores >= 0)

    def test_single_class_scores_zero(self) -> None:
        """Scores are 0 when one class is absent."""
        # Arrange
        feature_set = FeatureSet(columns=("a", "b"), matrix=np.arange(8, dtype=np.float64).reshape(4, 2))

        # Act
        scores = score_features(feature_set, np.zeros(4))

        # Assert
        np.testing.assert_array_equal(scores, np.zeros(2))

    def test_select_top_features_orders_by_descending_score(self) -> None:
        """Top-k selection should sort by score with ties in original order."""
        # Arrange
        feature_set = FeatureSet(columns=("a", "b", "c", "d"), matrix=np.eye(4))
        scores = np.array([0.5, 2.0, 0.5, 1.0])

        # Act
        result, top_scores = select_top_features(feature_set, scores, k=3)

        # Assert
        with check:
            assert result.columns == ("b", "d", "a")
        with check:
            assert top_scores.tolist() == [2.0, 1.0, 0.5]


class TestSplitTrainTest:
    """Tests for `split_train_test`."""

    def test_partitions_all_rows(self) -> None:
        """Train and test indices should be disjoint and cover every row."""
        # Act
        split = split_train_test(25, train_fraction=0.8, rng=np.random.default_rng(0))

        # Assert
        with check:
            assert split.train.shape[0] == 20
        with check:
            assert split.test.shape[0] == 5
        with check:
            assert sorted(np.concatenate([split.train, split.test]).tolist()) == list(range(25))

    def test_boundary_is_floored(self) -> None:
        """The training size should be `floor(n * fraction)`."""
        # Act
        split = split_train_test(7, train_fraction=0.8, rng=np.random.default_rng(0))

        # Assert
        assert split.train.shape[0] == 5
