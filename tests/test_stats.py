"""Tests for descriptive statistics: mean, median, std, pearson, gini_impurity, sigmoid."""

from __future__ import annotations

import math

import numpy as np
import pytest
from pytest_check import check

from defectkit.stats import gini_impurity, mean, median, pearson, sigmoid, std


class TestMeanMedianStd:
    """Tests for the single-sequence statistics."""

    def test_mean_of_wafer_thicknesses(self) -> None:
        """The mean should be the arithmetic average."""
        # Arrange
        thicknesses = [724.0, 726.0, 725.0, 725.0]

        # Act
        result = mean(thicknesses)

        # Assert
        assert result == pytest.approx(725.0)

    @pytest.mark.parametrize(
        ("values", "expected"),
        [
            ([3.0, 1.0, 2.0], 2.0),
            ([4.0, 1.0, 3.0, 2.0], 2.5),
            ([7.5], 7.5),
        ],
        ids=["odd", "even", "single"],
    )
    def test_median_handles_odd_and_even_lengths(self, values: list[float], expected: float) -> None:
        """Even-length medians should average the two middle values.

        Args:
            values (list[float]): Input sequence.
            expected (float): Expected median.
        """
        # Act
        result = median(values)

        # Assert
        assert result == pytest.approx(expected)

    def test_std_is_population_form(self) -> None:
        """Standard deviation should divide by n, not n - 1."""
        # Arrange
        values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]

        # Act
        result = std(values)

        # Assert
        assert result == pytest.approx(2.0)

    @pytest.mark.parametrize("func", [mean, median, std], ids=["mean", "median", "std"])
    def test_empty_input_raises(self, func: object) -> None:
        """Statistics over an empty sequence should raise ValueError.

        Args:
            func (object): The statistic under test.
        """
        # Act & Assert
        with pytest.raises(ValueError, match="at least one value"):
            func([])  # type: ignore[operator]


class TestPearson:
    """Tests for the Pearson correlation coefficient."""

    def test_perfect_positive_and_negative_correlation(self) -> None:
        """Linear relationships should give +1 and -1."""
        # Arrange
        voltage = np.array([1.0, 2.0, 3.0, 4.0, 5.0])

        # Act
        positive = pearson(voltage, 2 * voltage + 1)
        negative = pearson(voltage, -3 * voltage)

        # Assert
        with check:
            assert positive == pytest.approx(1.0)
        with check:
            assert negative == pytest.approx(-1.0)

    def test_zero_variance_returns_zero(self) -> None:
        """A constant sequence has no defined correlation; 0 is returned instead of NaN."""
        # Act
        result = pearson([1.0, 2.0, 3.0], [5.0, 5.0, 5.0])

        # Assert
        assert result == 0.0

    def test_matches_numpy_corrcoef(self) -> None:
        """Results should agree with numpy's correlation matrix."""
        # Arrange
        rng = np.random.default_rng(11)
        a = rng.normal(size=50)
        b = 0.3 * a + rng.normal(size=50)

        # Act
        result = pearson(a, b)

        # Assert
        assert result == pytest.approx(np.corrcoef(a, b)[0, 1])

    def test_length_mismatch_raises(self) -> None:
        """Sequences of different length should be rejected."""
        # Act & Assert
        with pytest.raises(ValueError, match="equal-length"):
            pearson([1.0, 2.0], [1.0, 2.0, 3.0])


class TestGiniAndSigmoid:
    """Tests for gini_impurity and sigmoid."""

    @pytest.mark.parametrize("fraction", [0.0, 1.0], ids=["all-pass", "all-fail"])
    def test_pure_node_has_zero_impurity(self, fraction: float) -> None:
        """A node containing one class only should have impurity 0.

        Args:
            fraction (float): Positive fraction of a pure node.
        """
        # Act & Assert
        assert gini_impurity(fraction) == 0.0

    def test_balanced_node_has_half_impurity(self) -> None:
        """A perfectly balanced node should have impurity 0.5."""
        # Act & Assert
        assert gini_impurity(0.5) == pytest.approx(0.5)

    def test_sigmoid_of_zero_is_half(self) -> None:
        """The logistic transform should map 0 to 0.5 and be symmetric."""
        # Act
        result = sigmoid(np.array([0.0, 2.0, -2.0]))

        # Assert
        with check:
            assert result[0] == pytest.approx(0.5)
        with check:
            assert result[1] + result[2] == pytest.approx(1.0)
        with check:
            assert result[1] == pytest.approx(1 / (1 + math.exp(-2.0)))

    def test_sigmoid_handles_extreme_scores_without_overflow(self) -> None:
        """Very large raw scores saturate instead of overflowing `exp`."""
        # Act
        with np.errstate(over="raise"):
            result = sigmoid(np.array([-1000.0, 1000.0]))

        # Assert
        with check:
            assert 0.0 <= result[0] < 1e-200
        with check:
            assert result[1] == 1.0
