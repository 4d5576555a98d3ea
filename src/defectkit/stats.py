"""Descriptive statistics over numeric sequences.

All functions accept any 1-D array-like of floats and return plain Python
floats. Standard deviation is the population form (divides by `n`).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike


def mean(values: ArrayLike) -> float:
    """Return the arithmetic mean of `values`.

    Args:
        values (ArrayLike): Non-empty 1-D numeric sequence.

    Returns:
        float: The mean.

    Raises:
        ValueError: If `values` is empty.
    """
    array = _as_vector(values)
    return float(array.mean())


def median(values: ArrayLike) -> float:
    """Return the median of `values`, averaging the two middle values for even lengths.

    Args:
        values (ArrayLike): Non-empty 1-D numeric sequence.

    Returns:
        float: The median.

    Raises:
        ValueError: If `values` is empty.
    """
    array = _as_vector(values)
    return float(np.median(array))


def std(values: ArrayLike) -> float:
    """Return the population standard deviation of `values`.

    Args:
        values (ArrayLike): Non-empty 1-D numeric sequence.

    Returns:
        float: The standard deviation (`ddof=0`).

    Raises:
        ValueError: If `values` is empty.
    """
    array = _as_vector(values)
    return float(array.std())


def pearson(a: ArrayLike, b: ArrayLike) -> float:
    """Return the Pearson correlation coefficient between two equal-length sequences.

    Args:
        a (ArrayLike): First 1-D numeric sequence.
        b (ArrayLike): Second 1-D numeric sequence, same length as `a`.

    Returns:
        float: The correlation in `[-1, 1]`, or `0.0` when either sequence
            has zero variance.

    Raises:
        ValueError: If the sequences are empty or differ in length.
    """
    x = _as_vector(a)
    y = _as_vector(b)
    if x.shape != y.shape:
        raise ValueError(f"pearson requires equal-length sequences, got {x.size} and {y.size}")
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denominator == 0:
        return 0.0
    return float(np.sum(dx * dy) / denominator)


def gini_impurity(positive_fraction: float) -> float:
    """Return the binary Gini impurity `1 - p^2 - (1 - p)^2`.

    Args:
        positive_fraction (float): Fraction of positive labels in the node.

    Returns:
        float: 0.0 for a pure node, 0.5 for a perfectly balanced node.
    """
    p = positive_fraction
    return 1.0 - p * p - (1.0 - p) ** 2


def sigmoid(raw: np.ndarray) -> np.ndarray:
    """Apply the logistic transform element-wise.

    Args:
        raw (np.ndarray): Raw (log-odds) scores.

    Returns:
        np.ndarray: Probabilities in `[0, 1]`; inputs are clipped to `[-500, 500]` before exponentiating.
    """
    return 1.0 / (1.0 + np.exp(-np.clip(raw, -500.0, 500.0)))


def _as_vector(values: ArrayLike) -> np.ndarray:
    array = np.asarray(values, dtype=np.float64).ravel()
    if array.size == 0:
        raise ValueError("statistics require at least one value")
    return array
