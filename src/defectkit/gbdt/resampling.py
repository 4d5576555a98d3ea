"""Synthetic minority oversampling (SMOTE) for binary labels."""

from __future__ import annotations

import numpy as np
from loguru import logger


def smote_balance(
    feature_matrix: np.ndarray,
    labels: np.ndarray,
    *,
    rng: np.random.Generator | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Append synthetic positive rows until both classes have equal counts.

    Each synthetic row is `base + gap * (neighbor - base)`, where `base` and
    `neighbor` are positive (label 1) rows drawn independently with
    replacement and `gap` is uniform in `[0, 1)`, one gap per synthetic row.
    Original rows are returned untouched, ahead of the synthetic ones.

    The input is returned unchanged when negatives do not outnumber
    positives, or when there are no positive rows to interpolate between.

    Args:
        feature_matrix (np.ndarray): 2-D array with shape `(n_samples, n_features)`.
        labels (np.ndarray): 1-D array of 0/1 labels.
        rng (np.random.Generator | None): Randomness for row and gap draws.

    Returns:
        tuple[np.ndarray, np.ndarray]: The `(feature_matrix, labels)` pair
            after balancing.

    Examples:
        >>> X = np.array([[0.0], [1.0], [2.0], [10.0]])
        >>> y = np.array([0.0, 0.0, 0.0, 1.0])
        >>> X_bal, y_bal = smote_balance(X, y, rng=np.random.default_rng(0))
        >>> int(y_bal.sum()), y_bal.shape[0]
        (3, 6)
    """
    feature_matrix = np.asarray(feature_matrix, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.float64)
    minority = np.flatnonzero(labels == 1)
    majority = np.flatnonzero(labels == 0)
    deficit = majority.shape[0] - minority.shape[0]

    if deficit <= 0:
        return feature_matrix, labels
    if minority.shape[0] == 0:
        logger.warning("SMOTE skipped: no minority rows to interpolate", majority_count=int(majority.shape[0]))
        return feature_matrix, labels

    rng = rng if rng is not None else np.random.default_rng()
    bases = feature_matrix[rng.choice(minority, size=deficit)]
    neighbors = feature_matrix[rng.choice(minority, size=deficit)]
    gaps = rng.random(deficit)[:, np.newaxis]
    synthetic = bases + gaps * (neighbors - bases)

    logger.debug("SMOTE synthesized rows", synthetic_count=deficit, minority_count=int(minority.shape[0]))
    return (
        np.vstack([feature_matrix, synthetic]),
        np.concatenate([labels, np.ones(deficit, dtype=np.float64)]),
    )
