"""Gradient boosting of shallow decision trees under logistic loss."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NamedTuple

import numpy as np
from loguru import logger

from defectkit.gbdt.tree import (
    DEFAULT_MAX_CANDIDATE_FEATURES,
    DEFAULT_MAX_CANDIDATE_THRESHOLDS,
    DEFAULT_MIN_SAMPLES_SPLIT,
    SplitCriterion,
    TreeNode,
    build_tree,
    predict_tree_batch,
)
from defectkit.stats import sigmoid

DEFAULT_N_TREES: int = 60
DEFAULT_LEARNING_RATE: float = 0.1
DEFAULT_WEAK_LEARNER_DEPTH: int = 4
DEFAULT_DECISION_THRESHOLD: float = 0.4  # Below 0.5 to favour recall on the failure class.


class Prediction(NamedTuple):
    """Scored output for one row.

    Attributes:
        probability (float): Logistic transform of the ensemble raw score.
        label (int): 1 when `probability > decision_threshold`, else 0.
    """

    probability: float
    label: int


@dataclass(frozen=True)
class Ensemble:
    """An ordered, immutable sequence of trees sharing one learning rate.

    Attributes:
        trees (tuple[TreeNode, ...]): Weak learners in the order they were fit.
        learning_rate (float): Shrinkage applied to every tree's output.
    """

    trees: tuple[TreeNode, ...]
    learning_rate: float

    def raw_scores(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Return the learning-rate-weighted sum of tree outputs for every row.

        Args:
            feature_matrix (np.ndarray): 2-D array in training column order.

        Returns:
            np.ndarray: 1-D raw (pre-logistic) scores.
        """
        feature_matrix = np.asarray(feature_matrix, dtype=np.float64)
        scores = np.zeros(feature_matrix.shape[0], dtype=np.float64)
        for tree in self.trees:
            scores += self.learning_rate * predict_tree_batch(tree, feature_matrix)
        return scores

    def predict_proba(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Return the positive-class probability for every row."""
        return sigmoid(self.raw_scores(feature_matrix))


def train_ensemble(
    feature_matrix: np.ndarray,
    labels: np.ndarray,
    *,
    n_trees: int = DEFAULT_N_TREES,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    max_depth: int = DEFAULT_WEAK_LEARNER_DEPTH,
    rng: np.random.Generator | None = None,
    criterion: SplitCriterion = "gini",
    min_samples_split: int = DEFAULT_MIN_SAMPLES_SPLIT,
    max_candidate_features: int = DEFAULT_MAX_CANDIDATE_FEATURES,
    max_candidate_thresholds: int = DEFAULT_MAX_CANDIDATE_THRESHOLDS,
) -> Ensemble:
    """Fit `n_trees` weak learners sequentially to logistic-loss residuals.

    Each round converts the running raw scores to probabilities, computes the
    residual `label - probability` (the negative gradient of logistic loss),
    fits one tree of depth `max_depth` against the residuals and adds
    `learning_rate * tree_output` to every row's raw score.

    The weak learner is the same tree builder used for classification. Under
    the default `"gini"` criterion residuals are scored as if they were class
    labels; pass `criterion="variance"` for variance-reduction regression
    trees whose leaves hold mean residuals.

    Args:
        feature_matrix (np.ndarray): 2-D training matrix.
        labels (np.ndarray): 1-D binary labels aligned with the matrix rows.
        n_trees (int): Number of boosting rounds.
        learning_rate (float): Shrinkage applied to each tree's output.
        max_depth (int): Maximum depth of every weak learner.
        rng (np.random.Generator | None): Randomness for feature subsampling.
        criterion (SplitCriterion): Split criterion for the weak learners.
        min_samples_split (int): Minimum rows required to split a node.
        max_candidate_features (int): Features sampled per node.
        max_candidate_thresholds (int): Thresholds tried per feature.

    Returns:
        Ensemble: The fitted ensemble.
    """
    feature_matrix = np.asarray(feature_matrix, dtype=np.float64)
    labels = np.asarray(labels, dtype=np.float64)
    rng = rng if rng is not None else np.random.default_rng()
    tree_kwargs: dict[str, Any] = {
        "max_depth": max_depth,
        "rng": rng,
        "criterion": criterion,
        "min_samples_split": min_samples_split,
        "max_candidate_features": max_candidate_features,
        "max_candidate_thresholds": max_candidate_thresholds,
    }

    raw_scores = np.zeros(labels.shape[0], dtype=np.float64)
    trees: list[TreeNode] = []
    for _ in range(n_trees):
        residuals = labels - sigmoid(raw_scores)
        tree = build_tree(feature_matrix, residuals, **tree_kwargs)
        trees.append(tree)
        raw_scores += learning_rate * predict_tree_batch(tree, feature_matrix)

    logger.debug("Ensemble trained", n_trees=len(trees), n_rows=labels.shape[0], criterion=criterion)
    return Ensemble(trees=tuple(trees), learning_rate=learning_rate)


def predict_ensemble(
    ensemble: Ensemble,
    feature_matrix: np.ndarray,
    *,
    decision_threshold: float = DEFAULT_DECISION_THRESHOLD,
) -> list[Prediction]:
    """Score rows and apply the decision threshold.

    Args:
        ensemble (Ensemble): A fitted ensemble.
        feature_matrix (np.ndarray): 2-D array in training column order.
        decision_threshold (float): Probabilities strictly above this are
            labelled 1.

    Returns:
        list[Prediction]: One prediction per row, in row order.
    """
    probabilities = ensemble.predict_proba(feature_matrix)
    return [Prediction(float(p), int(p > decision_threshold)) for p in probabilities]
