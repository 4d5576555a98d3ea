"""Binary decision tree induction over a dense feature matrix.

Trees are built recursively over *index arenas*: every node receives the row
indices it owns into one immutable base matrix instead of a sliced copy of
the data. Nodes are frozen dataclasses, so a built tree is never mutated.

Split search is intentionally approximate: at each node a random subset of
at most `max_candidate_features` features is examined, and for each feature
only the midpoints between its lowest `max_candidate_thresholds + 1`
distinct values are tried.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, NamedTuple

import numpy as np

from defectkit.stats import gini_impurity

# ---------------------------------------------------------------------------
# Public type aliases and constants
# ---------------------------------------------------------------------------

type SplitCriterion = Literal["gini", "variance"]

DEFAULT_MAX_DEPTH: int = 5
DEFAULT_MIN_SAMPLES_SPLIT: int = 10  # Nodes with fewer rows always become leaves.
DEFAULT_MAX_CANDIDATE_FEATURES: int = 20
DEFAULT_MAX_CANDIDATE_THRESHOLDS: int = 10

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LeafNode:
    """Terminal node holding the prediction for every row that reaches it.

    Attributes:
        value (float): Fraction of positive labels among the node's rows
            (`"gini"` criterion) or the mean target (`"variance"` criterion).
        n_samples (int): Number of training rows that reached this leaf.
    """

    value: float
    n_samples: int


@dataclass(frozen=True, slots=True)
class SplitNode:
    """Internal node routing rows left when `x[feature_index] <= threshold`.

    Attributes:
        feature_index (int): Column of the feature matrix tested at this node.
        threshold (float): Split threshold; ties go left.
        gain (float): Impurity reduction achieved by the split.
        left (TreeNode): Subtree for rows with `x[feature_index] <= threshold`.
        right (TreeNode): Subtree for the remaining rows.
        n_samples (int): Number of training rows that reached this node.
    """

    feature_index: int
    threshold: float
    gain: float
    left: TreeNode
    right: TreeNode
    n_samples: int


type TreeNode = LeafNode | SplitNode


class _Split(NamedTuple):
    feature_index: int
    threshold: float
    gain: float
    goes_left: np.ndarray


# ---------------------------------------------------------------------------
# Public interface -- Tree induction
# ---------------------------------------------------------------------------


def build_tree(
    feature_matrix: np.ndarray,
    target: np.ndarray,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    depth: int = 0,
    rng: np.random.Generator | None = None,
    min_samples_split: int = DEFAULT_MIN_SAMPLES_SPLIT,
    max_candidate_features: int = DEFAULT_MAX_CANDIDATE_FEATURES,
    max_candidate_thresholds: int = DEFAULT_MAX_CANDIDATE_THRESHOLDS,
    criterion: SplitCriterion = "gini",
) -> TreeNode:
    """Recursively induce a binary decision tree.

    A node becomes a leaf when `depth >= max_depth`, when it holds fewer than
    `min_samples_split` rows, when it is pure, or when no candidate split
    leaves both children non-empty.

    With the `"gini"` criterion the target is treated as class labels: the
    positive fraction is the share of rows whose target equals exactly 1,
    purity means all or none of the rows are positive, and leaves hold the
    positive fraction. Real-valued targets (boosting residuals) are accepted
    and run through the same arithmetic unchanged. The `"variance"` criterion
    scores splits by variance reduction and stores the mean target in leaves.

    Among candidate splits the first one reaching the strict maximum gain
    wins; candidate feature order is drawn from `rng` at every node.

    Args:
        feature_matrix (np.ndarray): 2-D array with shape `(n_samples, n_features)`.
        target (np.ndarray): 1-D array with shape `(n_samples,)`.
        max_depth (int): Depth at which nodes are forced to be leaves.
        depth (int): Depth of the root being built. Defaults to 0.
        rng (np.random.Generator | None): Source of feature subsampling
            randomness. `None` draws fresh OS entropy.
        min_samples_split (int): Minimum rows required to attempt a split.
        max_candidate_features (int): Features sampled per node.
        max_candidate_thresholds (int): Thresholds tried per feature.
        criterion (SplitCriterion): `"gini"` or `"variance"`.

    Returns:
        TreeNode: Root of the built tree.

    Raises:
        ValueError: If the matrix is not 2-D or its row count differs from
            the target length.

    Examples:
        >>> X = np.arange(20, dtype=float).reshape(-1, 1)
        >>> y = (X[:, 0] >= 10).astype(float)
        >>> root = build_tree(X, y, max_depth=2, rng=np.random.default_rng(0))
        >>> predict_tree(root, np.array([15.0]))
        1.0
    """
    feature_matrix = np.asarray(feature_matrix, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    if feature_matrix.ndim != 2:
        raise ValueError(f"feature_matrix must be 2-D, got shape {feature_matrix.shape}")
    if feature_matrix.shape[0] != target.shape[0]:
        raise ValueError(f"feature_matrix has {feature_matrix.shape[0]} rows but target has {target.shape[0]} values")

    grower = _TreeGrower(
        feature_matrix=feature_matrix,
        target=target,
        rng=rng if rng is not None else np.random.default_rng(),
        max_depth=max_depth,
        min_samples_split=min_samples_split,
        max_candidate_features=max_candidate_features,
        max_candidate_thresholds=max_candidate_thresholds,
        criterion=criterion,
    )
    return grower.grow(np.arange(target.shape[0]), depth)


# ---------------------------------------------------------------------------
# Public interface -- Prediction and introspection
# ---------------------------------------------------------------------------


def predict_tree(node: TreeNode, features: np.ndarray) -> float:
    """Route one feature vector to a leaf and return its value.

    Args:
        node (TreeNode): Root of a built tree.
        features (np.ndarray): 1-D feature vector in training column order.

    Returns:
        float: The value of the leaf reached.
    """
    while isinstance(node, SplitNode):
        node = node.left if features[node.feature_index] <= node.threshold else node.right
    return node.value


def predict_tree_batch(node: TreeNode, feature_matrix: np.ndarray) -> np.ndarray:
    """Predict every row of a feature matrix.

    Args:
        node (TreeNode): Root of a built tree.
        feature_matrix (np.ndarray): 2-D array with shape `(n_samples, n_features)`.

    Returns:
        np.ndarray: 1-D array of leaf values, one per row.
    """
    feature_matrix = np.asarray(feature_matrix, dtype=np.float64)
    predictions = np.empty(feature_matrix.shape[0], dtype=np.float64)
    _route_rows(node, feature_matrix, np.arange(feature_matrix.shape[0]), predictions)
    return predictions


def tree_depth(node: TreeNode) -> int:
    """Return the depth of the deepest leaf (a lone leaf has depth 0)."""
    if isinstance(node, LeafNode):
        return 0
    return 1 + max(tree_depth(node.left), tree_depth(node.right))


def count_leaves(node: TreeNode) -> int:
    """Return the number of leaves in the tree."""
    if isinstance(node, LeafNode):
        return 1
    return count_leaves(node.left) + count_leaves(node.right)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _TreeGrower:
    """Recursive builder sharing the base matrix and parameters across nodes."""

    feature_matrix: np.ndarray
    target: np.ndarray
    rng: np.random.Generator
    max_depth: int
    min_samples_split: int
    max_candidate_features: int
    max_candidate_thresholds: int
    criterion: SplitCriterion

    def grow(self, rows: np.ndarray, depth: int) -> TreeNode:
        node_target = self.target[rows]
        n_samples = rows.shape[0]

        if self._should_stop(node_target, depth):
            return LeafNode(value=self._leaf_value(node_target), n_samples=n_samples)

        split = self._search_best_split(rows, node_target)
        if split is None:
            return LeafNode(value=self._leaf_value(node_target), n_samples=n_samples)

        return SplitNode(
            feature_index=split.feature_index,
            threshold=split.threshold,
            gain=split.gain,
            left=self.grow(rows[split.goes_left], depth + 1),
            right=self.grow(rows[~split.goes_left], depth + 1),
            n_samples=n_samples,
        )

    def _should_stop(self, node_target: np.ndarray, depth: int) -> bool:
        n_samples = node_target.shape[0]
        if depth >= self.max_depth or n_samples < self.min_samples_split:
            return True
        if self.criterion == "gini":
            positives = int(np.count_nonzero(node_target == 1))
            return positives in {0, n_samples}
        return bool(np.ptp(node_target) == 0)

    def _leaf_value(self, node_target: np.ndarray) -> float:
        if node_target.shape[0] == 0:
            return 0.0
        if self.criterion == "gini":
            return float(np.count_nonzero(node_target == 1) / node_target.shape[0])
        return float(node_target.mean())

    def _impurity(self, node_target: np.ndarray) -> float:
        if self.criterion == "gini":
            return gini_impurity(np.count_nonzero(node_target == 1) / node_target.shape[0])
        return float(node_target.var())

    def _search_best_split(self, rows: np.ndarray, node_target: np.ndarray) -> _Split | None:
        n_samples = rows.shape[0]
        n_features = self.feature_matrix.shape[1]
        candidate_features = self.rng.permutation(n_features)[: min(self.max_candidate_features, n_features)]
        parent_impurity = self._impurity(node_target)

        best: _Split | None = None
        best_gain = -math.inf
        for feature_index in candidate_features:
            values = self.feature_matrix[rows, feature_index]
            distinct = np.unique(values)
            for threshold_index in range(min(distinct.shape[0] - 1, self.max_candidate_thresholds)):
                threshold = (distinct[threshold_index] + distinct[threshold_index + 1]) / 2
                goes_left = values <= threshold
                n_left = int(np.count_nonzero(goes_left))
                if n_left in {0, n_samples}:
                    continue
                gain = (
                    parent_impurity
                    - (n_left / n_samples) * self._impurity(node_target[goes_left])
                    - ((n_samples - n_left) / n_samples) * self._impurity(node_target[~goes_left])
                )
                if gain > best_gain:
                    best_gain = gain
                    best = _Split(int(feature_index), float(threshold), float(gain), goes_left)
        return best


def _route_rows(node: TreeNode, feature_matrix: np.ndarray, rows: np.ndarray, out: np.ndarray) -> None:
    if rows.shape[0] == 0:
        return
    if isinstance(node, LeafNode):
        out[rows] = node.value
        return
    goes_left = feature_matrix[rows, node.feature_index] <= node.threshold
    _route_rows(node.left, feature_matrix, rows[goes_left], out)
    _route_rows(node.right, feature_matrix, rows[~goes_left], out)
