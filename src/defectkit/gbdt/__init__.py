"""Gradient-boosted decision trees: tree induction, boosting, and resampling."""

from __future__ import annotations

from defectkit.gbdt.boosting import Ensemble, Prediction, predict_ensemble, train_ensemble
from defectkit.gbdt.resampling import smote_balance
from defectkit.gbdt.tree import (
    LeafNode,
    SplitCriterion,
    SplitNode,
    TreeNode,
    build_tree,
    count_leaves,
    predict_tree,
    predict_tree_batch,
    tree_depth,
)

__all__ = [
    "Ensemble",
    "LeafNode",
    "Prediction",
    "SplitCriterion",
    "SplitNode",
    "TreeNode",
    "build_tree",
    "count_leaves",
    "predict_ensemble",
    "predict_tree",
    "predict_tree_batch",
    "smote_balance",
    "train_ensemble",
    "tree_depth",
]
