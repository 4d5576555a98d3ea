"""Held-out metrics, feature ranking and the financial projection."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np
from sklearn.metrics import confusion_matrix, f1_score, precision_score, recall_score

from defectkit.models import ConfusionCounts, DataStats, FeatureImportance, FinancialProjection, ModelMetrics

_MONTHS_PER_YEAR: int = 12

# ---------------------------------------------------------------------------
# Public interface -- Classification metrics
# ---------------------------------------------------------------------------


def compute_confusion(y_true: np.ndarray, y_pred: np.ndarray) -> ConfusionCounts:
    """Count test outcomes with failure (1) as the positive class.

    Args:
        y_true (np.ndarray): True 0/1 labels.
        y_pred (np.ndarray): Predicted 0/1 labels.

    Returns:
        ConfusionCounts: The four confusion-matrix counts.
    """
    y_true = np.asarray(y_true, dtype=np.int64)
    y_pred = np.asarray(y_pred, dtype=np.int64)
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))


def roc_auc(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Compute ROC-AUC with the rank-sum (Mann-Whitney) estimator.

    Rows are sorted by descending probability (ties keep input order); for
    each negative row the number of positives ranked above it is accumulated,
    and the total is divided by `positives * negatives`.

    Args:
        y_true (np.ndarray): True 0/1 labels.
        probabilities (np.ndarray): Predicted failure probabilities.

    Returns:
        float: AUC in `[0, 1]`, or 0.5 when either class is absent.

    Examples:
        >>> roc_auc(np.array([1, 0, 1, 0]), np.array([0.9, 0.8, 0.7, 0.1]))
        0.75
    """
    y_true = np.asarray(y_true)
    total_positives = int(np.count_nonzero(y_true == 1))
    total_negatives = int(np.count_nonzero(y_true == 0))
    if total_positives == 0 or total_negatives == 0:
        return 0.5

    ranked = y_true[np.argsort(-np.asarray(probabilities, dtype=np.float64), kind="stable")]
    positives_above = np.cumsum(ranked == 1)
    accumulated = int(positives_above[ranked == 0].sum())
    return accumulated / (total_positives * total_negatives)


def compute_metrics(y_true: np.ndarray, y_pred: np.ndarray, probabilities: np.ndarray) -> ModelMetrics:
    """Derive accuracy, precision, recall, F1 and ROC-AUC for the test split.

    Undefined ratios (no predicted or no actual failures) are reported as 0.

    Args:
        y_true (np.ndarray): True 0/1 labels.
        y_pred (np.ndarray): Predicted 0/1 labels.
        probabilities (np.ndarray): Predicted failure probabilities.

    Returns:
        ModelMetrics: The evaluation metrics.
    """
    y_true = np.asarray(y_true, dtype=np.int64)
    y_pred = np.asarray(y_pred, dtype=np.int64)
    confusion = compute_confusion(y_true, y_pred)
    accuracy = (confusion.tp + confusion.tn) / confusion.total if confusion.total else 0.0
    shared_kwargs = {"labels": [0, 1], "pos_label": 1, "zero_division": 0.0}
    return ModelMetrics(
        accuracy=accuracy,
        precision=float(precision_score(y_true, y_pred, **shared_kwargs)),
        recall=float(recall_score(y_true, y_pred, **shared_kwargs)),
        f1=float(f1_score(y_true, y_pred, **shared_kwargs)),
        roc_auc=roc_auc(y_true, probabilities),
    )


# ---------------------------------------------------------------------------
# Public interface -- Feature ranking
# ---------------------------------------------------------------------------


def rank_feature_importance(
    feature_names: Sequence[str],
    scores: Sequence[float],
    *,
    top_n: int,
) -> list[FeatureImportance]:
    """Rank features by score (descending, ties in input order) and keep the first `top_n`.

    Args:
        feature_names (Sequence[str]): Feature names.
        scores (Sequence[float]): Score per feature, parallel to `feature_names`.
        top_n (int): Number of entries to keep.

    Returns:
        list[FeatureImportance]: At most `top_n` entries.
    """
    paired = [(name, float(score)) for name, score in zip(feature_names, scores, strict=True)]
    paired.sort(key=lambda item: item[1], reverse=True)
    return [FeatureImportance(name=name, importance=score) for name, score in paired[:top_n]]


# ---------------------------------------------------------------------------
# Public interface -- Dataset statistics and financial projection
# ---------------------------------------------------------------------------


def compute_data_stats(
    labels: np.ndarray,
    *,
    n_columns: int,
    monthly_volume: float,
    cost_per_failure: float,
) -> DataStats:
    """Summarize class balance and the monthly cost of failures at the observed fail rate.

    Args:
        labels (np.ndarray): 0/1 labels for every input row.
        n_columns (int): Number of input columns.
        monthly_volume (float): Units produced per month.
        cost_per_failure (float): Cost of one failed unit.

    Returns:
        DataStats: Dataset statistics.
    """
    rows = int(labels.shape[0])
    fail_count = int(np.count_nonzero(labels == 1))
    fail_rate = fail_count / rows
    return DataStats(
        rows=rows,
        cols=n_columns,
        fail_count=fail_count,
        pass_count=rows - fail_count,
        fail_rate=fail_rate,
        monthly_loss=monthly_volume * fail_rate * cost_per_failure,
    )


def project_financials(
    fail_rate: float,
    *,
    improvement_rates: Sequence[int],
    cost_per_failure: float,
    monthly_volume: float,
    implementation_cost: float,
) -> list[FinancialProjection]:
    """Translate candidate defect-rate reductions into savings, ROI and payback.

    For each improvement rate `r` (a percentage):
    `monthly = monthly_volume * fail_rate * r / 100 * cost_per_failure`,
    `annual = 12 * monthly`, `roi = (annual - implementation_cost) / implementation_cost * 100`
    and `payback = implementation_cost / monthly` months (infinite when there are no savings).

    Args:
        fail_rate (float): Observed fraction of failing units.
        improvement_rates (Sequence[int]): Candidate reductions, in percent.
        cost_per_failure (float): Cost of one failed unit.
        monthly_volume (float): Units produced per month.
        implementation_cost (float): One-off deployment cost; must be positive.

    Returns:
        list[FinancialProjection]: One projection per rate, in input order.

    Examples:
        >>> rows = project_financials(
        ...     0.1, improvement_rates=[10], cost_per_failure=5000, monthly_volume=10000, implementation_cost=150000
        ... )
        >>> rows[0].monthly, rows[0].payback
        (500000.0, 0.3)
    """
    monthly_failures = monthly_volume * fail_rate
    projections: list[FinancialProjection] = []
    for rate in improvement_rates:
        monthly = monthly_failures * (rate / 100) * cost_per_failure
        annual = monthly * _MONTHS_PER_YEAR
        projections.append(
            FinancialProjection(
                rate=f"{rate}%",
                monthly=monthly,
                annual=annual,
                roi=(annual - implementation_cost) / implementation_cost * 100,
                payback=implementation_cost / monthly if monthly > 0 else math.inf,
            )
        )
    return projections
