"""Pipeline orchestration: raw rows in, DefectReport out.

A run is a single synchronous pass through the stages below. Every stage
emits exactly one progress line through the run's `PipelineContext`; callers
that want to render progress pass an `on_progress` callback.

1. Load rows and detect the target column.
2. Normalize labels.
3. Drop sparse columns, then constant columns.
4. Impute medians and standardize.
5. Prune correlated columns and keep the top-scoring ones.
6. Split rows, balance the training split with SMOTE, train the ensemble.
7. Evaluate on the test split and project savings.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from loguru import logger
from pydantic import JsonValue

from defectkit.config import PipelineSettings
from defectkit.evaluation import (
    compute_confusion,
    compute_data_stats,
    compute_metrics,
    project_financials,
    rank_feature_importance,
)
from defectkit.exceptions import ColumnsNotFoundError, InvalidTargetError
from defectkit.gbdt.boosting import predict_ensemble, train_ensemble
from defectkit.gbdt.resampling import smote_balance
from defectkit.logging import STAGE_LEVEL
from defectkit.models import DefectReport, PipelineFailure
from defectkit.polars_utils import Dataset, coerce_numeric, rows_to_dataframe
from defectkit.preprocessing import (
    ExcludedFeature,
    candidate_feature_columns,
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

type ProgressCallback = Callable[[str], None]


@dataclass
class PipelineContext:
    """Mutable per-run state shared by the stages of one pipeline run.

    Attributes:
        settings (PipelineSettings): Operating parameters for the run.
        rng (np.random.Generator): The run's single source of randomness.
        on_progress (ProgressCallback | None): Receives each progress line as
            it is emitted.
        log_lines (list[str]): Progress lines emitted so far, in order.
    """

    settings: PipelineSettings
    rng: np.random.Generator
    on_progress: ProgressCallback | None = None
    log_lines: list[str] = field(default_factory=list)

    def emit(self, message: str, **details: Any) -> None:
        """Record one progress line, log it at STAGE level and forward it to `on_progress`.

        Args:
            message (str): Human-readable stage summary.
            **details (Any): Structured fields attached to the log record.
        """
        self.log_lines.append(message)
        logger.bind(**details).log(STAGE_LEVEL, message)
        if self.on_progress is not None:
            self.on_progress(message)


def run_pipeline(
    rows: Dataset,
    *,
    settings: PipelineSettings | None = None,
    target: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> DefectReport:
    """Train and evaluate a defect classifier on raw sensor rows.

    Args:
        rows (Dataset): Non-empty sequence of uniformly keyed rows mapping
            column name to raw value.
        settings (PipelineSettings | None): Operating parameters. Defaults to
            `PipelineSettings()` (environment overrides applied).
        target (str | None): Explicit target column; detected from column
            names when `None`.
        on_progress (ProgressCallback | None): Called with each progress line.

    Returns:
        DefectReport: Metrics, confusion counts, feature ranking, financial
            projection and dataset statistics for the run.

    Raises:
        EmptyDatasetError: If `rows` is empty.
        ColumnsNotFoundError: If an explicit `target` is not a column.
        InvalidTargetError: If any target cell is blank, unparsable, or outside
            {-1, 0, 1}; such rows are rejected rather than passed through.

    Examples:
        >>> report = run_pipeline(rows, settings=PipelineSettings(random_seed=0))  # doctest: +SKIP
        >>> report.metrics.roc_auc  # doctest: +SKIP
        0.87
    """
    settings = settings if settings is not None else PipelineSettings()
    context = PipelineContext(settings=settings, rng=settings.make_rng(), on_progress=on_progress)

    raw_df = rows_to_dataframe(rows)
    context.emit(f"Loaded {raw_df.height} rows x {raw_df.width} columns", rows=raw_df.height, cols=raw_df.width)

    target_col = detect_target_column(raw_df.columns, target)
    feature_columns = candidate_feature_columns(raw_df.columns, target_col)
    context.emit(
        f'Target column detected: "{target_col}" ({len(feature_columns)} candidate feature columns)',
        target=target_col,
    )

    labels = normalize_labels(raw_df[target_col])
    fail_count = int(np.count_nonzero(labels == 1))
    context.emit(f"Pass/Fail distribution - Fail: {fail_count}, Pass: {labels.shape[0] - fail_count}")

    numeric_df = coerce_numeric(raw_df, feature_columns)
    kept_columns, excluded = drop_sparse_columns(numeric_df, feature_columns, settings.max_missing_fraction)
    _log_excluded(excluded)
    context.emit(
        f"Dropped {len(excluded)} cols with >{settings.max_missing_fraction:.0%} missing. "
        f"Remaining: {len(kept_columns)}"
    )

    kept_columns, excluded = drop_constant_columns(numeric_df, kept_columns)
    _log_excluded(excluded)
    context.emit(f"Dropped {len(excluded)} constant columns. Remaining: {len(kept_columns)}")

    features = impute_median(numeric_df, kept_columns)
    context.emit(f"Median imputation complete ({features.n_columns} columns)")

    features = standardize(features)
    context.emit("Standardization complete")

    features, excluded = prune_correlated(
        features,
        threshold=settings.correlation_threshold,
        max_columns=settings.max_correlation_columns,
    )
    _log_excluded(excluded)
    context.emit(
        f"Removed highly correlated features (|r| > {settings.correlation_threshold}). Remaining: {features.n_columns}"
    )

    scores = score_features(features, labels)
    features, top_scores = select_top_features(features, scores, settings.top_k_features)
    context.emit(f"Selected top {features.n_columns} features by class-separation score")

    split = split_train_test(features.n_rows, train_fraction=settings.train_fraction, rng=context.rng)
    train_matrix, train_labels = smote_balance(
        features.matrix[split.train],
        labels[split.train],
        rng=context.rng,
    )
    context.emit(
        f"SMOTE applied. Training samples: {train_labels.shape[0]} (test samples: {split.test.shape[0]})",
        train_count=int(train_labels.shape[0]),
        test_count=int(split.test.shape[0]),
    )

    ensemble = train_ensemble(
        train_matrix,
        train_labels,
        n_trees=settings.n_trees,
        learning_rate=settings.learning_rate,
        max_depth=settings.weak_learner_max_depth,
        rng=context.rng,
        criterion=settings.split_criterion,
        min_samples_split=settings.min_samples_split,
        max_candidate_features=settings.max_candidate_features,
        max_candidate_thresholds=settings.max_candidate_thresholds,
    )
    context.emit(
        f"Trained gradient-boosted ensemble: {len(ensemble.trees)} trees, learning rate {ensemble.learning_rate}"
    )

    predictions = predict_ensemble(
        ensemble,
        features.matrix[split.test],
        decision_threshold=settings.decision_threshold,
    )
    test_labels = labels[split.test]
    predicted_labels = np.array([prediction.label for prediction in predictions], dtype=np.int64)
    probabilities = np.array([prediction.probability for prediction in predictions], dtype=np.float64)
    metrics = compute_metrics(test_labels, predicted_labels, probabilities)
    context.emit(f"Model evaluated on held-out split. Accuracy: {metrics.accuracy:.1%}", roc_auc=metrics.roc_auc)

    data_stats = compute_data_stats(
        labels,
        n_columns=raw_df.width,
        monthly_volume=settings.monthly_volume,
        cost_per_failure=settings.cost_per_failure,
    )
    financials = project_financials(
        data_stats.fail_rate,
        improvement_rates=settings.improvement_rates,
        cost_per_failure=settings.cost_per_failure,
        monthly_volume=settings.monthly_volume,
        implementation_cost=settings.implementation_cost,
    )
    context.emit(f"Financial projection computed for {len(financials)} improvement rates")

    return DefectReport(
        metrics=metrics,
        confusion=compute_confusion(test_labels, predicted_labels),
        feature_importance=rank_feature_importance(
            features.columns,
            top_scores,
            top_n=settings.importance_top_n,
        ),
        financials=financials,
        data_stats=data_stats,
        target_col=target_col,
        selected_features=list(features.columns),
        log_lines=list(context.log_lines),
    )


def analyze_dataset(
    rows: Dataset,
    *,
    settings: PipelineSettings | None = None,
    target: str | None = None,
    on_progress: ProgressCallback | None = None,
) -> DefectReport | PipelineFailure:
    """Run the pipeline, converting any failure into a `PipelineFailure`.

    This is the boundary for hosts that show either a report or an error
    message and then return to accepting input; no partial results are
    returned on failure.

    Args:
        rows (Dataset): Raw input rows.
        settings (PipelineSettings | None): Operating parameters.
        target (str | None): Explicit target column.
        on_progress (ProgressCallback | None): Called with each progress line.

    Returns:
        DefectReport | PipelineFailure: The report, or a structured failure.

    Examples:
        >>> analyze_dataset([])
        PipelineFailure(error_type='EmptyDatasetError', message='Empty dataset', details={})
    """
    try:
        return run_pipeline(rows, settings=settings, target=target, on_progress=on_progress)
    except Exception as exc:  # noqa: BLE001 - every run failure becomes a single failure state
        failure = PipelineFailure(
            error_type=type(exc).__name__,
            message=str(exc) or type(exc).__name__,
            details=_failure_details(exc),
        )
        logger.warning("Pipeline run failed", error_type=failure.error_type, message=failure.message)
        return failure


def _log_excluded(excluded: list[ExcludedFeature]) -> None:
    if excluded:
        logger.debug("Columns dropped", columns=[f"{ef.name} ({ef.reason})" for ef in excluded])


def _failure_details(exc: Exception) -> dict[str, JsonValue]:
    if isinstance(exc, InvalidTargetError):
        return {"column": exc.column, "invalid_values": list(exc.invalid_values)}
    if isinstance(exc, ColumnsNotFoundError):
        return {"missing_columns": list(exc.missing_columns), "available_columns": list(exc.available_columns)}
    return {}
