"""Pydantic report models produced by a pipeline run.

All models are frozen and serialize with camelCase aliases
(`model_dump(by_alias=True)`) so the output matches what results viewers
expect (`rocAuc`, `failCount`, ...), while Python attributes stay snake_case.
"""

from __future__ import annotations

import math

import polars as pl
from pydantic import BaseModel, ConfigDict, Field, JsonValue, model_validator
from pydantic.alias_generators import to_camel

from defectkit.polars_utils import to_markdown_table


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ModelMetrics(_ReportModel):
    """Held-out evaluation metrics for the trained classifier.

    Attributes:
        accuracy (float): Share of test rows predicted correctly.
        precision (float): `tp / (tp + fp)`, 0 when nothing was predicted to fail.
        recall (float): `tp / (tp + fn)`, 0 when the test split has no failures.
        f1 (float): Harmonic mean of precision and recall, 0 when both are 0.
        roc_auc (float): Rank-based ROC-AUC; 0.5 when the test split has a single class.
    """

    accuracy: float = Field(ge=0.0, le=1.0, description="Share of test rows predicted correctly.")
    precision: float = Field(ge=0.0, le=1.0, description="tp / (tp + fp), 0 when undefined.")
    recall: float = Field(ge=0.0, le=1.0, description="tp / (tp + fn), 0 when undefined.")
    f1: float = Field(ge=0.0, le=1.0, description="Harmonic mean of precision and recall.")
    roc_auc: float = Field(ge=0.0, le=1.0, description="Rank-based ROC-AUC on the test split.")


class ConfusionCounts(_ReportModel):
    """Confusion-matrix counts on the test split, with failure (1) as the positive class."""

    tp: int = Field(ge=0, description="Failures predicted as failures.")
    fp: int = Field(ge=0, description="Passes predicted as failures.")
    fn: int = Field(ge=0, description="Failures predicted as passes.")
    tn: int = Field(ge=0, description="Passes predicted as passes.")

    @property
    def total(self) -> int:
        """Number of rows the counts were computed over."""
        return self.tp + self.fp + self.fn + self.tn


class FeatureImportance(_ReportModel):
    """One entry of the feature ranking.

    Attributes:
        name (str): Source column name.
        importance (float): Univariate class-separation score of the column.
    """

    name: str = Field(description="Source column name.")
    importance: float = Field(ge=0.0, description="Univariate class-separation score.")


class FinancialProjection(_ReportModel):
    """Savings projected for one candidate defect-rate improvement.

    Attributes:
        rate (str): Improvement rate label, e.g. `"10%"`.
        monthly (float): Monthly savings.
        annual (float): Annual savings (`monthly * 12`).
        roi (float): Return on the implementation cost, in percent.
        payback (float): Months needed to recover the implementation cost;
            infinite when there are no savings.
    """

    rate: str = Field(pattern=r"^\d+%$", description='Improvement rate label, e.g. "10%".')
    monthly: float = Field(ge=0.0, description="Monthly savings.")
    annual: float = Field(ge=0.0, description="Annual savings.")
    roi: float = Field(description="Return on implementation cost, in percent.")
    payback: float = Field(ge=0.0, description="Months to recover the implementation cost.")


class DataStats(_ReportModel):
    """Shape and class balance of the input dataset.

    Attributes:
        rows (int): Number of input rows.
        cols (int): Number of input columns, target and excluded columns included.
        fail_count (int): Rows labelled as failures.
        pass_count (int): Rows labelled as passes.
        fail_rate (float): `fail_count / rows`.
        monthly_loss (float): Projected monthly cost of failures at the observed fail rate.
    """

    rows: int = Field(ge=1, description="Number of input rows.")
    cols: int = Field(ge=1, description="Number of input columns.")
    fail_count: int = Field(ge=0, description="Rows labelled as failures.")
    pass_count: int = Field(ge=0, description="Rows labelled as passes.")
    fail_rate: float = Field(ge=0.0, le=1.0, description="fail_count / rows.")
    monthly_loss: float = Field(ge=0.0, description="Projected monthly cost of failures.")

    @model_validator(mode="after")
    def _validate_counts_sum_to_rows(self) -> DataStats:
        """Validate that pass and fail counts partition the rows.

        Returns:
            DataStats: The validated model instance.

        Raises:
            ValueError: If `fail_count + pass_count != rows`.
        """
        if self.fail_count + self.pass_count != self.rows:
            raise ValueError(
                f"fail_count ({self.fail_count}) + pass_count ({self.pass_count}) must equal rows ({self.rows})"
            )
        return self


class DefectReport(_ReportModel):
    """Terminal artifact of a pipeline run.

    Attributes:
        metrics (ModelMetrics): Held-out evaluation metrics.
        confusion (ConfusionCounts): Test-split confusion counts.
        feature_importance (list[FeatureImportance]): Top features by score, descending.
        financials (list[FinancialProjection]): One projection per improvement rate.
        data_stats (DataStats): Input shape and class balance.
        target_col (str): The target column used for labels.
        selected_features (list[str]): Columns the model was trained on, in model order.
        log_lines (list[str]): Progress lines emitted by the run, in order.
    """

    metrics: ModelMetrics
    confusion: ConfusionCounts
    feature_importance: list[FeatureImportance] = Field(
        description="Top features by univariate score, in descending order.",
    )
    financials: list[FinancialProjection] = Field(min_length=1, description="One projection per improvement rate.")
    data_stats: DataStats
    target_col: str = Field(min_length=1, description="The target column used for labels.")
    selected_features: list[str] = Field(default_factory=list, description="Columns the model was trained on.")
    log_lines: list[str] = Field(default_factory=list, description="Progress lines emitted by the run.")

    @model_validator(mode="after")
    def _validate_importance_sorted(self) -> DefectReport:
        """Validate that the feature ranking is in descending order of importance.

        Returns:
            DefectReport: The validated model instance.

        Raises:
            ValueError: If any entry ranks above a higher-scoring entry.
        """
        scores = [entry.importance for entry in self.feature_importance]
        if any(later > earlier for earlier, later in zip(scores, scores[1:], strict=False)):
            raise ValueError("feature_importance must be sorted by descending importance")
        return self

    def to_markdown(self) -> str:
        """Render the report as markdown tables.

        Returns:
            str: Metrics, confusion counts, top features and the financial
                projection, each as a titled markdown table.
        """
        metrics_df = pl.DataFrame({
            "metric": ["accuracy", "precision", "recall", "f1", "roc_auc"],
            "value": [
                round(self.metrics.accuracy, 4),
                round(self.metrics.precision, 4),
                round(self.metrics.recall, 4),
                round(self.metrics.f1, 4),
                round(self.metrics.roc_auc, 4),
            ],
        })
        confusion_df = pl.DataFrame({
            "outcome": ["true negative", "false positive", "false negative", "true positive"],
            "count": [self.confusion.tn, self.confusion.fp, self.confusion.fn, self.confusion.tp],
        })
        importance_df = pl.DataFrame(
            {
                "feature": [entry.name for entry in self.feature_importance],
                "importance": [round(entry.importance, 4) for entry in self.feature_importance],
            },
            schema={"feature": pl.String, "importance": pl.Float64},
        )
        financial_df = pl.DataFrame({
            "improvement rate": [row.rate for row in self.financials],
            "monthly savings": [_format_money(row.monthly) for row in self.financials],
            "annual savings": [_format_money(row.annual) for row in self.financials],
            "roi": [f"{row.roi:.1f}%" for row in self.financials],
            "payback": [_format_months(row.payback) for row in self.financials],
        })
        stats = self.data_stats
        sections = [
            f"# Defect analysis: target `{self.target_col}`",
            (
                f"{stats.rows} rows x {stats.cols} columns; "
                f"{stats.fail_count} fail / {stats.pass_count} pass (fail rate {stats.fail_rate:.1%})"
            ),
            "## Model performance",
            to_markdown_table(metrics_df),
            "## Confusion matrix",
            to_markdown_table(confusion_df),
            "## Top features",
            to_markdown_table(importance_df) if importance_df.height else "_No features survived selection._",
            "## Financial impact",
            to_markdown_table(financial_df),
        ]
        return "\n\n".join(sections)


class PipelineFailure(BaseModel):
    """Structured failure returned by `analyze_dataset` instead of a report.

    Attributes:
        error_type (str): Exception class name, e.g. `"EmptyDatasetError"`.
        message (str): Human-readable error description.
        details (dict[str, JsonValue]): Additional JSON-serializable context.

    Examples:
        >>> failure = PipelineFailure(error_type="EmptyDatasetError", message="Empty dataset")
        >>> failure.details
        {}
    """

    error_type: str = Field(description="Category of the error.", min_length=1)
    message: str = Field(description="Human-readable error description.", min_length=1)
    details: dict[str, JsonValue] = Field(
        default_factory=dict,
        description="Additional error context (JSON-serializable).",
    )


def _format_money(amount: float) -> str:
    return f"${amount:,.0f}"


def _format_months(months: float) -> str:
    return "never" if math.isinf(months) else f"{months:.1f} months"
