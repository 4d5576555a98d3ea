"""Operating parameters for the defect analysis pipeline."""

from __future__ import annotations

import numpy as np
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from defectkit.gbdt.tree import SplitCriterion


class PipelineSettings(BaseSettings):
    """Tunable constants for preprocessing, training, evaluation and the financial projection.

    Every field can be overridden through a `DEFECTKIT_`-prefixed environment
    variable (e.g. `DEFECTKIT_N_TREES=80`) or a `.env` file.

    Attributes:
        n_trees (int): Number of boosting rounds.
        learning_rate (float): Shrinkage applied to each tree's output.
        decision_threshold (float): Probability above which a unit is predicted to fail.
        weak_learner_max_depth (int): Depth limit of the boosting trees.
        split_criterion (SplitCriterion): Weak-learner split criterion.
        min_samples_split (int): Minimum node size for attempting a split.
        max_candidate_features (int): Features sampled per tree node.
        max_candidate_thresholds (int): Thresholds tried per sampled feature.
        max_missing_fraction (float): Columns with a larger missing fraction are dropped.
        correlation_threshold (float): Absolute Pearson correlation above which the later column is dropped.
        max_correlation_columns (int): Columns sampled (evenly spaced) for correlation pruning.
        top_k_features (int): Columns kept by univariate scoring.
        importance_top_n (int): Features reported in the importance ranking.
        train_fraction (float): Share of rows assigned to the training split.
        cost_per_failure (float): Cost of one failed unit.
        monthly_volume (float): Units produced per month.
        implementation_cost (float): One-off cost of deploying the model.
        improvement_rates (tuple[int, ...]): Candidate defect-rate reductions, in percent.
        random_seed (int | None): Seed for all pipeline randomness; `None` for fresh entropy.

    Examples:
        >>> settings = PipelineSettings(n_trees=10, random_seed=7)
        >>> settings.learning_rate
        0.1
    """

    model_config = SettingsConfigDict(
        env_prefix="DEFECTKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    n_trees: int = Field(default=60, ge=1, description="Number of boosting rounds.")
    learning_rate: float = Field(default=0.1, gt=0.0, le=1.0, description="Shrinkage applied to each tree.")
    decision_threshold: float = Field(default=0.4, ge=0.0, le=1.0, description="Failure probability cut-off.")
    weak_learner_max_depth: int = Field(default=4, ge=1, le=16, description="Depth limit of boosting trees.")
    split_criterion: SplitCriterion = Field(default="gini", description="Weak-learner split criterion.")
    min_samples_split: int = Field(default=10, ge=2, description="Minimum node size for attempting a split.")
    max_candidate_features: int = Field(default=20, ge=1, description="Features sampled per tree node.")
    max_candidate_thresholds: int = Field(default=10, ge=1, description="Thresholds tried per feature.")

    max_missing_fraction: float = Field(default=0.5, ge=0.0, le=1.0, description="Missing-value drop threshold.")
    correlation_threshold: float = Field(default=0.9, gt=0.0, le=1.0, description="Correlation pruning cut-off.")
    max_correlation_columns: int = Field(default=80, ge=1, description="Columns sampled for correlation pruning.")
    top_k_features: int = Field(default=50, ge=1, description="Columns kept by univariate scoring.")
    importance_top_n: int = Field(default=10, ge=1, description="Features reported in the ranking.")
    train_fraction: float = Field(default=0.8, gt=0.0, lt=1.0, description="Share of rows used for training.")

    cost_per_failure: float = Field(default=5000.0, ge=0.0, description="Cost of one failed unit.")
    monthly_volume: float = Field(default=10000.0, ge=0.0, description="Units produced per month.")
    implementation_cost: float = Field(default=150000.0, gt=0.0, description="One-off deployment cost.")
    improvement_rates: tuple[int, ...] = Field(
        default=(10, 20, 30),
        min_length=1,
        description="Candidate defect-rate reductions, in percent.",
    )

    random_seed: int | None = Field(default=None, description="Seed for all pipeline randomness.")

    @field_validator("improvement_rates", mode="after")
    @classmethod
    def _validate_improvement_rates(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        """Validate that every improvement rate is a percentage in (0, 100].

        Args:
            value (tuple[int, ...]): The configured rates.

        Returns:
            tuple[int, ...]: The validated rates, unchanged.

        Raises:
            ValueError: If any rate is outside `(0, 100]`.
        """
        out_of_range = [rate for rate in value if not 0 < rate <= 100]
        if out_of_range:
            raise ValueError(f"improvement_rates must be percentages in (0, 100], got {out_of_range}")
        return value

    def make_rng(self) -> np.random.Generator:
        """Return a fresh generator seeded with `random_seed` (or OS entropy when unset)."""
        return np.random.default_rng(self.random_seed)
