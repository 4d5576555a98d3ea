"""defectkit: Defect prediction and savings projection for per-unit sensor data."""

from loguru import logger

from defectkit.config import PipelineSettings
from defectkit.loader import load_dataset
from defectkit.logging import PACKAGE_NAME, enable_logging
from defectkit.models import DefectReport, PipelineFailure
from defectkit.pipeline import analyze_dataset, run_pipeline

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the defectkit module by default

__all__ = [
    "DefectReport",
    "PipelineFailure",
    "PipelineSettings",
    "analyze_dataset",
    "enable_logging",
    "load_dataset",
    "run_pipeline",
]
