"""Pydantic schemas for tasks, artifacts and predictions."""

from transfer_classifier.schemas.artifact import (
    ModelArtifact,
    ModelManifest,
    WeightsGroup,
    WeightSpec,
)
from transfer_classifier.schemas.prediction import (
    ClassScore,
    PredictionResponse,
    PredictionResult,
)
from transfer_classifier.schemas.task import PoolSummary, Task, TaskResult, WorkerCrash

__all__ = [
    "ClassScore",
    "ModelArtifact",
    "ModelManifest",
    "PoolSummary",
    "PredictionResponse",
    "PredictionResult",
    "Task",
    "TaskResult",
    "WeightSpec",
    "WeightsGroup",
    "WorkerCrash",
]
