"""Single-image prediction schemas."""

from __future__ import annotations

from pydantic import BaseModel, computed_field


class ClassScore(BaseModel, frozen=True):
    """Probability assigned to one class."""

    label: str
    score: float


class PredictionResult(BaseModel, frozen=True):
    """Top-1 prediction plus the full score vector in class-index order."""

    class_id: int
    label: str
    confidence: float
    scores: list[ClassScore]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def confidence_percent(self) -> str:
        return f"{self.confidence * 100:.2f}%"


class PredictionResponse(BaseModel, frozen=True):
    """Framework-neutral response returned by the prediction service."""

    status_code: int
    result: PredictionResult | None = None
    error: str | None = None
