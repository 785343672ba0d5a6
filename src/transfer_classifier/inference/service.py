"""Framework-neutral prediction request handler.

Maps the serving contract onto status codes: 503 until models are loaded,
400 when no image is given, 500 when a request fails, 200 otherwise.  Any
web framework can wrap :meth:`PredictionService.handle` in a route.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from transfer_classifier.config import BackboneConfig
from transfer_classifier.inference.context import InferenceContext
from transfer_classifier.inference.predictor import predict_image
from transfer_classifier.schemas.prediction import PredictionResponse


class PredictionService:
    """Owns the inference context lifecycle and handles requests.

    Args:
        model_dir: Directory written by :func:`~transfer_classifier.io.save_artifact`.
        backbone: Backbone configuration used at training time.
        image_size: Input side length used at training time.
    """

    def __init__(
        self,
        model_dir: str | Path,
        backbone: BackboneConfig | None = None,
        image_size: int = 224,
    ) -> None:
        self.model_dir = Path(model_dir)
        self.backbone = backbone or BackboneConfig()
        self.image_size = image_size
        self._context: InferenceContext | None = None

    @property
    def ready(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> InferenceContext | None:
        return self._context

    def load(self) -> InferenceContext:
        """Build the inference context. Setup errors propagate."""
        self._context = InferenceContext.load(
            self.model_dir, self.backbone, image_size=self.image_size
        )
        return self._context

    def unload(self) -> None:
        self._context = None

    def handle(
        self, image_path: str | Path | None, uploaded: bool = False
    ) -> PredictionResponse:
        """Classify ``image_path``.

        When ``uploaded`` is True the file is a temporary upload and is
        deleted once the request is done.
        """
        try:
            context = self._context
            if context is None:
                return PredictionResponse(
                    status_code=503, error="Models are still loading..."
                )
            if not image_path:
                return PredictionResponse(status_code=400, error="Image required.")
            try:
                result = predict_image(context, image_path)
            except Exception as e:
                logger.exception(f"Prediction failed for {image_path}")
                return PredictionResponse(status_code=500, error=str(e))
            logger.info(
                f"{image_path}: {result.label} ({result.confidence_percent})"
            )
            return PredictionResponse(status_code=200, result=result)
        finally:
            if uploaded and image_path:
                Path(image_path).unlink(missing_ok=True)
