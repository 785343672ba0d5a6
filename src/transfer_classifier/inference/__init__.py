"""Single-image inference over a saved classifier head."""

from transfer_classifier.inference.context import InferenceContext
from transfer_classifier.inference.predictor import predict_image
from transfer_classifier.inference.service import PredictionService

__all__ = [
    "InferenceContext",
    "PredictionService",
    "predict_image",
]
