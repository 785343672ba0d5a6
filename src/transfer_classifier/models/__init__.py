"""Frozen feature extractors and the trainable classifier head."""

from transfer_classifier.models.backbone import FeatureExtractor
from transfer_classifier.models.head import ClassifierHead

__all__ = [
    "ClassifierHead",
    "FeatureExtractor",
]
