"""Pixel normalization shared by training and inference."""

from transfer_classifier.transforms.normalization import normalize_rgba, one_hot_label

__all__ = [
    "normalize_rgba",
    "one_hot_label",
]
