"""Type aliases and TypedDicts for transfer_classifier inter-module contracts."""

from typing import TypedDict

import torch


class FeatureBatch(TypedDict):
    """One flushed batch of extracted features.

    features: Float tensor of shape (B, feature_dim), backbone output.
    labels: Float tensor of shape (B, num_classes), one-hot class targets.
    """

    features: torch.Tensor
    labels: torch.Tensor
