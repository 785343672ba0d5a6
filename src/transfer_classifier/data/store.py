"""Holding area for flushed feature batches until the final merge."""

from __future__ import annotations

import torch
from loguru import logger

from transfer_classifier.errors import BatchShapeMismatchError, EmptyTrainingSetError
from transfer_classifier.types import FeatureBatch


class BatchStore:
    """Ordered list of ``(features, labels)`` batches.

    :meth:`merge` concatenates everything along the batch axis and empties
    the store, so individual batch tensors do not outlive the merged set.
    """

    def __init__(self) -> None:
        self._batches: list[FeatureBatch] = []

    def append(self, features: torch.Tensor, labels: torch.Tensor) -> None:
        if features.shape[0] != labels.shape[0]:
            raise ValueError(
                f"features batch size {features.shape[0]} != "
                f"labels batch size {labels.shape[0]}"
            )
        self._batches.append({"features": features, "labels": labels})

    def __len__(self) -> int:
        return len(self._batches)

    @property
    def num_samples(self) -> int:
        return sum(b["features"].shape[0] for b in self._batches)

    @property
    def batch_sizes(self) -> list[int]:
        return [b["features"].shape[0] for b in self._batches]

    def clear(self) -> None:
        self._batches.clear()

    def merge(self) -> tuple[torch.Tensor, torch.Tensor]:
        """Concatenate all batches into one feature and one label tensor.

        Raises:
            EmptyTrainingSetError: the store holds no samples.
            BatchShapeMismatchError: a batch disagrees with the first batch
                on any non-batch dimension.
        """
        if self.num_samples == 0:
            raise EmptyTrainingSetError(
                "No successfully decoded images: the training set is empty"
            )
        first = self._batches[0]
        feature_dims = tuple(first["features"].shape[1:])
        label_dims = tuple(first["labels"].shape[1:])
        for i, batch in enumerate(self._batches):
            if tuple(batch["features"].shape[1:]) != feature_dims:
                raise BatchShapeMismatchError(
                    i, feature_dims, tuple(batch["features"].shape), "features"
                )
            if tuple(batch["labels"].shape[1:]) != label_dims:
                raise BatchShapeMismatchError(
                    i, label_dims, tuple(batch["labels"].shape), "labels"
                )

        features = torch.cat([b["features"] for b in self._batches])
        labels = torch.cat([b["labels"] for b in self._batches])
        logger.info(
            f"Merged {len(self._batches)} batch(es) into {features.shape[0]} "
            f"training rows (feature_dim={features.shape[1]})"
        )
        self.clear()
        return features, labels
