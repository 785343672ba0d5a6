"""Coordinator-side batch assembly: decoded buffers -> feature batches.

Normalized images accumulate until ``batch_size`` is reached, then one
backbone forward pass turns the whole batch into features.  Only the
``(features, labels)`` pair survives a flush; the per-image tensors and the
stacked input batch are released inside the flush's tensor scope.
"""

from __future__ import annotations

import psutil  # type: ignore[import-untyped]
import torch
from loguru import logger
from torch import nn

from transfer_classifier.data.store import BatchStore
from transfer_classifier.schemas.task import TaskResult
from transfer_classifier.tensors import tensor_scope
from transfer_classifier.transforms.normalization import normalize_rgba, one_hot_label

_FLOAT32_BYTES = 4


class BatchAssembler:
    """Accumulate normalized images and flush them through the extractor.

    Args:
        extractor: Frozen module mapping ``(B, H, W, 3)`` to ``(B, D)``.
        num_classes: Width of the one-hot labels.
        batch_size: Flush threshold (the batch cap).
        image_size: Side length of the incoming RGBA buffers.
        store: Destination for flushed ``(features, labels)`` pairs.
    """

    def __init__(
        self,
        extractor: nn.Module,
        num_classes: int,
        batch_size: int,
        image_size: int,
        store: BatchStore | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.extractor = extractor
        self.num_classes = num_classes
        self.batch_size = batch_size
        self.image_size = image_size
        self.store = store if store is not None else BatchStore()

        self._images: list[torch.Tensor] = []
        self._labels: list[torch.Tensor] = []
        self.processed = 0
        self.failed = 0
        self.flush_sizes: list[int] = []

        self._log_memory_estimate()

    @property
    def pending(self) -> int:
        return len(self._images)

    def add(self, result: TaskResult) -> None:
        """Consume one pool result; flush when the batch is full."""
        if not result.ok or result.buffer is None:
            self.failed += 1
            logger.warning(f"Skipping {result.file_path}: {result.error}")
            return

        self._images.append(normalize_rgba(result.buffer, self.image_size))
        self._labels.append(one_hot_label(result.label_index, self.num_classes))
        self.processed += 1

        if len(self._images) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        """Extract features for the pending images and store the batch."""
        if not self._images:
            return

        images, labels = self._images, self._labels
        self._images, self._labels = [], []
        with tensor_scope("flush") as scope:
            scope.track_all(images)
            scope.track_all(labels)
            batch = scope.track(torch.stack(images))
            del images
            features = self.extractor(batch)
            stacked_labels = torch.stack(labels)
            del labels
            self.store.append(features, stacked_labels)

        self.flush_sizes.append(features.shape[0])
        logger.debug(
            f"Flushed batch {len(self.flush_sizes)}: {features.shape[0]} image(s) "
            f"-> features {tuple(features.shape)}"
        )

    def finalize(self) -> BatchStore:
        """Flush any remainder smaller than ``batch_size`` and return the store."""
        self.flush()
        logger.info(
            f"Batch assembly complete: {self.processed} image(s) in "
            f"{len(self.flush_sizes)} batch(es), {self.failed} failure(s)"
        )
        return self.store

    def _log_memory_estimate(self) -> None:
        """Log the per-flush input footprint against available RAM."""
        per_image = self.image_size * self.image_size * 3 * _FLOAT32_BYTES
        # pending images + stacked copy
        estimated_bytes = per_image * self.batch_size * 2
        try:
            available_bytes = psutil.virtual_memory().available
        except Exception as e:
            logger.warning(f"Could not query available memory: {e}")
            return
        logger.info(
            f"Batch memory estimate: {estimated_bytes / 1e6:.1f}MB per flush "
            f"(batch_size={self.batch_size}), "
            f"available RAM={available_bytes / 1e9:.2f}GB"
        )
        if estimated_bytes > available_bytes * 0.5:
            logger.warning(
                "Batch inputs exceed half of available RAM; lower batch_size"
            )
