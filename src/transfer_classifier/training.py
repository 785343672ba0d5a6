"""Training loop for the classifier head over merged feature batches."""

from __future__ import annotations

from typing import Any

import lightning as L
import torch
from loguru import logger
from pydantic import BaseModel, ConfigDict
from torch.utils.data import DataLoader, Dataset

from transfer_classifier.callbacks.epoch_report import EpochReportCallback
from transfer_classifier.config import TrainingConfig
from transfer_classifier.data.store import BatchStore
from transfer_classifier.models.head import ClassifierHead
from transfer_classifier.types import FeatureBatch


class FeatureDataset(Dataset[FeatureBatch]):
    """Row-wise view over the merged ``(features, labels)`` tensors."""

    def __init__(self, features: torch.Tensor, labels: torch.Tensor) -> None:
        self.features = features
        self.labels = labels

    def __len__(self) -> int:
        return int(self.features.shape[0])

    def __getitem__(self, idx: int) -> FeatureBatch:
        return {"features": self.features[idx], "labels": self.labels[idx]}


class TrainingReport(BaseModel):
    """Outcome of :func:`train_head`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: ClassifierHead
    num_samples: int
    history: list[dict[str, float]]


def train_head(
    store: BatchStore,
    num_classes: int,
    config: TrainingConfig,
    callbacks: list[L.Callback] | None = None,
    default_root_dir: str | None = None,
) -> TrainingReport:
    """Merge the stored batches and fit a fresh :class:`ClassifierHead`.

    The store is emptied by the merge, so batch tensors are released before
    the first epoch starts.

    Raises:
        EmptyTrainingSetError: no samples were stored.
        BatchShapeMismatchError: stored batches disagree on feature shape.
    """
    features, labels = store.merge()
    if labels.shape[1] != num_classes:
        raise ValueError(
            f"labels have {labels.shape[1]} columns, expected {num_classes} classes"
        )
    num_samples = int(features.shape[0])

    L.seed_everything(config.seed, workers=True)
    model = ClassifierHead(
        feature_dim=int(features.shape[1]),
        num_classes=num_classes,
        hidden_units=config.hidden_units,
        learning_rate=config.learning_rate,
    )
    loader: DataLoader[Any] = DataLoader(
        FeatureDataset(features, labels),
        batch_size=config.batch_size,
        shuffle=config.shuffle,
    )

    report_cb = EpochReportCallback()
    trainer = L.Trainer(
        max_epochs=config.epochs,
        accelerator=config.accelerator,
        devices=1,
        callbacks=[report_cb, *(callbacks or [])],
        logger=False,
        enable_checkpointing=False,
        enable_model_summary=False,
        default_root_dir=default_root_dir,
    )
    logger.info(
        f"Starting head training: {num_samples} samples, {config.epochs} epoch(s), "
        f"batch_size={config.batch_size}, lr={config.learning_rate}"
    )
    trainer.fit(model, train_dataloaders=loader)

    model.eval()
    return TrainingReport(
        model=model.cpu(), num_samples=num_samples, history=report_cb.history
    )
