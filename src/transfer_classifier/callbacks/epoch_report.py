"""Epoch report callback — logs per-epoch loss and accuracy of the head."""

from __future__ import annotations

import lightning as L
from loguru import logger


class EpochReportCallback(L.Callback):
    """Log ``Epoch N: loss=... accuracy=...`` after every training epoch.

    The values are also appended to :attr:`history` so callers can inspect
    the run after ``trainer.fit`` returns.
    """

    def __init__(self) -> None:
        super().__init__()
        self.history: list[dict[str, float]] = []

    def on_train_epoch_end(
        self, trainer: L.Trainer, pl_module: L.LightningModule
    ) -> None:
        metrics = trainer.callback_metrics
        loss = metrics.get("train/loss")
        acc = metrics.get("train/acc")
        entry = {
            "epoch": float(trainer.current_epoch + 1),
            "loss": loss.item() if loss is not None else float("nan"),
            "accuracy": acc.item() if acc is not None else float("nan"),
        }
        self.history.append(entry)
        logger.info(
            f"Epoch {trainer.current_epoch + 1}: loss={entry['loss']:.4f} "
            f"accuracy={entry['accuracy']:.4f}"
        )
