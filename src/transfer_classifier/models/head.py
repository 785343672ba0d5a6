"""Trainable classifier head fitted on frozen backbone features."""

from __future__ import annotations

from typing import Any

import lightning as L
import torch
from torch import nn
from torchmetrics.classification import MulticlassAccuracy

from transfer_classifier.types import FeatureBatch

HEAD_CLASS_NAME = "ClassifierHead"


class ClassifierHead(L.LightningModule):
    """Two-layer MLP: ``Linear -> ReLU -> Linear`` over feature vectors.

    ``forward`` returns logits; :meth:`predict_proba` applies softmax.  Targets
    are one-hot float tensors, matched against logits with categorical cross
    entropy.  The module can describe itself as a plain-dict topology and be
    rebuilt from one, which is what the artifact serializer persists.
    """

    def __init__(
        self,
        feature_dim: int,
        num_classes: int,
        hidden_units: int = 100,
        learning_rate: float = 1e-4,
    ) -> None:
        super().__init__()
        self.save_hyperparameters()

        self.hidden = nn.Linear(feature_dim, hidden_units)
        self.activation = nn.ReLU()
        self.output = nn.Linear(hidden_units, num_classes)
        self.loss_fn = nn.CrossEntropyLoss()
        # torchmetrics needs at least two classes; a one-output head always
        # predicts class 0, which is also its only target.
        self.train_acc = MulticlassAccuracy(
            num_classes=max(num_classes, 2), top_k=1, average="micro"
        )

    @property
    def num_classes(self) -> int:
        return int(self.hparams["num_classes"])

    def forward(self, features: torch.Tensor) -> torch.Tensor:
        return self.output(self.activation(self.hidden(features)))

    def predict_proba(self, features: torch.Tensor) -> torch.Tensor:
        return torch.softmax(self(features), dim=-1)

    def training_step(self, batch: FeatureBatch, batch_idx: int) -> torch.Tensor:
        features, labels = batch["features"], batch["labels"]
        logits = self(features)
        loss: torch.Tensor = self.loss_fn(logits, labels)
        self.log("train/loss", loss, on_step=False, on_epoch=True, prog_bar=True)
        # Logging the metric object lets Lightning compute and reset it per
        # epoch, before epoch-end callbacks read callback_metrics.
        self.train_acc(logits.argmax(dim=-1), labels.argmax(dim=-1))
        self.log("train/acc", self.train_acc, on_step=False, on_epoch=True, prog_bar=True)
        return loss

    def configure_optimizers(self) -> torch.optim.Optimizer:
        return torch.optim.Adam(self.parameters(), lr=self.hparams["learning_rate"])

    # ------------------------------------------------------------------
    # Topology descriptor
    # ------------------------------------------------------------------

    def topology(self) -> dict[str, Any]:
        """Backend-neutral description of the layer stack."""
        feature_dim = int(self.hparams["feature_dim"])
        hidden_units = int(self.hparams["hidden_units"])
        return {
            "class_name": HEAD_CLASS_NAME,
            "config": {
                "feature_dim": feature_dim,
                "hidden_units": hidden_units,
                "num_classes": self.num_classes,
            },
            "layers": [
                {
                    "name": "hidden",
                    "type": "dense",
                    "units": hidden_units,
                    "input_dim": feature_dim,
                    "activation": "relu",
                },
                {
                    "name": "output",
                    "type": "dense",
                    "units": self.num_classes,
                    "input_dim": hidden_units,
                    "activation": "softmax",
                },
            ],
        }

    @classmethod
    def from_topology(cls, topology: dict[str, Any]) -> ClassifierHead:
        if topology.get("class_name") != HEAD_CLASS_NAME:
            raise ValueError(
                f"Unsupported topology class_name: {topology.get('class_name')!r}"
            )
        config = topology["config"]
        return cls(
            feature_dim=int(config["feature_dim"]),
            num_classes=int(config["num_classes"]),
            hidden_units=int(config["hidden_units"]),
        )
