"""Pydantic frozen configuration models for transfer_classifier."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

BackboneName = Literal["mobilenet_v3_small", "mobilenet_v2", "resnet18"]


class PipelineConfig(BaseModel, frozen=True):
    """Configuration for the dataset-to-feature pipeline.

    All fields are validated at construction time and frozen afterwards.
    ``num_workers=None`` means one decode worker per available CPU.
    """

    data_root: str
    image_size: int = Field(default=224, gt=0)
    batch_size: int = Field(default=64, gt=0)
    num_workers: int | None = None
    queue_size: int = Field(default=256, gt=0)
    start_method: Literal["spawn", "fork", "forkserver"] = "spawn"

    @model_validator(mode="after")
    def _non_positive_workers_means_auto(self) -> "PipelineConfig":
        """num_workers <= 0 is treated the same as None (auto)."""
        if self.num_workers is not None and self.num_workers <= 0:
            # Use object.__setattr__ because model is frozen
            object.__setattr__(self, "num_workers", None)
        return self


class BackboneConfig(BaseModel, frozen=True):
    """Frozen feature extractor selection.

    ``pooling=False`` flattens the final feature map (the head sees every
    spatial position); ``pooling=True`` global-average-pools it first.
    """

    name: BackboneName = "mobilenet_v3_small"
    pretrained: bool = True
    pooling: bool = False


class TrainingConfig(BaseModel, frozen=True):
    """Hyperparameters for fitting the classifier head."""

    epochs: int = Field(default=20, gt=0)
    batch_size: int = Field(default=64, gt=0)
    shuffle: bool = True
    learning_rate: float = Field(default=1e-4, gt=0)
    hidden_units: int = Field(default=100, gt=0)
    accelerator: str = "auto"
    seed: int = 42


class TrainConfig(BaseModel, frozen=True):
    """Root configuration for a full training run."""

    pipeline: PipelineConfig
    backbone: BackboneConfig = BackboneConfig()
    training: TrainingConfig = TrainingConfig()
    output_dir: str = "models/classifier-head"
    plot_history: bool = False
    log_level: str = "INFO"
