"""Training entrypoint for transfer_classifier.

Usage:
    python -m transfer_classifier.train                                # defaults
    python -m transfer_classifier.train pipeline.data_root=/data/dogs  # dataset
    python -m transfer_classifier.train training.epochs=5              # epochs
    python -m transfer_classifier.train backbone.name=resnet18         # backbone
"""

import sys
from pathlib import Path
from typing import Any

import hydra
import lightning as L
from loguru import logger
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel

from transfer_classifier.callbacks.model_info import ModelInfoCallback
from transfer_classifier.callbacks.plotting import TrainingHistoryCallback
from transfer_classifier.config import TrainConfig
from transfer_classifier.data.decoder import Decoder, decode_image
from transfer_classifier.data.features import extract_feature_batches
from transfer_classifier.data.scanner import scan_dataset
from transfer_classifier.io.artifact import save_artifact
from transfer_classifier.models.backbone import FeatureExtractor
from transfer_classifier.schemas.task import PoolSummary
from transfer_classifier.training import train_head


class TrainingSummary(BaseModel, frozen=True):
    """What a training run produced and how the dataset was consumed."""

    output_dir: str
    class_names: list[str]
    num_tasks: int
    num_samples: int
    flush_sizes: list[int]
    pool: PoolSummary
    history: list[dict[str, float]]


def run_training(
    config: TrainConfig,
    decoder: Decoder = decode_image,
    extractor: FeatureExtractor | None = None,
    poll_interval: float = 0.5,
) -> TrainingSummary:
    """Scan, decode, extract, train and save.

    Raises:
        DatasetNotFoundError: the dataset root is missing.
        EmptyTrainingSetError: no image decoded successfully.
        BatchShapeMismatchError: extracted batches disagree on shape.
    """
    pipeline = config.pipeline
    layout = scan_dataset(pipeline.data_root)

    if extractor is None:
        extractor = FeatureExtractor.from_config(config.backbone, pipeline.image_size)

    extracted = extract_feature_batches(
        layout, extractor, pipeline, decoder=decoder, poll_interval=poll_interval
    )

    output_dir = Path(config.output_dir)
    callbacks: list[L.Callback] = [
        ModelInfoCallback(class_names=layout.class_names)
    ]
    if config.plot_history:
        callbacks.append(TrainingHistoryCallback(output_dir=str(output_dir)))

    report = train_head(
        extracted.store,
        num_classes=layout.num_classes,
        config=config.training,
        callbacks=callbacks,
        default_root_dir=str(output_dir),
    )

    logger.info("Saving model...")
    save_artifact(report.model, layout.class_names, output_dir)
    logger.info(f"Success! Model saved to: {output_dir}")

    return TrainingSummary(
        output_dir=str(output_dir),
        class_names=layout.class_names,
        num_tasks=len(layout.tasks),
        num_samples=report.num_samples,
        flush_sizes=extracted.flush_sizes,
        pool=extracted.pool,
        history=report.history,
    )


def to_train_config(cfg: DictConfig) -> TrainConfig:
    """Validate a composed Hydra config into a frozen :class:`TrainConfig`."""
    container: Any = OmegaConf.to_container(cfg, resolve=True)
    return TrainConfig.model_validate(container)


@hydra.main(version_base=None, config_path="conf", config_name="train")
def main(cfg: DictConfig) -> None:
    """Run training with the given Hydra config."""
    # Setup logging
    logger.remove()
    logger.add(sys.stderr, level=cfg.get("log_level", "INFO"))

    logger.info(f"Configuration:\n{OmegaConf.to_yaml(cfg)}")
    config = to_train_config(cfg)
    run_training(config)


if __name__ == "__main__":
    main()
