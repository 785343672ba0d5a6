"""Tests for Hydra config composition and conversion to TrainConfig."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator

import pytest
from hydra import compose, initialize_config_dir
from hydra.core.global_hydra import GlobalHydra
from omegaconf import DictConfig

from transfer_classifier.config import TrainConfig
from transfer_classifier.train import to_train_config

CONF_DIR = os.path.abspath(
    os.path.join(
        os.path.dirname(__file__), "..", "src", "transfer_classifier", "conf"
    )
)


@pytest.fixture()
def hydra_cfg() -> Iterator[DictConfig]:
    """Compose the root training config, clearing GlobalHydra after."""
    GlobalHydra.instance().clear()
    with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
        cfg = compose(config_name="train")
        yield cfg
    GlobalHydra.instance().clear()


@pytest.fixture()
def hydra_cfg_with_overrides() -> Iterator[Callable[[list[str]], DictConfig]]:
    """Factory fixture for composing config with overrides."""

    def _compose(overrides: list[str]) -> DictConfig:
        GlobalHydra.instance().clear()
        with initialize_config_dir(config_dir=CONF_DIR, version_base=None):
            return compose(config_name="train", overrides=overrides)

    yield _compose
    GlobalHydra.instance().clear()


def test_hydra_config_composes(hydra_cfg: DictConfig) -> None:
    assert "pipeline" in hydra_cfg
    assert "backbone" in hydra_cfg
    assert "training" in hydra_cfg


def test_default_hyperparameters(hydra_cfg: DictConfig) -> None:
    assert hydra_cfg.pipeline.batch_size == 64
    assert hydra_cfg.pipeline.image_size == 224
    assert hydra_cfg.training.epochs == 20
    assert hydra_cfg.training.learning_rate == pytest.approx(1e-4)
    assert hydra_cfg.training.hidden_units == 100


def test_converts_to_frozen_train_config(hydra_cfg: DictConfig) -> None:
    config = to_train_config(hydra_cfg)
    assert isinstance(config, TrainConfig)
    assert config.pipeline.num_workers is None
    assert config.pipeline.start_method == "spawn"
    assert config.backbone.name == "mobilenet_v3_small"
    assert config.output_dir == "models/classifier-head"


def test_overrides_flow_through(
    hydra_cfg_with_overrides: Callable[[list[str]], DictConfig],
) -> None:
    cfg = hydra_cfg_with_overrides(
        [
            "pipeline.data_root=/data/dogs",
            "pipeline.num_workers=4",
            "training.epochs=5",
            "backbone.name=resnet18",
            "backbone.pooling=true",
        ]
    )
    config = to_train_config(cfg)
    assert config.pipeline.data_root == "/data/dogs"
    assert config.pipeline.num_workers == 4
    assert config.training.epochs == 5
    assert config.backbone.name == "resnet18"
    assert config.backbone.pooling is True


def test_invalid_override_rejected(
    hydra_cfg_with_overrides: Callable[[list[str]], DictConfig],
) -> None:
    cfg = hydra_cfg_with_overrides(["pipeline.batch_size=0"])
    with pytest.raises(ValueError):
        to_train_config(cfg)
