"""End-to-end tests for a full training run."""

from pathlib import Path

import pytest

from conftest import TEST_IMAGE_SIZE, write_image
from transfer_classifier.config import (
    PipelineConfig,
    TrainConfig,
    TrainingConfig,
)
from transfer_classifier.errors import DatasetNotFoundError, EmptyTrainingSetError
from transfer_classifier.io.artifact import (
    LABELS_FILENAME,
    MANIFEST_FILENAME,
    WEIGHTS_FILENAME,
    load_head,
)
from transfer_classifier.train import run_training


def _config(data_root: Path, output_dir: Path, **overrides) -> TrainConfig:
    values = {
        "pipeline": PipelineConfig(
            data_root=str(data_root),
            image_size=TEST_IMAGE_SIZE,
            batch_size=5,
            num_workers=2,
            start_method="fork",
        ),
        "training": TrainingConfig(epochs=2, batch_size=4, accelerator="cpu"),
        "output_dir": str(output_dir),
    }
    values.update(overrides)
    return TrainConfig(**values)


class TestRunTraining:
    def test_full_run(self, tmp_image_dataset, tmp_path, small_extractor) -> None:
        out = tmp_path / "model"
        summary = run_training(
            _config(tmp_image_dataset, out),
            extractor=small_extractor,
            poll_interval=0.1,
        )
        assert summary.class_names == ["cat", "dog"]
        assert summary.num_tasks == 8
        assert summary.num_samples == 8
        assert summary.flush_sizes == [5, 3]
        assert summary.pool.succeeded == 8
        assert len(summary.history) == 2

        for name in (MANIFEST_FILENAME, WEIGHTS_FILENAME, LABELS_FILENAME):
            assert (out / name).is_file()
        head, class_names = load_head(out)
        assert class_names == ["cat", "dog"]
        assert head.hparams["feature_dim"] == small_extractor.feature_dim

    def test_corrupt_image_skipped(self, tmp_path, small_extractor) -> None:
        root = tmp_path / "data"
        for i in range(5):
            write_image(root / "n01-ant" / f"{i}.png", color=(10, 10, 10))
            write_image(root / "n02-bee" / f"{i}.png", color=(240, 240, 10))
        (root / "n02-bee" / "4.png").write_bytes(b"truncated")

        summary = run_training(
            _config(root, tmp_path / "model"),
            extractor=small_extractor,
            poll_interval=0.1,
        )
        assert summary.num_tasks == 10
        assert summary.num_samples == 9
        assert summary.pool.failed == 1

    def test_single_class_with_corrupt_image(self, tmp_path, small_extractor) -> None:
        root = tmp_path / "data"
        for i in range(9):
            write_image(root / "n01-ant" / f"{i}.png")
        (root / "n01-ant" / "9.png").write_bytes(b"truncated")

        out = tmp_path / "model"
        summary = run_training(
            _config(root, out), extractor=small_extractor, poll_interval=0.1
        )
        assert summary.class_names == ["ant"]
        assert summary.num_tasks == 10
        assert summary.pool.succeeded == 9
        assert summary.pool.failed == 1
        assert summary.num_samples == 9
        assert summary.flush_sizes == [5, 4]

        head, class_names = load_head(out)
        assert class_names == ["ant"]
        assert head.num_classes == 1

    def test_plot_history(self, tmp_image_dataset, tmp_path, small_extractor) -> None:
        out = tmp_path / "model"
        run_training(
            _config(tmp_image_dataset, out, plot_history=True),
            extractor=small_extractor,
            poll_interval=0.1,
        )
        assert (out / "training_history" / "loss_history.png").is_file()

    def test_missing_root(self, tmp_path, small_extractor) -> None:
        with pytest.raises(DatasetNotFoundError):
            run_training(
                _config(tmp_path / "absent", tmp_path / "model"),
                extractor=small_extractor,
            )

    def test_all_images_corrupt(self, tmp_path, small_extractor) -> None:
        root = tmp_path / "data"
        (root / "only").mkdir(parents=True)
        (root / "only" / "bad.jpg").write_bytes(b"nope")
        with pytest.raises(EmptyTrainingSetError):
            run_training(
                _config(root, tmp_path / "model"),
                extractor=small_extractor,
                poll_interval=0.1,
            )
        assert not (tmp_path / "model" / MANIFEST_FILENAME).exists()
