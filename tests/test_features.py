"""End-to-end tests for the scan -> decode -> extract pipeline."""

from pathlib import Path

from conftest import TEST_IMAGE_SIZE, write_image
from transfer_classifier.config import PipelineConfig
from transfer_classifier.data.features import extract_feature_batches
from transfer_classifier.data.scanner import scan_dataset


def _config(root: Path, **overrides) -> PipelineConfig:
    values = {
        "data_root": str(root),
        "image_size": TEST_IMAGE_SIZE,
        "batch_size": 5,
        "num_workers": 2,
        "start_method": "fork",
    }
    values.update(overrides)
    return PipelineConfig(**values)


class TestExtractFeatureBatches:
    def test_two_classes_batch_five(self, tmp_image_dataset, stub_extractor) -> None:
        layout = scan_dataset(tmp_image_dataset)
        result = extract_feature_batches(
            layout, stub_extractor, _config(tmp_image_dataset), poll_interval=0.1
        )
        assert result.flush_sizes == [5, 3]
        assert result.processed == 8
        assert result.failed == 0
        assert result.pool.succeeded == 8
        assert result.store.num_samples == 8

        features, labels = result.store.merge()
        assert features.shape == (8, 3)
        assert labels.shape == (8, 2)
        assert sorted(labels.argmax(dim=1).tolist()) == [0, 0, 0, 0, 1, 1, 1, 1]

    def test_corrupt_image_is_skipped(self, tmp_path, stub_extractor) -> None:
        root = tmp_path / "data"
        for i in range(9):
            write_image(root / "n01-bird" / f"ok_{i}.png")
        (root / "n01-bird" / "corrupt.jpg").write_bytes(b"definitely not a jpeg")

        layout = scan_dataset(root)
        assert len(layout.tasks) == 10
        result = extract_feature_batches(
            layout, stub_extractor, _config(root, batch_size=4), poll_interval=0.1
        )
        assert result.processed == 9
        assert result.failed == 1
        assert result.pool.failed == 1
        assert result.store.num_samples == 9
        assert result.flush_sizes == [4, 4, 1]

    def test_more_workers_than_images(self, tmp_path, stub_extractor) -> None:
        root = tmp_path / "data"
        write_image(root / "a" / "only.png")
        layout = scan_dataset(root)
        result = extract_feature_batches(
            layout, stub_extractor, _config(root, num_workers=8), poll_interval=0.1
        )
        assert result.pool.num_workers == 1
        assert result.flush_sizes == [1]
