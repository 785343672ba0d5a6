"""Shared pytest fixtures for transfer_classifier tests."""

from pathlib import Path

import pytest
import torch
from PIL import Image
from torch import nn

from transfer_classifier.models.backbone import FeatureExtractor

TEST_IMAGE_SIZE = 32


def write_image(
    path: Path, color: tuple[int, int, int] = (100, 150, 200), size: int = 48
) -> Path:
    """Save a solid-colour RGB image; format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (size, size), color=color).save(path)
    return path


class StubExtractor(nn.Module):
    """Feature extractor stand-in: per-image channel means, (B, 3).

    Records the batch size of every forward pass so tests can count flushes.
    """

    def __init__(self) -> None:
        super().__init__()
        self.batch_sizes: list[int] = []

    def forward(self, images: torch.Tensor) -> torch.Tensor:
        self.batch_sizes.append(int(images.shape[0]))
        return images.mean(dim=(1, 2))


@pytest.fixture()
def tmp_image_dataset(tmp_path: Path) -> Path:
    """Directory-per-class dataset with 2 classes x 4 images.

    Class directories use the ``<id>-<name>`` convention.  Each class mixes
    .jpg/.JPEG/.png files and contains one non-image file that must be
    ignored.
    """
    root = tmp_path / "dataset"
    for cls, color in (("n001-cat", (200, 30, 30)), ("n002-dog", (30, 30, 200))):
        class_dir = root / cls
        for i, ext in enumerate((".jpg", ".JPEG", ".png", ".png")):
            write_image(class_dir / f"img_{i:02d}{ext}", color=color)
        (class_dir / "notes.txt").write_text("not an image")
    return root


@pytest.fixture()
def stub_extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture(scope="session")
def small_extractor() -> FeatureExtractor:
    """Randomly initialised MobileNetV3-small for 32x32 inputs (576 features)."""
    return FeatureExtractor(
        name="mobilenet_v3_small", pretrained=False, image_size=TEST_IMAGE_SIZE
    )
