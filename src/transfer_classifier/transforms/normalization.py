"""Pixel buffer normalization and label encoding.

Shared by the training batch assembler and the single-image inference path,
so both see identical inputs.
"""

from __future__ import annotations

import torch

RGBA_CHANNELS = 4
RGB_CHANNELS = 3
PIXEL_SCALE = 127.5


def normalize_rgba(buffer: bytes, image_size: int) -> torch.Tensor:
    """Convert a raw RGBA buffer to a float32 ``[H, W, 3]`` tensor in [-1, 1].

    Alpha is dropped; each retained channel becomes ``v / 127.5 - 1.0``.

    Raises:
        ValueError: ``buffer`` is not ``image_size * image_size * 4`` bytes.
    """
    expected = image_size * image_size * RGBA_CHANNELS
    if len(buffer) != expected:
        raise ValueError(
            f"Pixel buffer has {len(buffer)} bytes, expected {expected} "
            f"for a {image_size}x{image_size} RGBA image"
        )
    # bytearray gives frombuffer a writable copy; bytes are immutable
    raw = torch.frombuffer(bytearray(buffer), dtype=torch.uint8)
    rgb = raw.view(image_size, image_size, RGBA_CHANNELS)[..., :RGB_CHANNELS]
    return rgb.to(torch.float32) / PIXEL_SCALE - 1.0


def one_hot_label(label_index: int, num_classes: int) -> torch.Tensor:
    """Float one-hot vector of length ``num_classes``."""
    if not 0 <= label_index < num_classes:
        raise ValueError(
            f"label_index {label_index} out of range for {num_classes} classes"
        )
    label = torch.zeros(num_classes, dtype=torch.float32)
    label[label_index] = 1.0
    return label
