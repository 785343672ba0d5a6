"""Pillow image decoder producing fixed-size RGBA pixel buffers."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from PIL import Image, ImageOps

DEFAULT_IMAGE_SIZE = 224

Decoder = Callable[[str, int], bytes]


def decode_image(path: str | Path, image_size: int = DEFAULT_IMAGE_SIZE) -> bytes:
    """Decode ``path`` and cover-resize it to ``image_size`` x ``image_size``.

    The image is scaled to cover the target square and center-cropped, then
    returned as raw RGBA bytes of length ``image_size * image_size * 4``.
    Raises whatever Pillow raises for unreadable or corrupt files.
    """
    with Image.open(path) as img:
        rgba = img.convert("RGBA")
    fitted = ImageOps.fit(
        rgba, (image_size, image_size), method=Image.Resampling.BILINEAR
    )
    return fitted.tobytes()
