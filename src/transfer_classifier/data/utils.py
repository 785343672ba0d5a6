"""Utility functions for the data pipeline."""

from pathlib import Path

IMAGE_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png")


def get_files(
    root: Path, extensions: tuple[str, ...], recursive: bool = False
) -> list[Path]:
    """Find files matching extensions under root.

    Args:
        root: Directory to search.
        extensions: Tuple of lowercase extensions including dot
            (e.g., (".jpg", ".png")). Matching is case-insensitive.
        recursive: Descend into subdirectories when True; otherwise only
            the immediate children of ``root`` are considered.

    Returns:
        Sorted list of matching file paths.
    """
    candidates = root.rglob("*") if recursive else root.iterdir()
    files = []
    for p in candidates:
        if p.is_file() and p.suffix.lower() in extensions:
            files.append(p)
    return sorted(files)
