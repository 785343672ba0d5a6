"""Model artifact persistence."""

from transfer_classifier.io.artifact import (
    build_head,
    load_artifact,
    load_head,
    save_artifact,
)

__all__ = [
    "build_head",
    "load_artifact",
    "load_head",
    "save_artifact",
]
