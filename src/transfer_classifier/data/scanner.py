"""Dataset scanner for directory-per-class image datasets.

Layout::

    root/
      n02085620-Chihuahua/
        img_001.jpg
        ...
      n02085782-Japanese_spaniel/
        ...

Each immediate subdirectory is one class.  Its index in the sorted listing is
the label index used for one-hot targets and for the persisted class-name list.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import BaseModel

from transfer_classifier.data.utils import IMAGE_EXTENSIONS, get_files
from transfer_classifier.errors import DatasetNotFoundError
from transfer_classifier.schemas.task import Task

CLASS_NAME_SEPARATOR = "-"


class DatasetLayout(BaseModel, frozen=True):
    """Result of scanning a dataset root.

    ``class_dirs[i]`` and ``class_names[i]`` both describe label index ``i``.
    """

    root: str
    class_dirs: list[str]
    class_names: list[str]
    tasks: list[Task]

    @property
    def num_classes(self) -> int:
        return len(self.class_names)


def class_display_name(dir_name: str) -> str:
    """Derive a readable class name from a ``<id>-<name>`` directory name.

    Splits on the first separator only; falls back to the raw name when there
    is no separator or nothing follows it.
    """
    _, sep, name = dir_name.partition(CLASS_NAME_SEPARATOR)
    if not sep or not name:
        return dir_name
    return name


def scan_dataset(
    root: str | Path, extensions: tuple[str, ...] = IMAGE_EXTENSIONS
) -> DatasetLayout:
    """Enumerate classes and build the flat decode task list.

    Raises:
        DatasetNotFoundError: ``root`` does not exist or is not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise DatasetNotFoundError(f"Dataset folder not found at {root}")

    class_dirs = sorted(p for p in root.iterdir() if p.is_dir())
    class_names = [class_display_name(d.name) for d in class_dirs]
    logger.info(
        f"Classes detected ({len(class_names)}): {', '.join(class_names)}"
    )

    tasks: list[Task] = []
    for label_index, class_dir in enumerate(class_dirs):
        for path in get_files(class_dir, extensions):
            tasks.append(Task(file_path=str(path), label_index=label_index))
    logger.info(f"Found {len(tasks)} images total under {root}")

    return DatasetLayout(
        root=str(root),
        class_dirs=[d.name for d in class_dirs],
        class_names=class_names,
        tasks=tasks,
    )
