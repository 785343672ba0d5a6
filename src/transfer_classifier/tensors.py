"""Scoped tensor lifetime management.

Every tensor created inside a flush or an inference call is registered with a
:class:`TensorScope`.  Leaving the ``with`` block, normally or by exception,
drops the scope's references so the storage can be reclaimed before the next
batch or request arrives.  Tensors that must outlive the scope (stored feature
batches) are simply never tracked.

Usage::

    with tensor_scope("flush") as scope:
        batch = scope.track(torch.stack(images))
        features = extractor(batch)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import TypeVar

import torch
from loguru import logger

T = TypeVar("T", bound=torch.Tensor)


class TensorScope:
    """Holds references to tensors owned by one acquire/use/release block."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._tensors: list[torch.Tensor] = []
        self.released = 0

    def track(self, tensor: T) -> T:
        """Register ``tensor`` for release at scope exit and return it."""
        self._tensors.append(tensor)
        return tensor

    def track_all(self, tensors: Iterable[torch.Tensor]) -> None:
        self._tensors.extend(tensors)

    def __len__(self) -> int:
        return len(self._tensors)

    def release(self) -> int:
        """Drop every tracked reference. Returns how many were released."""
        count = len(self._tensors)
        self._tensors.clear()
        self.released += count
        return count


@contextmanager
def tensor_scope(name: str) -> Iterator[TensorScope]:
    """Run a block under ``torch.no_grad`` and release its tensors on exit."""
    scope = TensorScope(name)
    try:
        with torch.no_grad():
            yield scope
    finally:
        count = scope.release()
        logger.trace(f"tensor_scope[{name}]: released {count} tensor(s)")
