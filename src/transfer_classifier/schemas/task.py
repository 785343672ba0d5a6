"""Decode task and per-image result records exchanged with pool workers.

Both models are frozen and picklable: they are the only thing that crosses
the process boundary, so every handoff is a copy.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class Task(BaseModel, frozen=True):
    """A single image to decode, tagged with its class index."""

    file_path: str
    label_index: int = Field(ge=0)


class TaskResult(BaseModel, frozen=True):
    """Outcome of decoding one task.

    ``buffer`` holds the raw RGBA bytes (``size * size * 4``) on success;
    ``error`` holds the failure detail otherwise.
    """

    worker_id: int
    status: Literal["success", "error"]
    file_path: str
    label_index: int
    buffer: bytes | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class WorkerCrash(BaseModel, frozen=True):
    """A worker process that died before reporting all of its tasks."""

    worker_id: int
    exitcode: int | None
    tasks_lost: int


class PoolSummary(BaseModel, frozen=True):
    """Accounting for one pool run."""

    num_workers: int
    tasks: int
    succeeded: int
    failed: int
    crashed_workers: list[WorkerCrash] = []

    @property
    def received(self) -> int:
        return self.succeeded + self.failed
