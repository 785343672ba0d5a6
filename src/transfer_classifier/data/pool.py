"""Process pool that decodes images in parallel and streams results back.

Each worker is an isolated OS process that receives one contiguous chunk of
the task list and decodes it strictly in order.  Workers share nothing with
the coordinator: every result is pickled through a bounded queue, so a full
queue applies backpressure to the decoders instead of growing memory.

The coordinator side is a dispatch / collect / join sequence::

    with TaskExecutorPool(num_workers=8) as pool:
        pool.dispatch(layout.tasks)
        for result in pool.results():
            assembler.add(result)
        summary = pool.join()

``results()`` is the join barrier: it returns only once every started worker
is retired, either by reporting all of its tasks or by dying.  A dead worker
is retired as if it had finished with zero further results and is recorded
in :attr:`PoolSummary.crashed_workers`; it never stalls completion.
"""

from __future__ import annotations

import math
import multiprocessing
import os
import queue
from collections.abc import Iterator, Sequence
from multiprocessing.process import BaseProcess
from typing import Any, Literal

from loguru import logger

from transfer_classifier.data.decoder import DEFAULT_IMAGE_SIZE, Decoder, decode_image
from transfer_classifier.schemas.task import PoolSummary, Task, TaskResult, WorkerCrash

__all__ = ["Decoder", "TaskExecutorPool", "partition_tasks"]


def partition_tasks(tasks: Sequence[Task], num_workers: int) -> list[list[Task]]:
    """Split ``tasks`` into ``num_workers`` contiguous chunks of ceil(T/W).

    Trailing chunks may be empty when T is small relative to W.
    """
    if num_workers <= 0:
        raise ValueError(f"num_workers must be positive, got {num_workers}")
    if not tasks:
        return [[] for _ in range(num_workers)]
    chunk_size = math.ceil(len(tasks) / num_workers)
    return [
        list(tasks[i * chunk_size : (i + 1) * chunk_size])
        for i in range(num_workers)
    ]


def _worker_main(
    worker_id: int,
    tasks: list[Task],
    decoder: Decoder,
    image_size: int,
    channel: Any,
) -> None:
    """Decode ``tasks`` in order, emitting exactly one result per task."""
    for task in tasks:
        try:
            buffer = decoder(task.file_path, image_size)
        except Exception as e:
            channel.put(
                TaskResult(
                    worker_id=worker_id,
                    status="error",
                    file_path=task.file_path,
                    label_index=task.label_index,
                    error=f"{type(e).__name__}: {e}",
                )
            )
            continue
        channel.put(
            TaskResult(
                worker_id=worker_id,
                status="success",
                file_path=task.file_path,
                label_index=task.label_index,
                buffer=bytes(buffer),
            )
        )


class _WorkerState:
    """Coordinator-side bookkeeping for one worker process."""

    def __init__(self, process: BaseProcess, assigned: int) -> None:
        self.process = process
        self.assigned = assigned
        self.completed = 0
        self.retired = False


class TaskExecutorPool:
    """Fixed-size pool of decode worker processes.

    Args:
        decoder: ``(path, image_size) -> bytes`` callable run inside workers.
            Must be picklable (a module-level function) unless the ``fork``
            start method is used.
        num_workers: Number of worker processes. ``None`` uses one per CPU.
        image_size: Side length of the square RGBA buffers to produce.
        queue_size: Capacity of the result channel.
        start_method: ``multiprocessing`` start method for workers.
        poll_interval: Seconds the coordinator waits on an idle channel
            before checking worker liveness.
    """

    def __init__(
        self,
        decoder: Decoder = decode_image,
        num_workers: int | None = None,
        image_size: int = DEFAULT_IMAGE_SIZE,
        queue_size: int = 256,
        start_method: Literal["spawn", "fork", "forkserver"] = "spawn",
        poll_interval: float = 0.5,
    ) -> None:
        self.num_workers = num_workers or os.cpu_count() or 1
        self.image_size = image_size
        self.queue_size = queue_size
        self.poll_interval = poll_interval
        self._decoder = decoder
        self._ctx = multiprocessing.get_context(start_method)
        self._channel: Any = None
        self._workers: dict[int, _WorkerState] = {}
        self._num_tasks = 0
        self._succeeded = 0
        self._failed = 0
        self._crashes: list[WorkerCrash] = []
        self._dispatched = False

    def __enter__(self) -> TaskExecutorPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, tasks: Sequence[Task]) -> None:
        """Start one worker per non-empty chunk of ``tasks``."""
        if self._dispatched:
            raise RuntimeError("TaskExecutorPool.dispatch() may only be called once")
        self._dispatched = True
        self._num_tasks = len(tasks)
        self._channel = self._ctx.Queue(maxsize=self.queue_size)

        for worker_id, chunk in enumerate(partition_tasks(tasks, self.num_workers)):
            if not chunk:
                continue
            process = self._ctx.Process(
                target=_worker_main,
                args=(worker_id, chunk, self._decoder, self.image_size, self._channel),
                name=f"decode-worker-{worker_id}",
                daemon=True,
            )
            process.start()
            self._workers[worker_id] = _WorkerState(process, assigned=len(chunk))

        logger.info(
            f"Dispatched {len(tasks)} task(s) to {len(self._workers)} worker(s) "
            f"(pool size {self.num_workers})"
        )

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    @property
    def active_workers(self) -> int:
        return sum(1 for state in self._workers.values() if not state.retired)

    def results(self) -> Iterator[TaskResult]:
        """Yield results in arrival order until every worker is retired."""
        if not self._dispatched:
            raise RuntimeError("Call dispatch() before results()")
        while self.active_workers:
            try:
                result = self._channel.get(timeout=self.poll_interval)
            except queue.Empty:
                yield from self._reap_dead_workers()
                continue
            self._account(result)
            yield result
        logger.info(
            f"All workers finished: {self._succeeded} succeeded, "
            f"{self._failed} failed, {len(self._crashes)} crashed"
        )

    def _account(self, result: TaskResult) -> None:
        state = self._workers[result.worker_id]
        state.completed += 1
        if result.ok:
            self._succeeded += 1
        else:
            self._failed += 1
        if state.completed >= state.assigned:
            state.retired = True
            logger.debug(
                f"Worker {result.worker_id} retired after {state.completed} task(s)"
            )

    def _drain(self) -> Iterator[TaskResult]:
        """Yield whatever is already sitting in the channel."""
        while True:
            try:
                result = self._channel.get(block=False)
            except queue.Empty:
                return
            self._account(result)
            yield result

    def _reap_dead_workers(self) -> Iterator[TaskResult]:
        """Retire workers whose process exited before reporting every task."""
        for worker_id, state in self._workers.items():
            if state.retired or state.process.is_alive():
                continue
            # Results flushed before the process exited are still in the pipe.
            yield from self._drain()
            if state.retired:
                continue
            state.retired = True
            crash = WorkerCrash(
                worker_id=worker_id,
                exitcode=state.process.exitcode,
                tasks_lost=state.assigned - state.completed,
            )
            self._crashes.append(crash)
            logger.error(
                f"Worker {worker_id} died (exitcode={crash.exitcode}) with "
                f"{crash.tasks_lost} of {state.assigned} task(s) unreported"
            )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def summary(self) -> PoolSummary:
        return PoolSummary(
            num_workers=len(self._workers),
            tasks=self._num_tasks,
            succeeded=self._succeeded,
            failed=self._failed,
            crashed_workers=list(self._crashes),
        )

    def join(self, timeout: float | None = 5.0) -> PoolSummary:
        """Reap every worker process and return the run's accounting."""
        for state in self._workers.values():
            state.process.join(timeout)
            if state.process.is_alive():
                logger.warning(f"Terminating unresponsive {state.process.name}")
                state.process.terminate()
                state.process.join()
        return self.summary

    def close(self) -> None:
        """Terminate any live worker and release the channel."""
        for state in self._workers.values():
            if state.process.is_alive():
                state.process.terminate()
            state.process.join()
        if self._channel is not None:
            self._channel.close()
            self._channel = None
