"""Tests for the decode worker pool."""

import os
from collections import Counter, defaultdict

import pytest

from transfer_classifier.data.pool import TaskExecutorPool, partition_tasks
from transfer_classifier.schemas.task import Task

IMAGE_SIZE = 4
BUFFER_LEN = IMAGE_SIZE * IMAGE_SIZE * 4


def fake_decoder(path: str, image_size: int) -> bytes:
    """Decode stand-in: fails on ``*.bad`` paths, otherwise a filled buffer."""
    if path.endswith(".bad"):
        raise ValueError(f"cannot identify image file {path!r}")
    return bytes([len(path) % 256]) * (image_size * image_size * 4)


def crashing_decoder(path: str, image_size: int) -> bytes:
    """Kill the whole worker process when it reaches the poisoned task."""
    if path.endswith("poison"):
        os._exit(3)
    return fake_decoder(path, image_size)


def _tasks(n: int) -> list[Task]:
    return [Task(file_path=f"/img/{i:03d}.png", label_index=i % 3) for i in range(n)]


def _run(tasks: list[Task], decoder=fake_decoder, **kwargs):
    with TaskExecutorPool(
        decoder=decoder,
        image_size=IMAGE_SIZE,
        start_method="fork",
        poll_interval=0.1,
        **kwargs,
    ) as pool:
        pool.dispatch(tasks)
        results = list(pool.results())
        summary = pool.join()
    return results, summary


class TestPartitionTasks:
    def test_even_split(self) -> None:
        chunks = partition_tasks(_tasks(8), 4)
        assert [len(c) for c in chunks] == [2, 2, 2, 2]

    def test_ceil_chunks_with_short_tail(self) -> None:
        chunks = partition_tasks(_tasks(10), 4)
        assert [len(c) for c in chunks] == [3, 3, 3, 1]

    def test_more_workers_than_tasks_leaves_empty_chunks(self) -> None:
        chunks = partition_tasks(_tasks(3), 5)
        assert [len(c) for c in chunks] == [1, 1, 1, 0, 0]

    def test_contiguous_and_complete(self) -> None:
        tasks = _tasks(11)
        chunks = partition_tasks(tasks, 3)
        assert [t for chunk in chunks for t in chunk] == tasks

    def test_no_tasks(self) -> None:
        assert partition_tasks([], 3) == [[], [], []]

    def test_non_positive_workers_rejected(self) -> None:
        with pytest.raises(ValueError):
            partition_tasks(_tasks(2), 0)


class TestTaskExecutorPool:
    @pytest.mark.parametrize("num_workers", [1, 2, 3, 7, 16])
    def test_every_task_reported_exactly_once(self, num_workers: int) -> None:
        tasks = _tasks(13)
        results, summary = _run(tasks, num_workers=num_workers)
        assert Counter(r.file_path for r in results) == Counter(
            t.file_path for t in tasks
        )
        assert summary.succeeded == 13
        assert summary.failed == 0
        assert summary.crashed_workers == []

    def test_results_carry_label_and_buffer(self) -> None:
        results, _ = _run(_tasks(4), num_workers=2)
        by_path = {r.file_path: r for r in results}
        for task in _tasks(4):
            result = by_path[task.file_path]
            assert result.ok
            assert result.label_index == task.label_index
            assert result.buffer is not None
            assert len(result.buffer) == BUFFER_LEN

    def test_per_worker_order_preserved(self) -> None:
        tasks = _tasks(12)
        results, _ = _run(tasks, num_workers=3)
        per_worker: dict[int, list[str]] = defaultdict(list)
        for r in results:
            per_worker[r.worker_id].append(r.file_path)
        chunks = partition_tasks(tasks, 3)
        for worker_id, paths in per_worker.items():
            assert paths == [t.file_path for t in chunks[worker_id]]

    def test_decode_failure_reported_as_error(self) -> None:
        tasks = _tasks(5) + [Task(file_path="/img/corrupt.bad", label_index=1)]
        results, summary = _run(tasks, num_workers=2)
        errors = [r for r in results if not r.ok]
        assert len(errors) == 1
        assert errors[0].file_path == "/img/corrupt.bad"
        assert errors[0].buffer is None
        assert "ValueError" in (errors[0].error or "")
        assert summary.succeeded == 5
        assert summary.failed == 1
        assert summary.received == 6

    def test_empty_chunks_start_no_worker(self) -> None:
        results, summary = _run(_tasks(2), num_workers=6)
        assert len(results) == 2
        assert summary.num_workers == 2
        assert {r.worker_id for r in results} == {0, 1}

    def test_no_tasks_completes_immediately(self) -> None:
        results, summary = _run([], num_workers=4)
        assert results == []
        assert summary.num_workers == 0
        assert summary.tasks == 0

    def test_crashed_worker_does_not_stall_completion(self) -> None:
        tasks = [Task(file_path="/img/poison", label_index=0)] + _tasks(7)
        # worker 0 gets the poisoned task first, worker 1 the last 4
        results, summary = _run(tasks, decoder=crashing_decoder, num_workers=2)
        assert len(summary.crashed_workers) == 1
        crash = summary.crashed_workers[0]
        assert crash.worker_id == 0
        assert crash.exitcode == 3
        assert crash.tasks_lost == 4
        assert {r.worker_id for r in results} == {1}
        assert summary.succeeded == 4

    def test_dispatch_only_once(self) -> None:
        with TaskExecutorPool(
            decoder=fake_decoder, num_workers=1, start_method="fork"
        ) as pool:
            pool.dispatch([])
            with pytest.raises(RuntimeError):
                pool.dispatch([])

    def test_results_before_dispatch_raises(self) -> None:
        pool = TaskExecutorPool(decoder=fake_decoder, num_workers=1)
        with pytest.raises(RuntimeError):
            next(pool.results())

    def test_default_worker_count_is_cpu_count(self) -> None:
        pool = TaskExecutorPool(decoder=fake_decoder)
        assert pool.num_workers == (os.cpu_count() or 1)
