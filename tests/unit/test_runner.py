"""Tests for the success counter and partition task runner."""

import threading

import pytest

from copyloader.engine.runner import PartitionTaskRunner, SuccessCounter
from copyloader.exceptions import PartitionUploadError


class TestSuccessCounter:
    def test_starts_at_zero(self):
        assert SuccessCounter().value == 0

    def test_add(self):
        counter = SuccessCounter()
        counter.add()
        counter.add(2)
        assert counter.value == 3

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            SuccessCounter().add(-1)

    def test_concurrent_adds_are_not_lost(self):
        counter = SuccessCounter()

        def work():
            for _ in range(1000):
                counter.add(1)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counter.value == 8000


class TestPartitionTaskRunner:
    def test_runs_every_partition(self):
        runner = PartitionTaskRunner(max_workers=4)

        summary = runner.run(10, lambda pid, attempt: pid * 10)

        assert summary.results == {i: i * 10 for i in range(10)}
        assert summary.failures == {}
        assert summary.first_failure() is None

    def test_zero_partitions(self):
        summary = PartitionTaskRunner().run(0, lambda pid, attempt: pytest.fail("called"))
        assert summary.results == {}
        assert summary.failed_partitions == []

    def test_failure_does_not_stop_other_tasks(self):
        def task(pid, attempt):
            if pid == 2:
                raise RuntimeError("boom")
            return pid

        summary = PartitionTaskRunner(max_workers=2).run(5, task)

        assert sorted(summary.results) == [0, 1, 3, 4]
        assert summary.failed_partitions == [2]
        failure = summary.first_failure()
        assert isinstance(failure, PartitionUploadError)
        assert failure.partition_id == 2
        assert failure.attempts == 1
        assert isinstance(failure.original_error, RuntimeError)

    def test_first_failure_is_lowest_partition(self):
        def task(pid, attempt):
            if pid in (1, 3):
                raise RuntimeError(f"boom {pid}")
            return pid

        summary = PartitionTaskRunner().run(4, task)

        assert summary.failed_partitions == [1, 3]
        assert summary.first_failure().partition_id == 1

    def test_retries_until_success(self):
        calls = []

        def task(pid, attempt):
            calls.append((pid, attempt))
            if attempt < 3:
                raise ConnectionResetError("flaky")
            return attempt

        summary = PartitionTaskRunner(max_attempts=3).run(1, task)

        assert summary.results == {0: 3}
        assert summary.attempts == {0: 3}
        assert calls == [(0, 1), (0, 2), (0, 3)]

    def test_gives_up_after_max_attempts(self):
        def task(pid, attempt):
            raise ValueError("bad")

        summary = PartitionTaskRunner(max_attempts=2).run(1, task)

        assert summary.failures[0].attempts == 2
        assert "bad" in str(summary.failures[0])

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            PartitionTaskRunner(max_attempts=0)
