"""
tests/core/parallel/test_executor.py - ParallelTaskExecutor 테스트
"""

import threading
import time

import pytest

from core.exceptions import APICallError
from core.parallel.executor import ParallelConfig, ParallelTaskExecutor, TaskSpec
from core.parallel.types import ErrorCategory


class TestParallelConfig:
    """ParallelConfig 테스트"""

    def test_default_values(self):
        """기본값 확인"""
        config = ParallelConfig()

        assert config.max_workers == 4
        assert config.deadline_seconds is None

    def test_max_workers_capped(self):
        assert ParallelConfig(max_workers=100).max_workers == 32

    def test_invalid_max_workers(self):
        with pytest.raises(ValueError):
            ParallelConfig(max_workers=0)

    def test_invalid_deadline(self):
        with pytest.raises(ValueError):
            ParallelConfig(deadline_seconds=0)


class TestParallelTaskExecutor:
    """ParallelTaskExecutor 테스트"""

    def test_empty_tasks(self):
        result = ParallelTaskExecutor().execute([])

        assert result.total_count == 0

    def test_all_success(self):
        tasks = [TaskSpec(identifier="dev", resource=f"c{i}", func=lambda i=i: i * 2) for i in range(5)]

        result = ParallelTaskExecutor(ParallelConfig(max_workers=3)).execute(tasks, service="atlas")

        assert result.success_count == 5
        assert sorted(r.data for r in result.successful) == [0, 2, 4, 6, 8]

    def test_exception_isolated_per_task(self):
        """한 작업의 예외가 다른 작업에 영향을 주지 않음"""

        def fail():
            raise APICallError("get_access_history", status_code=503)

        tasks = [
            TaskSpec(identifier="dev", resource="ok", func=lambda: "fine"),
            TaskSpec(identifier="dev", resource="bad", func=fail),
        ]

        result = ParallelTaskExecutor().execute(tasks)

        assert result.success_count == 1
        assert result.error_count == 1
        error = result.get_errors()[0]
        assert error.resource == "bad"
        assert error.category == ErrorCategory.SERVICE_ERROR
        assert error.error_code == "HTTP503"
        assert error.original_exception.__traceback__ is None

    def test_on_complete_called_per_task(self):
        seen = []
        tasks = [TaskSpec(identifier="dev", resource=f"c{i}", func=lambda: None) for i in range(3)]

        ParallelTaskExecutor().execute(tasks, on_complete=lambda r: seen.append(r.resource))

        assert sorted(seen) == ["c0", "c1", "c2"]

    def test_runs_concurrently(self):
        """max_workers만큼 동시에 실행"""
        barrier = threading.Barrier(3, timeout=2)
        tasks = [TaskSpec(identifier="dev", resource=f"c{i}", func=barrier.wait) for i in range(3)]

        result = ParallelTaskExecutor(ParallelConfig(max_workers=3)).execute(tasks)

        assert result.success_count == 3

    def test_deadline_cancels_queued_tasks(self):
        """마감 시간 초과 시 대기 중 작업은 취소, 실행 중 작업은 완료 대기"""
        started = []

        def slow(name):
            started.append(name)
            time.sleep(0.3)
            return name

        tasks = [TaskSpec(identifier="dev", resource=f"c{i}", func=lambda i=i: slow(f"c{i}")) for i in range(4)]

        result = ParallelTaskExecutor(ParallelConfig(max_workers=1, deadline_seconds=0.05)).execute(tasks)

        assert result.total_count == 4
        assert result.success_count == 1
        assert result.cancelled_count == 3
        assert result.error_count == 0
        assert started == ["c0"]
