"""
core/parallel/executor.py - 병렬 작업 실행기

클러스터 단위 작업을 ThreadPoolExecutor로 병렬 처리합니다.
각 작업은 독립적으로 실행되며, 작업 함수가 던진 예외는 TaskError로 변환되어
다른 작업에 영향을 주지 않습니다.

주요 구성 요소:
- ParallelConfig: 병렬 실행 설정 (워커 수, 전체 마감 시간)
- TaskSpec: 실행할 개별 작업 명세
- ParallelTaskExecutor: 병렬 실행기

마감 시간(deadline_seconds)이 지나면 아직 시작되지 않은 작업은 취소되어
cancelled 결과로 기록되고, 이미 실행 중인 작업은 끝까지 기다립니다.

Example:
    tasks = [
        TaskSpec(identifier=p.name, resource=c.cluster_name, func=partial(process, c))
        for c in clusters
    ]
    executor = ParallelTaskExecutor(ParallelConfig(max_workers=4))
    result = executor.execute(tasks, service="atlas")

    print(f"성공: {result.success_count}, 실패: {result.error_count}")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Generic, TypeVar

from .decorators import categorize_error, get_error_code
from .types import ErrorCategory, ParallelExecutionResult, TaskError, TaskResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_WORKERS_LIMIT = 32


def _clear_exception_chain(e: BaseException) -> None:
    """traceback + chained exception 메모리 누수 방지"""
    e.__traceback__ = None
    if e.__context__ is not None:
        e.__context__.__traceback__ = None
    if e.__cause__ is not None:
        e.__cause__.__traceback__ = None


@dataclass
class ParallelConfig:
    """병렬 실행 설정

    Attributes:
        max_workers: 최대 동시 스레드 수 (1~32)
        deadline_seconds: 전체 실행 마감 시간 (None이면 무제한)
    """

    max_workers: int = 4
    deadline_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.max_workers > MAX_WORKERS_LIMIT:
            self.max_workers = MAX_WORKERS_LIMIT
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ValueError(f"deadline_seconds must be > 0, got {self.deadline_seconds}")


@dataclass
class TaskSpec(Generic[T]):
    """실행할 개별 작업 명세

    Attributes:
        identifier: 프로젝트 이름 또는 ID
        resource: 클러스터 이름
        func: 인자 없는 작업 함수
    """

    identifier: str
    resource: str
    func: Callable[[], T]


class ParallelTaskExecutor:
    """병렬 작업 실행기

    특징:
    - ThreadPoolExecutor 기반 병렬 처리
    - 작업별 예외 격리 (TaskError로 변환)
    - 전체 마감 시간 초과 시 미시작 작업 취소
    - 모든 작업 결과를 모은 뒤에만 반환
    """

    def __init__(self, config: ParallelConfig | None = None):
        self.config = config or ParallelConfig()

    def execute(
        self,
        tasks: Sequence[TaskSpec[T]],
        service: str = "default",
        on_complete: Callable[[TaskResult[T]], None] | None = None,
    ) -> ParallelExecutionResult[T]:
        """작업 목록을 병렬 실행

        Args:
            tasks: 실행할 작업 명세 목록
            service: 로깅용 서비스 이름
            on_complete: 작업 하나가 끝날 때마다 호출되는 콜백 (진행률 표시용)

        Returns:
            ParallelExecutionResult[T]: 전체 실행 결과
        """
        if not tasks:
            logger.info("실행할 작업이 없습니다")
            return ParallelExecutionResult()

        logger.info(
            f"병렬 실행 시작: {len(tasks)}개 작업, max_workers={self.config.max_workers}, service={service}"
        )

        results: list[TaskResult[T]] = []
        start_time = time.monotonic()

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures: dict[Future[TaskResult[T]], TaskSpec[T]] = {
                executor.submit(self._execute_single, task): task for task in tasks
            }
            pending = dict(futures)

            try:
                for future in as_completed(futures, timeout=self.config.deadline_seconds):
                    task = pending.pop(future)
                    result = self._collect(future, task)
                    results.append(result)
                    if on_complete:
                        on_complete(result)
            except FuturesTimeoutError:
                logger.warning(
                    f"마감 시간 {self.config.deadline_seconds}초 초과: 남은 작업 {len(pending)}개 처리"
                )
                # 먼저 모두 취소해야 대기 중 작업이 새로 시작되지 않음
                cancelled = {future for future in pending if future.cancel()}
                for future, task in pending.items():
                    if future in cancelled:
                        result = TaskResult(
                            identifier=task.identifier, resource=task.resource, success=False, cancelled=True
                        )
                    else:
                        # 이미 실행 중인 작업은 완료까지 대기
                        result = self._collect(future, task)
                    results.append(result)
                    if on_complete:
                        on_complete(result)

        total_time = (time.monotonic() - start_time) * 1000
        exec_result = ParallelExecutionResult(results=tuple(results))

        logger.info(
            f"병렬 실행 완료: 성공 {exec_result.success_count}, 실패 {exec_result.error_count}, "
            f"취소 {exec_result.cancelled_count}, 총 {total_time:.0f}ms"
        )

        return exec_result

    def _collect(self, future: Future[TaskResult[T]], task: TaskSpec[T]) -> TaskResult[T]:
        """완료된 future에서 결과 추출 (예상치 못한 executor 에러 포함)"""
        try:
            return future.result()
        except Exception as e:
            logger.error(f"작업 실행 중 예외 [{task.identifier}/{task.resource}]: {e}")
            _clear_exception_chain(e)
            return TaskResult(
                identifier=task.identifier,
                resource=task.resource,
                success=False,
                error=TaskError(
                    identifier=task.identifier,
                    resource=task.resource,
                    category=ErrorCategory.UNKNOWN,
                    error_code="ExecutorError",
                    message=str(e),
                    original_exception=e,
                ),
            )

    def _execute_single(self, task: TaskSpec[T]) -> TaskResult[T]:
        """단일 작업 실행 (워커 스레드 내에서 호출)"""
        start_time = time.monotonic()

        try:
            data = task.func()
            return TaskResult(
                identifier=task.identifier,
                resource=task.resource,
                success=True,
                data=data,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )
        except Exception as e:
            _clear_exception_chain(e)
            return TaskResult(
                identifier=task.identifier,
                resource=task.resource,
                success=False,
                error=TaskError(
                    identifier=task.identifier,
                    resource=task.resource,
                    category=categorize_error(e),
                    error_code=get_error_code(e),
                    message=str(e),
                    original_exception=e,
                ),
                duration_ms=(time.monotonic() - start_time) * 1000,
            )
