"""
core/parallel - 병렬 처리 모듈

프로젝트/클러스터 단위 Atlas 작업을 병렬로 안전하게 처리합니다.

주요 구성 요소:
- ParallelTaskExecutor: 작업별 예외 격리 + 마감 시간을 지원하는 병렬 실행기
- ErrorCollector: 스레드 세이프 에러 수집기
- RetryConfig / call_with_retry: 지수 백오프 재시도

Example:
    from core.parallel import ParallelConfig, ParallelTaskExecutor, TaskSpec

    executor = ParallelTaskExecutor(ParallelConfig(max_workers=4, deadline_seconds=600))
    result = executor.execute(tasks, service="atlas")

    if result.error_count > 0:
        print(result.get_error_summary())
"""

from .decorators import RetryConfig, call_with_retry, categorize_error, get_error_code, is_retryable
from .errors import CollectedError, ErrorCollector, ErrorSeverity, try_or_default
from .executor import ParallelConfig, ParallelTaskExecutor, TaskSpec
from .types import ErrorCategory, ParallelExecutionResult, TaskError, TaskResult

__all__: list[str] = [
    # Executor
    "ParallelTaskExecutor",
    "ParallelConfig",
    "TaskSpec",
    # Retry
    "RetryConfig",
    "call_with_retry",
    "categorize_error",
    "get_error_code",
    "is_retryable",
    # Error handling
    "ErrorCollector",
    "ErrorSeverity",
    "CollectedError",
    "try_or_default",
    # Types
    "ErrorCategory",
    "TaskError",
    "TaskResult",
    "ParallelExecutionResult",
]
