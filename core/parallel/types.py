"""
core/parallel/types.py - 병렬 실행 결과 타입

클러스터 단위 작업의 성공/실패를 구조화된 결과로 표현합니다.
작업 함수가 던진 예외는 TaskError로 변환되어 작업 경계를 넘지 않습니다.

주요 구성 요소:
- ErrorCategory: 에러 카테고리 분류
- TaskError: 개별 작업 실패 정보
- TaskResult: 개별 작업 결과
- ParallelExecutionResult: 전체 실행 결과 (불변)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCategory(Enum):
    """에러 카테고리"""

    THROTTLING = "throttling"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"  # 원격에서 이미 상태가 바뀐 경우
    NETWORK = "network"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    SERVICE_ERROR = "service_error"
    UNKNOWN = "unknown"


RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.THROTTLING,
        ErrorCategory.NETWORK,
        ErrorCategory.TIMEOUT,
        ErrorCategory.SERVICE_ERROR,
    }
)


@dataclass
class TaskError:
    """개별 작업 실패 정보

    Attributes:
        identifier: 프로젝트 식별자 (이름 또는 ID)
        resource: 클러스터 이름
        category: 에러 카테고리
        error_code: 에러 코드 (Atlas errorCode 또는 예외 클래스명)
        message: 에러 메시지
        retries: 재시도 횟수
        original_exception: 원본 예외
        timestamp: 발생 시각 (UTC)
    """

    identifier: str
    resource: str
    category: ErrorCategory
    error_code: str
    message: str
    retries: int = 0
    original_exception: BaseException | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"[{self.identifier}/{self.resource}] {self.error_code}: {self.message}"

    def is_retryable(self) -> bool:
        """재시도 가능한 카테고리인지 확인"""
        return self.category in RETRYABLE_CATEGORIES

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (로깅/직렬화용)"""
        return {
            "identifier": self.identifier,
            "resource": self.resource,
            "category": self.category.value,
            "error_code": self.error_code,
            "message": self.message,
            "retries": self.retries,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class TaskResult(Generic[T]):
    """개별 작업 결과"""

    identifier: str
    resource: str
    success: bool
    data: T | None = None
    error: TaskError | None = None
    duration_ms: float = 0.0
    cancelled: bool = False  # 마감 시간 초과로 시작되지 못한 작업

    def __str__(self) -> str:
        if self.cancelled:
            status = "DEFERRED"
        else:
            status = "OK" if self.success else "FAIL"
        return f"[{self.identifier}/{self.resource}] {status} ({self.duration_ms:.0f}ms)"


@dataclass(frozen=True)
class ParallelExecutionResult(Generic[T]):
    """전체 병렬 실행 결과

    작업 완료 순서대로 수집된 TaskResult의 불변 모음입니다.
    """

    results: Sequence[TaskResult[T]] = ()

    @property
    def successful(self) -> list[TaskResult[T]]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[TaskResult[T]]:
        return [r for r in self.results if not r.success and not r.cancelled]

    @property
    def cancelled(self) -> list[TaskResult[T]]:
        return [r for r in self.results if r.cancelled]

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def error_count(self) -> int:
        return len(self.failed)

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled)

    def get_errors(self) -> list[TaskError]:
        return [r.error for r in self.results if r.error is not None]

    def get_errors_by_category(self) -> dict[ErrorCategory, list[TaskError]]:
        grouped: dict[ErrorCategory, list[TaskError]] = {}
        for error in self.get_errors():
            grouped.setdefault(error.category, []).append(error)
        return grouped

    def get_error_summary(self, max_per_category: int = 3) -> str:
        """카테고리별 에러 요약 문자열

        Args:
            max_per_category: 카테고리별 최대 표시 건수

        Returns:
            요약 문자열 (에러가 없으면 빈 문자열)
        """
        errors = self.get_errors()
        if not errors:
            return ""

        lines = [f"총 {len(errors)}개 작업 실패"]
        for category, items in self.get_errors_by_category().items():
            lines.append(f"  [{category.value}] {len(items)}건")
            for error in items[:max_per_category]:
                lines.append(f"    - {error.identifier}/{error.resource}: {error.message}")
            if len(items) > max_per_category:
                lines.append(f"    ... 외 {len(items) - max_per_category}건")
        return "\n".join(lines)
