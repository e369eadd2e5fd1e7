"""
core/parallel/errors.py - 프로젝트 단위 에러 수집

클러스터 작업 밖에서 발생하는 실패(프로젝트/클러스터 목록 조회 등)를 모읍니다.
수집된 에러는 예외로 전파되지 않고 스윕 결과의 errors에 포함됩니다.

Example:
    collector = ErrorCollector("atlas")

    clusters = try_or_default(
        lambda: client.list_clusters(project),
        default=[],
        collector=collector,
        identifier=project.name,
        operation="list_clusters",
    )
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from .decorators import categorize_error, get_error_code
from .types import ErrorCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorSeverity(Enum):
    """에러 심각도"""

    CRITICAL = "critical"  # 스윕 대상 전체를 알 수 없음 (프로젝트 목록 실패)
    WARNING = "warning"  # 일부 프로젝트 누락
    INFO = "info"  # 권한 없음 등


# 심각도 → 로그 레벨
_LOG_LEVELS = {
    ErrorSeverity.CRITICAL: logging.ERROR,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.INFO: logging.INFO,
}


@dataclass(frozen=True)
class CollectedError:
    """수집된 에러

    Attributes:
        identifier: 프로젝트 이름 (조직 단위 실패는 "organization")
        operation: 실패한 작업 (예: "list_clusters")
        error_code: 에러 코드 (예: "HTTP503", "GROUP_NOT_FOUND")
        error_message: 에러 메시지
        category: 에러 카테고리
        severity: 에러 심각도
        occurred_at: 수집 시각 (UTC)
    """

    identifier: str
    operation: str
    error_code: str
    error_message: str
    category: ErrorCategory
    severity: ErrorSeverity = ErrorSeverity.WARNING
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(
        cls,
        error: Exception,
        identifier: str,
        operation: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> CollectedError:
        """예외에서 생성 (권한 없음은 INFO로 낮춤)"""
        category = categorize_error(error)
        if category == ErrorCategory.ACCESS_DENIED:
            severity = ErrorSeverity.INFO
        return cls(
            identifier=identifier,
            operation=operation,
            error_code=get_error_code(error),
            error_message=str(error),
            category=category,
            severity=severity,
        )

    def __str__(self) -> str:
        return f"[{self.identifier}] {self.operation} 실패 ({self.error_code}): {self.error_message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "operation": self.operation,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "occurred_at": self.occurred_at.isoformat(),
        }


class ErrorCollector:
    """스레드 세이프 에러 수집기

    수집 시 심각도에 맞는 레벨로 로그를 남깁니다.
    """

    def __init__(self, service: str):
        self.service = service
        self._errors: list[CollectedError] = []
        self._lock = threading.Lock()

    def collect(
        self,
        error: Exception,
        identifier: str,
        operation: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> CollectedError:
        """예외를 CollectedError로 변환하여 수집

        Args:
            error: 발생한 예외
            identifier: 프로젝트 이름
            operation: 실패한 작업
            severity: 에러 심각도 (ACCESS_DENIED는 INFO로 낮춤)
        """
        collected = CollectedError.from_exception(error, identifier, operation, severity)

        with self._lock:
            self._errors.append(collected)

        logger.log(_LOG_LEVELS[collected.severity], f"{self.service}: {collected}")
        return collected

    @property
    def errors(self) -> list[CollectedError]:
        """수집 순서대로 복사본 반환"""
        with self._lock:
            return list(self._errors)

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return bool(self._errors)

    def count_by_severity(self) -> dict[ErrorSeverity, int]:
        with self._lock:
            counts = {severity: 0 for severity in ErrorSeverity}
            for e in self._errors:
                counts[e.severity] += 1
            return counts


def try_or_default(
    func: Callable[[], T],
    default: T,
    collector: ErrorCollector | None = None,
    identifier: str = "",
    operation: str = "",
    severity: ErrorSeverity = ErrorSeverity.WARNING,
) -> T:
    """함수 실행, 실패 시 에러를 수집하고 기본값 반환

    collector가 없으면 경고 로그만 남깁니다.
    """
    try:
        return func()
    except Exception as e:
        if collector is not None:
            collector.collect(e, identifier, operation, severity)
        else:
            logger.warning(f"[{identifier}] {operation}: {e}")
        return default
