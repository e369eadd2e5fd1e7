"""
core/parallel/decorators.py - Atlas API 에러 분류 및 재시도 유틸리티

Atlas Admin API 호출의 에러 분류, 재시도 가능 여부 판단,
지수 백오프 재시도 설정을 제공합니다.

주요 구성 요소:
- RetryConfig: 재시도 설정 (지수 백오프 + 지터)
- categorize_error: 예외를 ErrorCategory로 분류
- get_error_code: 예외에서 에러 코드 추출
- is_retryable: 재시도 가능 여부 판단
- call_with_retry: 재시도 가능한 에러에 한해 함수 재실행
"""

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

import requests

from core.exceptions import APICallError, is_access_denied, is_not_found, is_throttling

from .types import ErrorCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """재시도 설정

    Attributes:
        max_retries: 최대 재시도 횟수 (0이면 재시도 안함)
        base_delay: 기본 대기 시간 (초)
        max_delay: 최대 대기 시간 (초)
        exponential_base: 지수 백오프 밑수
        jitter: 지터 사용 여부 (대기 시간에 랜덤성 추가)
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    def get_delay(self, attempt: int) -> float:
        """재시도 대기 시간 계산

        Args:
            attempt: 현재 시도 횟수 (0부터 시작)

        Returns:
            대기 시간 (초)
        """
        delay = self.base_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Full jitter: [0, delay]
            delay = random.uniform(0, delay)

        return delay


DEFAULT_RETRY_CONFIG = RetryConfig()

# 재시도 가능한 HTTP 상태 코드
RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}

# 원격 상태 충돌 (예: 이미 일시정지 중인 클러스터, 업데이트 진행 중)
CONFLICT_ERROR_CODES: set[str] = {
    "CANNOT_PAUSE_RECENTLY_RESUMED_CLUSTER",
    "CANNOT_UPDATE_PAUSED_CLUSTER",
    "CLUSTER_ALREADY_PAUSED",
    "CANNOT_MODIFY_CLUSTER_WHILE_UPDATING",
}


def _status_code(error: Exception) -> int | None:
    if isinstance(error, APICallError):
        return error.status_code
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def categorize_error(error: Exception) -> ErrorCategory:
    """예외 객체를 분석하여 ErrorCategory로 분류

    Args:
        error: 분류할 예외

    Returns:
        에러 카테고리
    """
    if is_throttling(error):
        return ErrorCategory.THROTTLING
    if is_access_denied(error):
        return ErrorCategory.ACCESS_DENIED
    if is_not_found(error):
        return ErrorCategory.NOT_FOUND

    if isinstance(error, APICallError) and error.error_code in CONFLICT_ERROR_CODES:
        return ErrorCategory.CONFLICT

    status = _status_code(error)
    if status == 409:
        return ErrorCategory.CONFLICT
    if status in (400, 422):
        return ErrorCategory.INVALID_REQUEST
    if status is not None and status >= 500:
        return ErrorCategory.SERVICE_ERROR

    # requests.Timeout은 ConnectionError보다 먼저 검사
    if isinstance(error, (requests.Timeout, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (requests.ConnectionError, ConnectionError, OSError)):
        return ErrorCategory.NETWORK

    # 래핑된 예외는 원인으로 분류
    cause = getattr(error, "cause", None)
    if isinstance(cause, Exception):
        return categorize_error(cause)

    return ErrorCategory.UNKNOWN


def get_error_code(error: Exception) -> str:
    """예외 객체에서 에러 코드 문자열 추출

    APICallError의 경우 Atlas errorCode(없으면 HTTP 상태)를 사용하고,
    그 외에는 예외 클래스명을 반환합니다.
    """
    if isinstance(error, APICallError):
        if error.error_code:
            return error.error_code
        if error.status_code is not None:
            return f"HTTP{error.status_code}"
    return error.__class__.__name__


def is_retryable(error: Exception) -> bool:
    """재시도 가능한 에러인지 확인

    429/5xx 응답이거나 네트워크/타임아웃 에러인 경우 True를 반환합니다.
    """
    status = _status_code(error)
    if status is not None:
        return status in RETRYABLE_STATUS_CODES

    return isinstance(error, (requests.ConnectionError, requests.Timeout, ConnectionError, TimeoutError))


def call_with_retry(
    func: Callable[[], T],
    retry_config: RetryConfig | None = None,
    operation: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """재시도 가능한 에러에 대해 지수 백오프로 함수 재실행

    재시도 불가능한 에러이거나 재시도를 모두 소진하면 마지막 예외를 그대로 던집니다.

    Args:
        func: 실행할 함수 (인자 없음)
        retry_config: 재시도 설정 (None이면 기본값)
        operation: 로깅용 작업 이름
        sleep: 대기 함수 (테스트 주입용)

    Returns:
        함수 실행 결과
    """
    config = retry_config or DEFAULT_RETRY_CONFIG

    for attempt in range(config.max_retries + 1):
        try:
            return func()
        except Exception as e:
            if not is_retryable(e) or attempt >= config.max_retries:
                raise
            delay = config.get_delay(attempt)
            logger.debug(f"{operation} 시도 {attempt + 1} 실패 ({get_error_code(e)}), {delay:.2f}초 후 재시도...")
            sleep(delay)

    # 도달하지 않음 (마지막 시도에서 반환 또는 예외)
    raise RuntimeError(f"{operation}: 재시도 루프 종료")
