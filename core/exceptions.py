"""
core/exceptions.py - 통합 예외 계층 구조

자동 일시정지 작업 전체에서 사용되는 예외 클래스들을 정의합니다.

예외 계층 구조:
    AutoPauseError (베이스)
    ├── ConfigError (설정 관련, 실행 전체 중단)
    ├── ValidationError (API 레코드/입력 검증)
    └── APICallError (Atlas API 호출)
        ├── TransientFetchError (프로젝트/클러스터/접근 로그 조회 실패)
        └── PauseActionError (일시정지 요청 실패)

Usage:
    from core.exceptions import APICallError, TransientFetchError

    try:
        entries = client.get_access_history(project_id, cluster_name)
    except APICallError as e:
        raise TransientFetchError(
            operation="get_access_history",
            resource=f"{project_id}/{cluster_name}",
            cause=e,
        ) from e
"""

from typing import Any, Dict, Optional

# =============================================================================
# 베이스 예외
# =============================================================================


class AutoPauseError(Exception):
    """자동 일시정지 기본 예외 클래스

    Attributes:
        message: 에러 메시지
        cause: 원인 예외 (체이닝용)
        details: 추가 상세 정보
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """예외 정보를 딕셔너리로 반환"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "cause": str(self.cause) if self.cause else None,
            "details": self.details,
        }


# =============================================================================
# 설정/검증 관련 예외
# =============================================================================


class ConfigError(AutoPauseError):
    """설정 관련 예외

    잘못된 설정으로 모든 클러스터를 판단하면 결과가 틀리므로
    이 예외는 실행 전체를 조기에 중단시킵니다.
    """

    def __init__(
        self,
        key: str,
        message: str,
        cause: Optional[Exception] = None,
    ):
        full_message = f"설정 오류 [{key}]: {message}"
        super().__init__(full_message, cause)
        self.config_key = key
        self.details["config_key"] = key


class ValidationError(AutoPauseError):
    """입력 검증 오류"""

    def __init__(
        self,
        field: str,
        value: Any,
        expected: str,
        cause: Optional[Exception] = None,
    ):
        message = f"검증 오류 [{field}]: 예상값 '{expected}', 실제값 '{value}'"
        super().__init__(message, cause)
        self.field = field
        self.value = value
        self.expected = expected
        self.details.update(
            {
                "field": field,
                "value": str(value),
                "expected": expected,
            }
        )


# =============================================================================
# Atlas API 관련 예외
# =============================================================================


class APICallError(AutoPauseError):
    """Atlas Admin API 호출 관련 예외

    requests의 HTTP 에러를 래핑하여 일관된 예외 처리를 제공합니다.
    """

    def __init__(
        self,
        operation: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"atlas.{operation}"
        if status_code is not None and error_code:
            message = f"{message} 실패 (HTTP {status_code}, {error_code})"
        elif status_code is not None:
            message = f"{message} 실패 (HTTP {status_code})"
        elif error_code:
            message = f"{message} 실패 ({error_code})"
        if error_message:
            message = f"{message}: {error_message}"

        super().__init__(message, cause)
        self.operation = operation
        self.status_code = status_code
        self.error_code = error_code
        self.error_message = error_message
        self.details.update(
            {
                "operation": operation,
                "status_code": status_code,
                "error_code": error_code,
            }
        )

    @classmethod
    def from_response(cls, operation: str, response: Any) -> "APICallError":
        """requests.Response로부터 생성

        Atlas 에러 응답 본문({"errorCode": ..., "detail": ...})이 있으면 파싱합니다.

        Args:
            operation: API 작업 이름
            response: requests.Response

        Returns:
            APICallError 인스턴스
        """
        error_code = None
        error_message = None

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error_code = body.get("errorCode")
            error_message = body.get("detail") or body.get("reason")

        return cls(
            operation=operation,
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )


class TransientFetchError(APICallError):
    """목록/접근 로그 조회 실패

    해당 프로젝트 또는 클러스터는 이번 실행에서 건너뛰고 다음 실행에서 다시 평가합니다.
    """

    def __init__(
        self,
        operation: str,
        resource: str,
        cause: Optional[Exception] = None,
    ):
        status_code = getattr(cause, "status_code", None)
        error_code = getattr(cause, "error_code", None)
        super().__init__(
            operation=operation,
            status_code=status_code,
            error_code=error_code,
            error_message=f"조회 실패 [{resource}]",
            cause=cause,
        )
        self.resource = resource
        self.details["resource"] = resource


class PauseActionError(APICallError):
    """일시정지 요청 실패

    실행 중 재시도하지 않으며, 다음 정기 실행에서 다시 평가합니다.
    """

    def __init__(
        self,
        project_id: str,
        cluster_name: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            operation="pause_cluster",
            status_code=status_code if status_code is not None else getattr(cause, "status_code", None),
            error_code=error_code or getattr(cause, "error_code", None),
            error_message=error_message or f"일시정지 실패 [{project_id}/{cluster_name}]",
            cause=cause,
        )
        self.project_id = project_id
        self.cluster_name = cluster_name
        self.details.update({"project_id": project_id, "cluster_name": cluster_name})


# =============================================================================
# 예외 유틸리티 함수
# =============================================================================

THROTTLING_STATUS_CODES = {429}
ACCESS_DENIED_STATUS_CODES = {401, 403}
NOT_FOUND_STATUS_CODES = {404}


def _status_code(error: Exception) -> Optional[int]:
    """예외에서 HTTP 상태 코드 추출 (requests.HTTPError 포함)"""
    status = getattr(error, "status_code", None)
    if status is not None:
        return int(status)
    response = getattr(error, "response", None)
    if response is not None and getattr(response, "status_code", None) is not None:
        return int(response.status_code)
    return None


def is_access_denied(error: Exception) -> bool:
    """액세스 거부 오류인지 확인

    Args:
        error: 확인할 예외

    Returns:
        401/403 오류이면 True
    """
    return _status_code(error) in ACCESS_DENIED_STATUS_CODES


def is_throttling(error: Exception) -> bool:
    """스로틀링 오류인지 확인"""
    if isinstance(error, APICallError) and error.error_code == "RATE_LIMITED":
        return True
    return _status_code(error) in THROTTLING_STATUS_CODES


def is_not_found(error: Exception) -> bool:
    """리소스를 찾을 수 없는 오류인지 확인"""
    if isinstance(error, APICallError) and error.error_code in ("CLUSTER_NOT_FOUND", "GROUP_NOT_FOUND"):
        return True
    return _status_code(error) in NOT_FOUND_STATUS_CODES


def format_error_for_user(error: Exception) -> str:
    """사용자에게 표시할 에러 메시지 포맷팅

    Args:
        error: 예외

    Returns:
        사용자 친화적인 에러 메시지
    """
    if isinstance(error, AutoPauseError) and not isinstance(error, APICallError):
        return str(error)

    friendly_messages = {
        401: "인증에 실패했습니다. Atlas API 키를 확인하세요.",
        403: "권한이 없습니다. API 키의 조직/프로젝트 역할을 확인하세요.",
        429: "요청이 너무 많습니다. 잠시 후 다시 시도하세요.",
    }

    status = _status_code(error)
    if status in friendly_messages:
        return friendly_messages[status]

    return str(error)
