"""
tests/core/test_exceptions.py - core/exceptions.py 테스트
"""

from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import (
    APICallError,
    AutoPauseError,
    ConfigError,
    PauseActionError,
    TransientFetchError,
    ValidationError,
    format_error_for_user,
    is_access_denied,
    is_not_found,
    is_throttling,
)


def _response(status_code, body=None):
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


class TestHierarchy:
    """예외 계층 구조 테스트"""

    @pytest.mark.parametrize("cls", [ConfigError, ValidationError, APICallError])
    def test_subclasses_of_base(self, cls):
        assert issubclass(cls, AutoPauseError)

    def test_api_error_subclasses(self):
        assert issubclass(TransientFetchError, APICallError)
        assert issubclass(PauseActionError, APICallError)


class TestAutoPauseError:
    def test_str_with_cause(self):
        error = AutoPauseError("실패", cause=ValueError("원인"))
        assert str(error) == "실패: 원인"

    def test_to_dict(self):
        error = AutoPauseError("실패", details={"k": "v"})
        data = error.to_dict()

        assert data["error_type"] == "AutoPauseError"
        assert data["message"] == "실패"
        assert data["cause"] is None
        assert data["details"] == {"k": "v"}


class TestConfigError:
    def test_message_contains_key(self):
        error = ConfigError("AUTOPAUSE_DRY_RUN", "bool 값이 아닙니다")

        assert "AUTOPAUSE_DRY_RUN" in str(error)
        assert error.config_key == "AUTOPAUSE_DRY_RUN"
        assert error.details["config_key"] == "AUTOPAUSE_DRY_RUN"


class TestValidationError:
    def test_fields(self):
        error = ValidationError("paused", "yes", "bool")

        assert error.field == "paused"
        assert error.value == "yes"
        assert error.details["expected"] == "bool"


class TestAPICallError:
    def test_message_format(self):
        error = APICallError("list_clusters", status_code=404, error_code="GROUP_NOT_FOUND", error_message="없음")

        assert str(error) == "atlas.list_clusters 실패 (HTTP 404, GROUP_NOT_FOUND): 없음"

    def test_from_response_parses_atlas_body(self):
        response = _response(429, {"errorCode": "RATE_LIMITED", "detail": "Too many requests"})

        error = APICallError.from_response("list_projects", response)

        assert error.status_code == 429
        assert error.error_code == "RATE_LIMITED"
        assert error.error_message == "Too many requests"

    def test_from_response_without_json(self):
        error = APICallError.from_response("list_projects", _response(502))

        assert error.status_code == 502
        assert error.error_code is None


class TestTransientFetchError:
    def test_takes_status_from_cause(self):
        cause = APICallError("list_clusters", status_code=503)

        error = TransientFetchError("list_clusters", "analytics", cause=cause)

        assert error.status_code == 503
        assert error.resource == "analytics"
        assert "analytics" in str(error)


class TestPauseActionError:
    def test_defaults(self):
        error = PauseActionError("p1", "c1")

        assert error.operation == "pause_cluster"
        assert error.details["cluster_name"] == "c1"
        assert "p1/c1" in str(error)

    def test_inherits_cause_status(self):
        cause = APICallError("pause_cluster", status_code=409, error_code="CANNOT_UPDATE_PAUSED_CLUSTER")

        error = PauseActionError("p1", "c1", cause=cause)

        assert error.status_code == 409
        assert error.error_code == "CANNOT_UPDATE_PAUSED_CLUSTER"


class TestHelpers:
    """예외 유틸리티 함수 테스트"""

    @pytest.mark.parametrize("status", [401, 403])
    def test_is_access_denied(self, status):
        assert is_access_denied(APICallError("op", status_code=status)) is True

    def test_is_access_denied_requests_http_error(self):
        error = requests.HTTPError(response=_response(403))
        assert is_access_denied(error) is True

    def test_is_throttling(self):
        assert is_throttling(APICallError("op", status_code=429)) is True
        assert is_throttling(APICallError("op", error_code="RATE_LIMITED")) is True
        assert is_throttling(APICallError("op", status_code=500)) is False

    def test_is_not_found(self):
        assert is_not_found(APICallError("op", status_code=404)) is True
        assert is_not_found(APICallError("op", status_code=400, error_code="CLUSTER_NOT_FOUND")) is True
        assert is_not_found(ValueError("x")) is False

    def test_format_error_for_user(self):
        assert "API 키" in format_error_for_user(APICallError("op", status_code=401))
        assert "잠시 후" in format_error_for_user(APICallError("op", status_code=429))
        assert format_error_for_user(ConfigError("k", "bad")) == str(ConfigError("k", "bad"))
        assert format_error_for_user(ValueError("plain")) == "plain"
