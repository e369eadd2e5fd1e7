"""
tests/core/parallel/test_parallel_decorators.py - core/parallel/decorators.py 테스트
"""

from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import APICallError, TransientFetchError
from core.parallel.decorators import (
    RetryConfig,
    call_with_retry,
    categorize_error,
    get_error_code,
    is_retryable,
)
from core.parallel.types import ErrorCategory


class TestRetryConfig:
    """RetryConfig 테스트"""

    def test_default_values(self):
        config = RetryConfig()

        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 30.0
        assert config.jitter is True

    def test_exponential_delay_without_jitter(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)

        assert [config.get_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)

        assert config.get_delay(10) == 5.0

    def test_jitter_within_bounds(self):
        config = RetryConfig(base_delay=1.0, jitter=True)

        for _ in range(20):
            assert 0 <= config.get_delay(2) <= 4.0


class TestCategorizeError:
    """categorize_error 테스트"""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (APICallError("op", status_code=429), ErrorCategory.THROTTLING),
            (APICallError("op", error_code="RATE_LIMITED"), ErrorCategory.THROTTLING),
            (APICallError("op", status_code=401), ErrorCategory.ACCESS_DENIED),
            (APICallError("op", status_code=403), ErrorCategory.ACCESS_DENIED),
            (APICallError("op", status_code=404), ErrorCategory.NOT_FOUND),
            (APICallError("op", status_code=409), ErrorCategory.CONFLICT),
            (APICallError("op", status_code=400, error_code="CLUSTER_ALREADY_PAUSED"), ErrorCategory.CONFLICT),
            (APICallError("op", status_code=400), ErrorCategory.INVALID_REQUEST),
            (APICallError("op", status_code=503), ErrorCategory.SERVICE_ERROR),
            (requests.Timeout("timed out"), ErrorCategory.TIMEOUT),
            (TimeoutError("timed out"), ErrorCategory.TIMEOUT),
            (requests.ConnectionError("refused"), ErrorCategory.NETWORK),
            (ValueError("bad"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categories(self, error, expected):
        assert categorize_error(error) == expected

    def test_wrapped_error_uses_cause(self):
        """원인 예외로 분류"""
        error = TransientFetchError("get_access_history", "p1/c1", cause=requests.Timeout("slow"))

        assert categorize_error(error) == ErrorCategory.TIMEOUT


class TestGetErrorCode:
    def test_atlas_error_code(self):
        assert get_error_code(APICallError("op", status_code=404, error_code="GROUP_NOT_FOUND")) == "GROUP_NOT_FOUND"

    def test_http_status_fallback(self):
        assert get_error_code(APICallError("op", status_code=502)) == "HTTP502"

    def test_class_name_fallback(self):
        assert get_error_code(ValueError("x")) == "ValueError"


class TestIsRetryable:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_status(self, status):
        assert is_retryable(APICallError("op", status_code=status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409])
    def test_non_retryable_status(self, status):
        assert is_retryable(APICallError("op", status_code=status)) is False

    def test_network_errors(self):
        assert is_retryable(requests.ConnectionError("x")) is True
        assert is_retryable(requests.Timeout("x")) is True
        assert is_retryable(ValueError("x")) is False


class TestCallWithRetry:
    """call_with_retry 테스트"""

    def test_success_first_try(self):
        sleep = MagicMock()

        assert call_with_retry(lambda: "ok", sleep=sleep) == "ok"
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        func = MagicMock(side_effect=[APICallError("op", status_code=503), APICallError("op", status_code=429), "ok"])
        sleep = MagicMock()

        result = call_with_retry(func, RetryConfig(max_retries=3, jitter=False), sleep=sleep)

        assert result == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_non_retryable_raises_immediately(self):
        func = MagicMock(side_effect=APICallError("op", status_code=401))
        sleep = MagicMock()

        with pytest.raises(APICallError):
            call_with_retry(func, RetryConfig(max_retries=3), sleep=sleep)

        assert func.call_count == 1
        sleep.assert_not_called()

    def test_exhausted_raises_last_error(self):
        errors = [APICallError("op", status_code=503) for _ in range(3)]
        func = MagicMock(side_effect=errors)

        with pytest.raises(APICallError) as exc_info:
            call_with_retry(func, RetryConfig(max_retries=2, jitter=False), sleep=MagicMock())

        assert exc_info.value is errors[-1]
        assert func.call_count == 3

    def test_zero_retries(self):
        func = MagicMock(side_effect=requests.ConnectionError("down"))

        with pytest.raises(requests.ConnectionError):
            call_with_retry(func, RetryConfig(max_retries=0), sleep=MagicMock())

        assert func.call_count == 1
