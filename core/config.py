"""
core/config.py - 설정 관리

환경 변수 기반 설정과 스윕 실행 설정(SweepConfiguration)을 정의합니다.
실행 시작 시 한 번 만들어지는 불변 값이며, 프로세스 전역의 가변 상태를 두지 않습니다.

환경 변수:
    AUTOPAUSE_LOOKBACK_MINUTES   조회 기간 (분, 기본 60)
    AUTOPAUSE_EXCLUDED_PROJECTS  제외 프로젝트 이름 (쉼표 구분 또는 JSON 배열)
    AUTOPAUSE_EXCLUDED_CLUSTERS  제외 클러스터 ("cluster" 또는 "project/cluster")
    AUTOPAUSE_IGNORED_ACCOUNTS   활동으로 보지 않는 시스템 계정
    AUTOPAUSE_DRY_RUN            true면 판단만 하고 일시정지하지 않음
    AUTOPAUSE_MAX_WORKERS        병렬 워커 수 (기본 4)
    AUTOPAUSE_DEADLINE_SECONDS   전체 실행 마감 시간 (초)
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

from core.exceptions import ConfigError

DISTRIBUTION_NAME = "atlas-autopause"

# Atlas 클러스터 하트비트/모니터링용 시스템 계정
DEFAULT_IGNORED_ACCOUNT_IDS: frozenset[str] = frozenset({"mms-automation", "mms-monitoring-agent"})

DEFAULT_LOOKBACK_MINUTES = 60
DEFAULT_MAX_WORKERS = 4
MAX_WORKERS_LIMIT = 32

ENV_PREFIX = "AUTOPAUSE_"


@dataclass(frozen=True)
class Settings:
    """Atlas API/실행 환경 설정 (불변)"""

    ATLAS_API_BASE_URL: str = "https://cloud.mongodb.com/api/atlas/v2"
    ATLAS_API_VERSION: str = "2023-02-01"
    API_TIMEOUT: int = 30
    API_RETRY_COUNT: int = 3
    API_PAGE_SIZE: int = 500
    AWS_REGION: str = "us-east-1"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """환경 변수로 기본값을 덮어쓴 Settings 생성"""
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            ATLAS_API_BASE_URL=env.get("ATLAS_API_BASE_URL", defaults.ATLAS_API_BASE_URL).rstrip("/"),
            ATLAS_API_VERSION=env.get("ATLAS_API_VERSION", defaults.ATLAS_API_VERSION),
            API_TIMEOUT=get_env_int("ATLAS_API_TIMEOUT", defaults.API_TIMEOUT, env),
            API_RETRY_COUNT=get_env_int("ATLAS_API_RETRY_COUNT", defaults.API_RETRY_COUNT, env),
            API_PAGE_SIZE=get_env_int("ATLAS_API_PAGE_SIZE", defaults.API_PAGE_SIZE, env),
            AWS_REGION=env.get("AWS_REGION", env.get("AWS_DEFAULT_REGION", defaults.AWS_REGION)),
        )


settings = Settings()


# =============================================================================
# 환경 변수 헬퍼
# =============================================================================


TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def parse_bool(key: str, value: Any) -> bool:
    """bool 또는 bool 문자열 해석 (그 외 값은 ConfigError)"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_VALUES:
            return True
        if normalized in FALSE_VALUES:
            return False
    raise ConfigError(key, f"bool 값이 아닙니다: {value!r}")


def get_env_bool(key: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
    """환경 변수에서 bool 값 읽기 ("1", "true", "yes", "on" → True)"""
    env = os.environ if environ is None else environ
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    return parse_bool(key, value)


def get_env_int(key: str, default: int, environ: Mapping[str, str] | None = None) -> int:
    """환경 변수에서 int 값 읽기"""
    env = os.environ if environ is None else environ
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(key, f"정수가 아닙니다: {value!r}", cause=e) from e


def get_env_float(key: str, default: float | None, environ: Mapping[str, str] | None = None) -> float | None:
    """환경 변수에서 float 값 읽기"""
    env = os.environ if environ is None else environ
    value = env.get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError as e:
        raise ConfigError(key, f"숫자가 아닙니다: {value!r}", cause=e) from e


def get_env_list(key: str, default: Iterable[str] = (), environ: Mapping[str, str] | None = None) -> list[str]:
    """환경 변수에서 문자열 목록 읽기

    "a,b,c" 형식과 JSON 배열('["a", "b"]')을 모두 허용합니다.
    쉼표 목록은 구분자 주변 공백을 제거하고, JSON 배열 항목은 그대로 둡니다.
    JSON이 문자열 배열이 아니면 ConfigError를 던집니다.
    """
    env = os.environ if environ is None else environ
    value = env.get(key)
    if value is None or value.strip() == "":
        return list(default)

    raw = value.strip()
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError(key, f"JSON 배열 파싱 실패: {e.msg}", cause=e) from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ConfigError(key, "문자열 배열이어야 합니다")
        return list(parsed)

    return [item.strip() for item in raw.split(",") if item.strip()]


def get_project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def get_version() -> str:
    """설치된 패키지 버전 (개발 환경에서는 version.txt)"""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        version_file = get_project_root() / "version.txt"
        if version_file.exists():
            return version_file.read_text(encoding="utf-8").strip()
        return "0.0.0"


# =============================================================================
# 스윕 설정
# =============================================================================


def _normalize_names(key: str, values: Any) -> frozenset[str]:
    """이름 목록 검증 후 frozenset으로 변환 (앞뒤 공백이 있는 이름은 ConfigError)"""
    if isinstance(values, str):
        raise ConfigError(key, "문자열이 아닌 목록이어야 합니다")
    try:
        items = list(values)
    except TypeError as e:
        raise ConfigError(key, f"목록이 아닙니다: {values!r}", cause=e) from e

    for item in items:
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(key, f"빈 값 또는 문자열이 아닌 항목: {item!r}")
        if item != item.strip():
            raise ConfigError(key, f"앞뒤 공백이 있는 항목: {item!r}")
    return frozenset(items)


@dataclass(frozen=True)
class SweepConfiguration:
    """스윕 실행 설정 (불변)

    Attributes:
        lookback_minutes: 조회 기간 (분). 30 미만은 평가 시 30으로 올림
        excluded_project_names: 스윕에서 완전히 제외할 프로젝트 이름
        ignored_account_ids: 활동으로 보지 않는 시스템/서비스 계정
        excluded_cluster_names: 제외할 클러스터 ("cluster" 또는 "project/cluster")
        dry_run: True면 판단 결과만 기록하고 일시정지하지 않음
        max_workers: 클러스터 병렬 처리 워커 수
        deadline_seconds: 전체 실행 마감 시간 (None이면 무제한)
    """

    lookback_minutes: int = DEFAULT_LOOKBACK_MINUTES
    excluded_project_names: frozenset[str] = frozenset()
    ignored_account_ids: frozenset[str] = DEFAULT_IGNORED_ACCOUNT_IDS
    excluded_cluster_names: frozenset[str] = frozenset()
    dry_run: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    deadline_seconds: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.lookback_minutes, bool) or not isinstance(self.lookback_minutes, int):
            raise ConfigError("lookback_minutes", f"정수가 아닙니다: {self.lookback_minutes!r}")
        if self.lookback_minutes < 0:
            raise ConfigError("lookback_minutes", f"음수일 수 없습니다: {self.lookback_minutes}")

        # frozen 데이터클래스이므로 object.__setattr__로 정규화
        for name in ("excluded_project_names", "ignored_account_ids", "excluded_cluster_names"):
            object.__setattr__(self, name, _normalize_names(name, getattr(self, name)))

        if isinstance(self.max_workers, bool) or not isinstance(self.max_workers, int):
            raise ConfigError("max_workers", f"정수가 아닙니다: {self.max_workers!r}")
        if not 1 <= self.max_workers <= MAX_WORKERS_LIMIT:
            raise ConfigError("max_workers", f"1~{MAX_WORKERS_LIMIT} 범위여야 합니다: {self.max_workers}")

        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ConfigError("deadline_seconds", f"0보다 커야 합니다: {self.deadline_seconds}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> SweepConfiguration:
        """환경 변수에서 설정 생성

        Args:
            environ: 환경 변수 매핑 (None이면 os.environ)
            **overrides: None이 아닌 값은 환경 변수보다 우선 (CLI 옵션용)

        Returns:
            SweepConfiguration
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "lookback_minutes": get_env_int(f"{ENV_PREFIX}LOOKBACK_MINUTES", DEFAULT_LOOKBACK_MINUTES, env),
            "excluded_project_names": get_env_list(f"{ENV_PREFIX}EXCLUDED_PROJECTS", (), env),
            "ignored_account_ids": get_env_list(
                f"{ENV_PREFIX}IGNORED_ACCOUNTS", sorted(DEFAULT_IGNORED_ACCOUNT_IDS), env
            ),
            "excluded_cluster_names": get_env_list(f"{ENV_PREFIX}EXCLUDED_CLUSTERS", (), env),
            "dry_run": get_env_bool(f"{ENV_PREFIX}DRY_RUN", False, env),
            "max_workers": get_env_int(f"{ENV_PREFIX}MAX_WORKERS", DEFAULT_MAX_WORKERS, env),
            "deadline_seconds": get_env_float(f"{ENV_PREFIX}DEADLINE_SECONDS", None, env),
        }

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(key, "알 수 없는 설정 항목입니다")
            if value is not None:
                values[key] = value

        return cls(**values)

    def is_cluster_excluded(self, project_name: str, cluster_name: str) -> bool:
        """클러스터 제외 여부 ("cluster" 또는 "project/cluster" 정확히 일치)"""
        return (
            cluster_name in self.excluded_cluster_names
            or f"{project_name}/{cluster_name}" in self.excluded_cluster_names
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lookback_minutes": self.lookback_minutes,
            "excluded_project_names": sorted(self.excluded_project_names),
            "ignored_account_ids": sorted(self.ignored_account_ids),
            "excluded_cluster_names": sorted(self.excluded_cluster_names),
            "dry_run": self.dry_run,
            "max_workers": self.max_workers,
            "deadline_seconds": self.deadline_seconds,
        }


