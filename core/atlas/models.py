"""
core/atlas/models.py - Atlas API 응답 레코드

프로젝트, 클러스터, 데이터베이스 접근 로그 응답을 API 경계에서 검증하여
불변 레코드로 변환합니다. 이후 코드는 dict 필드에 직접 접근하지 않습니다.

접근 로그 타임스탬프 형식:
    - Atlas 접근 이력 형식: "Mon Oct 09 15:51:05 GMT 2023" (GMT/UTC)
    - ISO 8601: "2023-10-09T15:51:05Z", "2023-10-09T15:51:05.123+09:00"
    - 시간대 없는 ISO 8601은 UTC로 간주
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from core.exceptions import ValidationError

# 일시정지 API를 지원하지 않는 공유/테넌트 계열 프로바이더
NON_PAUSABLE_PROVIDERS: frozenset[str] = frozenset({"TENANT", "FLEX", "SERVERLESS"})
# 공유 티어 인스턴스 크기 (providerName이 없는 응답 대비)
SHARED_INSTANCE_SIZES: frozenset[str] = frozenset({"M0", "M2", "M5"})

_ATLAS_TIMESTAMP_FORMATS = (
    "%a %b %d %H:%M:%S GMT %Y",
    "%a %b %d %H:%M:%S UTC %Y",
)


def parse_timestamp(value: Any) -> datetime:
    """접근 로그 타임스탬프 문자열을 UTC datetime으로 변환

    Args:
        value: 타임스탬프 문자열 (datetime이면 UTC로 정규화)

    Returns:
        시간대가 있는 UTC datetime

    Raises:
        ValidationError: 지원하지 않는 형식
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        parsed = None
        for fmt in _ATLAS_TIMESTAMP_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError as e:
                raise ValidationError("timestamp", value, "Atlas 또는 ISO 8601 타임스탬프", cause=e) from e
    else:
        raise ValidationError("timestamp", value, "타임스탬프 문자열")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(key, value, "비어 있지 않은 문자열")
    return value


@dataclass(frozen=True)
class AccessLogEntry:
    """데이터베이스 접근 로그 항목

    Attributes:
        account_id: 접근한 주체 (Atlas username)
        timestamp: 접근 시각 (UTC)
        hostname: 접속 호스트 (선택)
        ip_address: 접속 IP (선택)
        auth_result: 인증 성공 여부 (선택)
    """

    account_id: str
    timestamp: datetime
    hostname: str | None = None
    ip_address: str | None = None
    auth_result: bool | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> AccessLogEntry:
        """accessLogs 항목 하나를 검증하여 변환"""
        if not isinstance(payload, Mapping):
            raise ValidationError("accessLog", payload, "JSON 객체")
        return cls(
            account_id=_require_str(payload, "username"),
            timestamp=parse_timestamp(payload.get("timestamp")),
            hostname=payload.get("hostname"),
            ip_address=payload.get("ipAddress"),
            auth_result=payload.get("authResult"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.account_id,
            "timestamp": self.timestamp.isoformat(),
            "hostname": self.hostname,
            "ipAddress": self.ip_address,
            "authResult": self.auth_result,
        }


@dataclass(frozen=True)
class Project:
    """Atlas 프로젝트 (group)"""

    id: str
    name: str

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Project:
        if not isinstance(payload, Mapping):
            raise ValidationError("project", payload, "JSON 객체")
        return cls(id=_require_str(payload, "id"), name=_require_str(payload, "name"))


def _provider_names(payload: Mapping[str, Any]) -> list[str]:
    """클러스터 응답에서 프로바이더 이름 추출 (v2 replicationSpecs, v1 providerSettings)"""
    names: list[str] = []
    for spec in payload.get("replicationSpecs") or []:
        for region_config in spec.get("regionConfigs") or []:
            name = region_config.get("providerName")
            if name:
                names.append(str(name).upper())

    provider_settings = payload.get("providerSettings") or {}
    name = provider_settings.get("providerName")
    if name:
        names.append(str(name).upper())
    return names


def _instance_size(payload: Mapping[str, Any]) -> str | None:
    for spec in payload.get("replicationSpecs") or []:
        for region_config in spec.get("regionConfigs") or []:
            specs = region_config.get("electableSpecs") or {}
            if specs.get("instanceSize"):
                return str(specs["instanceSize"])
    provider_settings = payload.get("providerSettings") or {}
    size = provider_settings.get("instanceSizeName")
    return str(size) if size else None


@dataclass(frozen=True)
class ClusterTarget:
    """스윕 대상 클러스터

    Attributes:
        project_id: 프로젝트 ID
        project_name: 프로젝트 이름
        cluster_name: 클러스터 이름
        tier: 프로바이더/티어 표시 (TENANT, FLEX, SERVERLESS, AWS, GCP, AZURE ...)
        instance_size: 인스턴스 크기 (M10 등, 알 수 없으면 None)
        is_paused: 현재 일시정지 상태
        state_name: Atlas stateName (IDLE, UPDATING ...)
    """

    project_id: str
    project_name: str
    cluster_name: str
    tier: str
    instance_size: str | None = None
    is_paused: bool = False
    state_name: str | None = None

    @property
    def is_pausable(self) -> bool:
        """공유/테넌트/서버리스 계열은 일시정지 불가"""
        if self.tier in NON_PAUSABLE_PROVIDERS:
            return False
        return self.instance_size not in SHARED_INSTANCE_SIZES

    @property
    def key(self) -> str:
        return f"{self.project_name}/{self.cluster_name}"

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], project: Project) -> ClusterTarget:
        """클러스터 응답 하나를 검증하여 변환

        v2(replicationSpecs)와 v1(providerSettings) 형식을 모두 지원합니다.
        프로바이더가 여러 개면(멀티 클라우드) 일시정지 불가 프로바이더가 우선합니다.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("cluster", payload, "JSON 객체")

        providers = _provider_names(payload)
        if payload.get("clusterType") == "SERVERLESS" or payload.get("serverlessBackupOptions") is not None:
            providers.append("SERVERLESS")
        non_pausable = [p for p in providers if p in NON_PAUSABLE_PROVIDERS]
        if non_pausable:
            tier = non_pausable[0]
        elif providers:
            tier = providers[0]
        else:
            tier = "UNKNOWN"

        paused = payload.get("paused", False)
        if not isinstance(paused, bool):
            raise ValidationError("paused", paused, "bool")

        return cls(
            project_id=project.id,
            project_name=project.name,
            cluster_name=_require_str(payload, "name"),
            tier=tier,
            instance_size=_instance_size(payload),
            is_paused=paused,
            state_name=payload.get("stateName"),
        )
