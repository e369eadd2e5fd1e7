"""
analyzers/atlas/inactivity.py - 클러스터 유휴 판단

데이터베이스 접근 로그로 클러스터가 일시정지해도 될 만큼 유휴 상태인지 판단합니다.

판단 기준:
- 시스템 계정(mms-automation 등) 접근은 활동으로 보지 않음
- 시스템 계정이 아닌 첫 번째 항목이 판정을 결정:
  cutoff 이후(같은 시각 포함) 접근이면 활성, 이전이면 유휴
- 그 뒤 항목은 보지 않음 (접근 로그는 최신순으로 전달됨)
- 해당 항목이 하나도 없으면 유휴 (보존 기간 내 사람 활동 없음)

조회 기간:
- Atlas 접근 로그 수집 단위 때문에 최소 30분 (30 미만 요청은 30으로 올림)
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from core.atlas.models import AccessLogEntry

# 접근 로그 수집 단위 하한 (분)
MIN_LOOKBACK_MINUTES = 30


@dataclass(frozen=True)
class InactivityWindow:
    """유휴 판단 조회 기간

    Attributes:
        requested_minutes: 요청된 조회 기간 (분)
        effective_minutes: 실제 적용 기간 = max(requested_minutes, 30)
        now: 기준 시각 (UTC)
        cutoff: now - effective_minutes. 이 시각 이후 접근은 최근 활동
    """

    requested_minutes: int
    effective_minutes: int
    now: datetime
    cutoff: datetime

    @classmethod
    def build(cls, requested_minutes: int, now: datetime | None = None) -> InactivityWindow:
        """조회 기간 생성 (30분 하한 적용)

        Args:
            requested_minutes: 설정된 조회 기간 (분)
            now: 기준 시각 (None이면 현재 UTC)
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        effective = max(requested_minutes, MIN_LOOKBACK_MINUTES)
        return cls(
            requested_minutes=requested_minutes,
            effective_minutes=effective,
            now=now,
            cutoff=now - timedelta(minutes=effective),
        )

    @property
    def was_clamped(self) -> bool:
        return self.effective_minutes != self.requested_minutes


@dataclass(frozen=True)
class InactivityVerdict:
    """유휴 판단 결과

    (is_active, reason) 튜플처럼 언패킹할 수 있습니다.

    Attributes:
        is_active: 최근 활동이 있으면 True
        reason: 판단 근거 (관측용 문자열)
        account_id: 판정을 결정한 계정 (없으면 None)
        idle_minutes: 결정 항목 이후 경과 분 (없으면 None)
    """

    is_active: bool
    reason: str
    account_id: str | None = None
    idle_minutes: float | None = None

    def __iter__(self) -> Iterator[object]:
        return iter((self.is_active, self.reason))

    def to_dict(self) -> dict[str, object]:
        return {
            "is_active": self.is_active,
            "reason": self.reason,
            "account_id": self.account_id,
            "idle_minutes": self.idle_minutes,
        }


def evaluate(
    entries: Sequence[AccessLogEntry],
    window: InactivityWindow,
    ignored_account_ids: Collection[str],
) -> InactivityVerdict:
    """접근 로그로 활성/유휴 판정

    Args:
        entries: 접근 로그 (최신순으로 전달되는 것을 전제, 비어 있을 수 있음)
        window: 조회 기간
        ignored_account_ids: 활동으로 보지 않는 시스템 계정

    Returns:
        InactivityVerdict
    """
    assert window.effective_minutes >= MIN_LOOKBACK_MINUTES, "조회 기간은 30분 이상이어야 합니다"

    for entry in entries:
        if entry.account_id in ignored_account_ids:
            continue

        idle_minutes = (window.now - entry.timestamp).total_seconds() / 60
        is_recent = entry.timestamp >= window.cutoff
        if is_recent:
            reason = (
                f"활성: {entry.account_id} 계정이 {idle_minutes:.0f}분 전 접근 "
                f"(기준 {window.effective_minutes}분 이내)"
            )
        else:
            reason = (
                f"유휴: 마지막 사용자 접근 {entry.account_id} 계정, {idle_minutes:.0f}분 전 "
                f"(기준 {window.effective_minutes}분 초과)"
            )
        return InactivityVerdict(
            is_active=is_recent,
            reason=reason,
            account_id=entry.account_id,
            idle_minutes=idle_minutes,
        )

    if entries:
        reason = f"유휴: 접근 로그 {len(entries)}건 모두 시스템 계정 (기준 {window.effective_minutes}분)"
    else:
        reason = f"유휴: 접근 로그 없음 (기준 {window.effective_minutes}분)"
    return InactivityVerdict(is_active=False, reason=reason)
