"""
analyzers/atlas/sweep.py - 유휴 클러스터 자동 일시정지 스윕

조직 → 프로젝트 → 클러스터를 순회하며 유휴 클러스터를 일시정지합니다.

처리 순서:
1. 프로젝트 목록 조회 (제외 프로젝트는 이름 정확히 일치 시 건너뜀)
2. 프로젝트별 클러스터 목록 조회
3. 클러스터별 독립 작업 (병렬):
   - 공유/테넌트 티어 → SKIPPED_NON_PAUSABLE
   - 이미 일시정지 → SKIPPED_PAUSED
   - 제외 클러스터 → SKIPPED_EXCLUDED
   - 접근 로그 조회 → 유휴 판단 → 활성이면 SKIPPED_ACTIVE
   - 유휴면 일시정지 요청 → PAUSED / PAUSE_FAILED (dry run이면 WOULD_PAUSE)
4. 모든 클러스터 작업 결과를 모은 뒤 SweepResult 반환

실패 처리:
- 프로젝트/클러스터 단위 실패는 기록만 하고 나머지 작업은 계속 진행
- run_sweep은 예외를 던지지 않음 (설정 오류는 SweepConfiguration 생성 시점에 발생)
- 실행 내 재시도 없음. 실패한 클러스터는 다음 정기 실행에서 다시 평가
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from core.atlas.models import AccessLogEntry, ClusterTarget, Project
from core.config import SweepConfiguration
from core.parallel import (
    CollectedError,
    ErrorCollector,
    ErrorSeverity,
    ParallelConfig,
    ParallelTaskExecutor,
    TaskError,
    TaskResult,
    TaskSpec,
    categorize_error,
    get_error_code,
    try_or_default,
)

from .inactivity import InactivityVerdict, InactivityWindow, evaluate

logger = logging.getLogger(__name__)


class AtlasCollaborator(Protocol):
    """스윕이 사용하는 Atlas API 협력자

    get_access_history는 최신순(타임스탬프 내림차순)으로 반환해야 합니다.
    """

    def list_projects(self) -> Sequence[Project]: ...

    def list_clusters(self, project: Project) -> Sequence[ClusterTarget]: ...

    def get_access_history(self, project_id: str, cluster_name: str) -> Sequence[AccessLogEntry]: ...

    def pause_cluster(self, project_id: str, cluster_name: str) -> Any: ...


class ClusterAction(Enum):
    """클러스터별 처리 결과"""

    PAUSED = "paused"
    PAUSE_FAILED = "pause_failed"
    WOULD_PAUSE = "would_pause"  # dry run
    SKIPPED_ACTIVE = "skipped_active"
    SKIPPED_PAUSED = "skipped_paused"
    SKIPPED_NON_PAUSABLE = "skipped_non_pausable"
    SKIPPED_EXCLUDED = "skipped_excluded"
    FETCH_FAILED = "fetch_failed"
    DEFERRED = "deferred"  # 마감 시간 초과로 다음 실행에 넘김
    ERROR = "error"


SKIPPED_ACTIONS = frozenset(
    {
        ClusterAction.SKIPPED_ACTIVE,
        ClusterAction.SKIPPED_PAUSED,
        ClusterAction.SKIPPED_NON_PAUSABLE,
        ClusterAction.SKIPPED_EXCLUDED,
    }
)
FAILED_ACTIONS = frozenset({ClusterAction.PAUSE_FAILED, ClusterAction.FETCH_FAILED, ClusterAction.ERROR})


@dataclass(frozen=True)
class ClusterOutcome:
    """클러스터 하나의 처리 결과"""

    target: ClusterTarget
    action: ClusterAction
    verdict: InactivityVerdict | None = None
    error: TaskError | None = None
    duration_ms: float = 0.0

    @property
    def reason(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.verdict is not None:
            return self.verdict.reason
        return _SKIP_REASONS.get(self.action, "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.target.project_id,
            "project_name": self.target.project_name,
            "cluster_name": self.target.cluster_name,
            "tier": self.target.tier,
            "action": self.action.value,
            "reason": self.reason,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "error": self.error.to_dict() if self.error else None,
            "duration_ms": round(self.duration_ms, 1),
        }


_SKIP_REASONS = {
    ClusterAction.SKIPPED_PAUSED: "이미 일시정지됨",
    ClusterAction.SKIPPED_NON_PAUSABLE: "공유/테넌트 티어는 일시정지 불가",
    ClusterAction.SKIPPED_EXCLUDED: "제외 클러스터",
    ClusterAction.DEFERRED: "마감 시간 초과 - 다음 실행에서 처리",
}


@dataclass(frozen=True)
class SweepResult:
    """스윕 실행 결과

    Attributes:
        outcomes: 클러스터별 처리 결과
        skipped_projects: 제외되어 건너뛴 프로젝트 이름
        errors: 프로젝트 단위 에러 (목록 조회 실패 등)
        started_at: 시작 시각 (UTC)
        finished_at: 종료 시각 (UTC)
        dry_run: dry run 여부
    """

    outcomes: tuple[ClusterOutcome, ...] = ()
    skipped_projects: tuple[str, ...] = ()
    errors: tuple[CollectedError, ...] = ()
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    dry_run: bool = False

    def _count(self, actions: frozenset[ClusterAction] | set[ClusterAction]) -> int:
        return sum(1 for o in self.outcomes if o.action in actions)

    @property
    def paused_count(self) -> int:
        return self._count({ClusterAction.PAUSED})

    @property
    def would_pause_count(self) -> int:
        return self._count({ClusterAction.WOULD_PAUSE})

    @property
    def skipped_count(self) -> int:
        return self._count(SKIPPED_ACTIONS)

    @property
    def failed_count(self) -> int:
        return self._count(FAILED_ACTIONS)

    @property
    def deferred_count(self) -> int:
        return self._count({ClusterAction.DEFERRED})

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0 or len(self.errors) > 0

    def counts(self) -> dict[str, int]:
        """처리 결과별 건수 (0건 포함)"""
        result = {action.value: 0 for action in ClusterAction}
        for outcome in self.outcomes:
            result[outcome.action.value] += 1
        return result

    def by_action(self, action: ClusterAction) -> list[ClusterOutcome]:
        return [o for o in self.outcomes if o.action == action]

    def get_summary(self) -> str:
        paused = f"일시정지 예정 {self.would_pause_count}" if self.dry_run else f"일시정지 {self.paused_count}"
        return (
            f"클러스터 {len(self.outcomes)}개: {paused}, 건너뜀 {self.skipped_count}, "
            f"실패 {self.failed_count}, 보류 {self.deferred_count} / "
            f"제외 프로젝트 {len(self.skipped_projects)}, 프로젝트 에러 {len(self.errors)}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "dry_run": self.dry_run,
            "summary": {
                "clusters": len(self.outcomes),
                "paused": self.paused_count,
                "would_pause": self.would_pause_count,
                "skipped": self.skipped_count,
                "failed": self.failed_count,
                "deferred": self.deferred_count,
                "project_errors": len(self.errors),
            },
            "counts": self.counts(),
            "skipped_projects": list(self.skipped_projects),
            "outcomes": [o.to_dict() for o in self.outcomes],
            "errors": [e.to_dict() for e in self.errors],
        }


def _task_error(target: ClusterTarget, error: Exception) -> TaskError:
    return TaskError(
        identifier=target.project_name,
        resource=target.cluster_name,
        category=categorize_error(error),
        error_code=get_error_code(error),
        message=str(error),
    )


def process_cluster(
    target: ClusterTarget,
    config: SweepConfiguration,
    collaborator: AtlasCollaborator,
    now: datetime | None = None,
) -> ClusterOutcome:
    """클러스터 하나를 판단하고 필요하면 일시정지

    조회/일시정지 실패는 ClusterOutcome으로 기록하며 예외를 던지지 않습니다.
    """
    if not target.is_pausable:
        logger.debug(f"[{target.key}] 일시정지 불가 티어 ({target.tier}) - 건너뜀")
        return ClusterOutcome(target, ClusterAction.SKIPPED_NON_PAUSABLE)

    if target.is_paused:
        logger.debug(f"[{target.key}] 이미 일시정지됨 - 건너뜀")
        return ClusterOutcome(target, ClusterAction.SKIPPED_PAUSED)

    if config.is_cluster_excluded(target.project_name, target.cluster_name):
        logger.info(f"[{target.key}] 제외 클러스터 - 건너뜀")
        return ClusterOutcome(target, ClusterAction.SKIPPED_EXCLUDED)

    try:
        entries = collaborator.get_access_history(target.project_id, target.cluster_name)
    except Exception as e:
        logger.warning(f"[{target.key}] 접근 로그 조회 실패: {e}")
        return ClusterOutcome(target, ClusterAction.FETCH_FAILED, error=_task_error(target, e))

    window = InactivityWindow.build(config.lookback_minutes, now=now)
    verdict = evaluate(entries, window, config.ignored_account_ids)
    logger.info(f"[{target.key}] {verdict.reason}")

    if verdict.is_active:
        return ClusterOutcome(target, ClusterAction.SKIPPED_ACTIVE, verdict=verdict)

    if config.dry_run:
        return ClusterOutcome(target, ClusterAction.WOULD_PAUSE, verdict=verdict)

    try:
        collaborator.pause_cluster(target.project_id, target.cluster_name)
    except Exception as e:
        logger.error(f"[{target.key}] 일시정지 실패: {e}")
        return ClusterOutcome(target, ClusterAction.PAUSE_FAILED, verdict=verdict, error=_task_error(target, e))

    logger.info(f"[{target.key}] 일시정지 요청")
    return ClusterOutcome(target, ClusterAction.PAUSED, verdict=verdict)


def _list_targets(
    config: SweepConfiguration,
    collaborator: AtlasCollaborator,
    collector: ErrorCollector,
) -> tuple[list[ClusterTarget], list[str]]:
    """평가할 클러스터 목록과 제외된 프로젝트 이름 수집"""
    try:
        projects = list(collaborator.list_projects())
    except Exception as e:
        collector.collect(e, "organization", "list_projects", ErrorSeverity.CRITICAL)
        return [], []

    targets: list[ClusterTarget] = []
    seen: set[tuple[str, str]] = set()
    skipped_projects: list[str] = []

    for project in projects:
        if project.name in config.excluded_project_names:
            logger.info(f"[{project.name}] 제외 프로젝트 - 건너뜀")
            skipped_projects.append(project.name)
            continue

        clusters = try_or_default(
            lambda: list(collaborator.list_clusters(project)),
            default=None,
            collector=collector,
            identifier=project.name,
            operation="list_clusters",
        )
        if clusters is None:
            continue

        logger.debug(f"[{project.name}] 클러스터 {len(clusters)}개")
        for cluster in clusters:
            # 목록이 페이지 사이에서 바뀌면 같은 클러스터가 두 번 올 수 있음
            key = (cluster.project_id, cluster.cluster_name)
            if key in seen:
                logger.debug(f"[{cluster.key}] 중복 클러스터 - 제외")
                continue
            seen.add(key)
            targets.append(cluster)

    return targets, skipped_projects


def _to_outcome(target: ClusterTarget, result: TaskResult[ClusterOutcome]) -> ClusterOutcome:
    """실행기 결과를 ClusterOutcome으로 변환"""
    if result.cancelled:
        return ClusterOutcome(target, ClusterAction.DEFERRED)
    if result.success and result.data is not None:
        return ClusterOutcome(
            target=result.data.target,
            action=result.data.action,
            verdict=result.data.verdict,
            error=result.data.error,
            duration_ms=result.duration_ms,
        )
    return ClusterOutcome(target, ClusterAction.ERROR, error=result.error, duration_ms=result.duration_ms)


def run_sweep(
    config: SweepConfiguration,
    collaborator: AtlasCollaborator,
    now: datetime | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> SweepResult:
    """유휴 클러스터 자동 일시정지 스윕 실행

    Args:
        config: 스윕 설정
        collaborator: Atlas API 협력자
        now: 판단 기준 시각 (None이면 클러스터별 평가 시점의 현재 시각)
        on_progress: (완료 수, 전체 수) 진행 콜백

    Returns:
        SweepResult (클러스터/프로젝트 단위 실패 포함, 예외를 던지지 않음)
    """
    started_at = datetime.now(timezone.utc)
    collector = ErrorCollector("atlas")

    mode = " (dry run)" if config.dry_run else ""
    logger.info(f"스윕 시작{mode}: 조회 기간 {config.lookback_minutes}분, 제외 프로젝트 {len(config.excluded_project_names)}개")

    targets, skipped_projects = _list_targets(config, collaborator, collector)

    tasks = [
        TaskSpec(
            identifier=target.project_name,
            resource=target.cluster_name,
            func=lambda t=target: process_cluster(t, config, collaborator, now),
        )
        for target in targets
    ]
    by_key = {(t.project_name, t.cluster_name): t for t in targets}

    completed = 0

    def _on_complete(_: TaskResult[ClusterOutcome]) -> None:
        nonlocal completed
        completed += 1
        if on_progress:
            on_progress(completed, len(tasks))

    executor = ParallelTaskExecutor(
        ParallelConfig(max_workers=config.max_workers, deadline_seconds=config.deadline_seconds)
    )
    exec_result = executor.execute(tasks, service="atlas", on_complete=_on_complete)
    if exec_result.error_count:
        logger.warning(exec_result.get_error_summary())

    outcomes = tuple(_to_outcome(by_key[(r.identifier, r.resource)], r) for r in exec_result.results)

    result = SweepResult(
        outcomes=outcomes,
        skipped_projects=tuple(skipped_projects),
        errors=tuple(collector.errors),
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
        dry_run=config.dry_run,
    )

    logger.info(f"스윕 완료: {result.get_summary()}")
    if collector.has_errors:
        counts = collector.count_by_severity()
        logger.warning(
            f"프로젝트 에러 {len(result.errors)}건 "
            f"(critical {counts[ErrorSeverity.CRITICAL]}, warning {counts[ErrorSeverity.WARNING]})"
        )
    return result
