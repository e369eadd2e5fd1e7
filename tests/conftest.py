"""
tests/conftest.py - pytest 공통 픽스처

Atlas 협력자 가짜 구현과 고정 시각 픽스처를 제공합니다.

Usage:
    def test_something(fake_atlas, fixed_now):
        # fake_atlas: 메모리 기반 Atlas 협력자
        # fixed_now: 테스트 기준 시각 (UTC)
        pass
"""

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.atlas.models import AccessLogEntry, ClusterTarget, Project  # noqa: E402

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# 환경 설정
# =============================================================================


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """테스트 환경 설정 (실행 환경의 설정이 테스트에 섞이지 않도록 제거)"""
    for key in (
        "AUTOPAUSE_LOOKBACK_MINUTES",
        "AUTOPAUSE_EXCLUDED_PROJECTS",
        "AUTOPAUSE_EXCLUDED_CLUSTERS",
        "AUTOPAUSE_IGNORED_ACCOUNTS",
        "AUTOPAUSE_DRY_RUN",
        "AUTOPAUSE_MAX_WORKERS",
        "AUTOPAUSE_DEADLINE_SECONDS",
        "ATLAS_SECRET_ID",
        "ATLAS_PUBLIC_KEY",
        "ATLAS_PRIVATE_KEY",
        "ATLAS_ORG_ID",
    ):
        monkeypatch.delenv(key, raising=False)

    monkeypatch.setenv("AWS_DEFAULT_REGION", "ap-northeast-2")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")

    yield


# =============================================================================
# 시각 헬퍼
# =============================================================================


@pytest.fixture
def fixed_now():
    """테스트 기준 시각 (2024-03-15 12:00 UTC)"""
    return FIXED_NOW


def minutes_ago(minutes: float, now: datetime = FIXED_NOW) -> datetime:
    return now - timedelta(minutes=minutes)


def make_entry(account_id: str, minutes: float, now: datetime = FIXED_NOW) -> AccessLogEntry:
    """now 기준 minutes분 전 접근 로그 항목"""
    return AccessLogEntry(account_id=account_id, timestamp=minutes_ago(minutes, now))


def make_cluster(
    project: Project,
    name: str,
    tier: str = "AWS",
    instance_size: str | None = "M10",
    is_paused: bool = False,
) -> ClusterTarget:
    return ClusterTarget(
        project_id=project.id,
        project_name=project.name,
        cluster_name=name,
        tier=tier,
        instance_size=instance_size,
        is_paused=is_paused,
    )


# =============================================================================
# 가짜 Atlas 협력자
# =============================================================================


class FakeAtlas:
    """메모리 기반 Atlas 협력자

    - projects: 프로젝트 목록
    - clusters: project_id → ClusterTarget 목록
    - history: (project_id, cluster_name) → 접근 로그 (최신순)
    - *_errors: 해당 호출에서 던질 예외
    - pause_cluster 호출 시 클러스터를 일시정지 상태로 바꿈 (멱등성 확인용)
    """

    def __init__(self):
        self.projects: list[Project] = []
        self.clusters: dict[str, list[ClusterTarget]] = {}
        self.history: dict[tuple[str, str], list[AccessLogEntry]] = {}
        self.list_projects_error: Exception | None = None
        self.list_clusters_errors: dict[str, Exception] = {}
        self.history_errors: dict[tuple[str, str], Exception] = {}
        self.pause_errors: dict[tuple[str, str], Exception] = {}

        self.history_calls: list[tuple[str, str]] = []
        self.paused: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    # 설정 헬퍼

    def add_project(self, project_id: str, name: str) -> Project:
        project = Project(id=project_id, name=name)
        self.projects.append(project)
        self.clusters.setdefault(project_id, [])
        return project

    def add_cluster(self, project: Project, name: str, history=None, **kwargs) -> ClusterTarget:
        cluster = make_cluster(project, name, **kwargs)
        self.clusters[project.id].append(cluster)
        self.history[(project.id, name)] = list(history or [])
        return cluster

    # 협력자 인터페이스

    def list_projects(self):
        if self.list_projects_error:
            raise self.list_projects_error
        return list(self.projects)

    def list_clusters(self, project):
        if project.id in self.list_clusters_errors:
            raise self.list_clusters_errors[project.id]
        return list(self.clusters.get(project.id, []))

    def get_access_history(self, project_id, cluster_name):
        with self._lock:
            self.history_calls.append((project_id, cluster_name))
        key = (project_id, cluster_name)
        if key in self.history_errors:
            raise self.history_errors[key]
        return list(self.history.get(key, []))

    def pause_cluster(self, project_id, cluster_name):
        key = (project_id, cluster_name)
        if key in self.pause_errors:
            raise self.pause_errors[key]
        with self._lock:
            self.paused.append(key)
            clusters = self.clusters[project_id]
            for i, cluster in enumerate(clusters):
                if cluster.cluster_name == cluster_name:
                    clusters[i] = ClusterTarget(
                        project_id=cluster.project_id,
                        project_name=cluster.project_name,
                        cluster_name=cluster.cluster_name,
                        tier=cluster.tier,
                        instance_size=cluster.instance_size,
                        is_paused=True,
                    )


@pytest.fixture
def fake_atlas():
    """빈 가짜 Atlas 협력자"""
    return FakeAtlas()
