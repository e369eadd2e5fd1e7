"""
core/atlas/client.py - Atlas Admin API 클라이언트

스윕 오케스트레이터가 사용하는 협력자 구현입니다.
requests Session + HTTP Digest 인증으로 Atlas Admin API v2를 호출하고,
응답은 core.atlas.models의 레코드로 검증하여 반환합니다.

주요 구성 요소:
- AtlasClient.list_projects: 조직의 프로젝트 목록 (페이지네이션)
- AtlasClient.list_clusters: 프로젝트의 클러스터 목록 (페이지네이션)
- AtlasClient.get_access_history: 클러스터 접근 로그 (최신순 정렬)
- AtlasClient.pause_cluster: 클러스터 일시정지 요청

재시도:
    429, 5xx, 연결/타임아웃 에러는 RetryConfig의 지수 백오프로 재시도합니다.
    일시정지(PATCH)는 멱등이므로 같은 정책을 적용합니다.

Example:
    from core.atlas import AtlasClient, load_credentials

    client = AtlasClient(load_credentials())
    for project in client.list_projects():
        for cluster in client.list_clusters(project):
            print(cluster.key, cluster.is_paused)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import requests
from requests.auth import HTTPDigestAuth

from core.config import Settings
from core.exceptions import APICallError, PauseActionError, TransientFetchError, ValidationError
from core.parallel.decorators import RetryConfig, call_with_retry

from .credentials import AtlasCredentials
from .models import AccessLogEntry, ClusterTarget, Project

logger = logging.getLogger(__name__)

PAUSE_SUCCESS_STATUS_CODES = (200, 202)


class AtlasClient:
    """Atlas Admin API v2 클라이언트

    Attributes:
        credentials: API 키와 조직 ID
        settings: 기본 URL, 타임아웃, 페이지 크기 등
    """

    def __init__(
        self,
        credentials: AtlasCredentials,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        retry_config: RetryConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.credentials = credentials
        self.settings = settings or Settings()
        self._retry_config = retry_config or RetryConfig(max_retries=self.settings.API_RETRY_COUNT)
        self._sleep = sleep

        self._session = session or requests.Session()
        self._session.auth = HTTPDigestAuth(credentials.public_key, credentials.private_key)
        self._session.headers.update(
            {
                "Accept": f"application/vnd.atlas.{self.settings.ATLAS_API_VERSION}+json",
                "Content-Type": "application/json",
            }
        )

    # =========================================================================
    # HTTP 헬퍼
    # =========================================================================

    def _url(self, path: str) -> str:
        return f"{self.settings.ATLAS_API_BASE_URL}{path}"

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> requests.Response:
        """단일 API 호출 (재시도 포함)

        Raises:
            APICallError: 2xx가 아닌 응답
            requests.RequestException: 재시도 후에도 연결/타임아웃 실패
        """

        def send() -> requests.Response:
            response = self._session.request(
                method,
                self._url(path),
                params=params,
                json=json,
                timeout=self.settings.API_TIMEOUT,
            )
            if not response.ok:
                raise APICallError.from_response(operation, response)
            return response

        return call_with_retry(send, self._retry_config, operation=operation, sleep=self._sleep)

    def _paginate(self, path: str, operation: str) -> Iterator[dict[str, Any]]:
        """페이지네이션된 목록 API의 results 항목을 순회"""
        page_size = self.settings.API_PAGE_SIZE
        page_num = 1
        seen = 0

        while True:
            response = self._request(
                "GET",
                path,
                operation,
                params={"itemsPerPage": page_size, "pageNum": page_num},
            )
            body = response.json()
            results = body.get("results") or []
            yield from results

            seen += len(results)
            total = body.get("totalCount")
            if not results or len(results) < page_size or (total is not None and seen >= total):
                return
            page_num += 1

    # =========================================================================
    # 협력자 인터페이스
    # =========================================================================

    def list_projects(self) -> list[Project]:
        """조직의 프로젝트 목록

        Raises:
            TransientFetchError: 목록 조회 실패
        """
        org_id = self.credentials.org_id
        try:
            payloads = list(self._paginate(f"/orgs/{quote(org_id, safe='')}/groups", "list_projects"))
        except (APICallError, requests.RequestException) as e:
            raise TransientFetchError("list_projects", f"org:{org_id}", cause=e) from e

        projects: list[Project] = []
        for payload in payloads:
            try:
                projects.append(Project.from_api(payload))
            except ValidationError as e:
                logger.warning(f"잘못된 프로젝트 레코드 건너뜀: {e}")

        logger.debug(f"조직 {org_id}: 프로젝트 {len(projects)}개")
        return projects

    def list_clusters(self, project: Project) -> list[ClusterTarget]:
        """프로젝트의 클러스터 목록

        Raises:
            TransientFetchError: 목록 조회 실패
        """
        try:
            payloads = list(self._paginate(f"/groups/{quote(project.id, safe='')}/clusters", "list_clusters"))
        except (APICallError, requests.RequestException) as e:
            raise TransientFetchError("list_clusters", project.name, cause=e) from e

        clusters: list[ClusterTarget] = []
        for payload in payloads:
            try:
                clusters.append(ClusterTarget.from_api(payload, project))
            except ValidationError as e:
                logger.warning(f"[{project.name}] 잘못된 클러스터 레코드 건너뜀: {e}")

        return clusters

    def get_access_history(
        self,
        project_id: str,
        cluster_name: str,
        start: datetime | None = None,
    ) -> list[AccessLogEntry]:
        """클러스터 데이터베이스 접근 로그 (인증 성공 건만)

        반환 목록은 항상 최신순(타임스탬프 내림차순)으로 정렬됩니다.
        형식이 잘못된 항목은 경고 후 건너뜁니다.

        Args:
            project_id: 프로젝트 ID
            cluster_name: 클러스터 이름
            start: 이 시각 이후 로그만 조회 (None이면 API 기본 범위)

        Raises:
            TransientFetchError: 조회 실패
        """
        params: dict[str, Any] = {"authResult": "true"}
        if start is not None:
            params["start"] = int(start.astimezone(timezone.utc).timestamp() * 1000)

        path = f"/groups/{quote(project_id, safe='')}/dbAccessHistory/clusters/{quote(cluster_name, safe='')}"
        try:
            response = self._request("GET", path, "get_access_history", params=params)
        except (APICallError, requests.RequestException) as e:
            raise TransientFetchError("get_access_history", f"{project_id}/{cluster_name}", cause=e) from e

        entries: list[AccessLogEntry] = []
        for payload in response.json().get("accessLogs") or []:
            try:
                entries.append(AccessLogEntry.from_api(payload))
            except ValidationError as e:
                logger.warning(f"[{project_id}/{cluster_name}] 잘못된 접근 로그 건너뜀: {e}")

        entries.sort(key=lambda entry: entry.timestamp, reverse=True)
        return entries

    def pause_cluster(self, project_id: str, cluster_name: str) -> None:
        """클러스터 일시정지 요청

        Raises:
            PauseActionError: 요청 실패 또는 원격 상태 충돌
        """
        path = f"/groups/{quote(project_id, safe='')}/clusters/{quote(cluster_name, safe='')}"
        try:
            response = self._request("PATCH", path, "pause_cluster", json={"paused": True})
        except APICallError as e:
            raise PauseActionError(project_id, cluster_name, error_message=e.error_message, cause=e) from e
        except requests.RequestException as e:
            raise PauseActionError(project_id, cluster_name, cause=e) from e

        if response.status_code not in PAUSE_SUCCESS_STATUS_CODES:
            raise PauseActionError(
                project_id,
                cluster_name,
                status_code=response.status_code,
                error_message=f"예상하지 못한 응답 코드 {response.status_code}",
            )

        logger.info(f"일시정지 요청 완료: {project_id}/{cluster_name}")

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> AtlasClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
