# core/__init__.py
"""
core - Atlas 자동 일시정지 인프라

스윕 오케스트레이터가 사용하는 공통 인프라를 포함하는 최상위 패키지입니다.

아키텍처:
    core/
    ├── atlas/          # Atlas Admin API 클라이언트, 자격 증명, 레코드 모델
    ├── parallel/       # 병렬 처리 (executor, retry, error collector)
    ├── config.py       # 환경 변수 기반 설정, SweepConfiguration
    └── exceptions.py   # 통합 예외 계층

Usage:
    # 설정 사용
    from core.config import SweepConfiguration
    config = SweepConfiguration.from_env(dry_run=True)

    # 예외 처리
    from core.exceptions import APICallError, is_throttling
    try:
        client.pause_cluster(project_id, cluster_name)
    except APICallError as e:
        if is_throttling(e):
            print("요청 한도 초과")

    # Atlas API
    from core.atlas import AtlasClient, load_credentials
    with AtlasClient(load_credentials()) as client:
        projects = client.list_projects()
"""

from core import atlas, config, exceptions, parallel

__all__: list[str] = [
    # 서브패키지
    "atlas",
    "parallel",
    # 모듈
    "config",
    "exceptions",
]
