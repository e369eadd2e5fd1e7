"""
core/atlas/credentials.py - Atlas API 키 로드

Atlas Admin API 프로그래매틱 키(public/private)와 조직 ID를 읽어옵니다.

로드 순서:
    1. ATLAS_SECRET_ID가 있으면 AWS Secrets Manager의 JSON 시크릿
       ({"publicKey": ..., "privateKey": ..., "orgId": ...})
    2. 없으면 환경 변수 ATLAS_PUBLIC_KEY / ATLAS_PRIVATE_KEY / ATLAS_ORG_ID
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from core.config import Settings
from core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Secrets Manager 클라이언트 retry 설정
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_CONNECT_TIMEOUT = 10  # 초
DEFAULT_READ_TIMEOUT = 30  # 초


@dataclass(frozen=True)
class AtlasCredentials:
    """Atlas API 자격 증명

    private_key는 repr에 노출되지 않습니다.
    """

    public_key: str
    private_key: str = field(repr=False)
    org_id: str

    def __post_init__(self) -> None:
        missing = [name for name in ("public_key", "private_key", "org_id") if not getattr(self, name)]
        if missing:
            raise ConfigError("credentials", f"필수 값 누락: {', '.join(missing)}")


def get_secrets_client(region_name: str, session: Any = None) -> Any:
    """Retry가 적용된 Secrets Manager 클라이언트 생성

    Args:
        region_name: AWS 리전
        session: boto3 Session (None이면 기본 세션)
    """
    import boto3
    from botocore.config import Config

    config = Config(
        retries={"max_attempts": DEFAULT_MAX_ATTEMPTS, "mode": "adaptive"},
        connect_timeout=DEFAULT_CONNECT_TIMEOUT,
        read_timeout=DEFAULT_READ_TIMEOUT,
    )
    session = session or boto3.session.Session()
    return session.client("secretsmanager", region_name=region_name, config=config)


def load_from_secret(secret_id: str, region_name: str, client: Any = None) -> AtlasCredentials:
    """AWS Secrets Manager에서 자격 증명 로드

    Raises:
        ConfigError: 시크릿 조회 실패 또는 형식 오류
    """
    from botocore.exceptions import BotoCoreError, ClientError

    client = client or get_secrets_client(region_name)
    try:
        response = client.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "Unknown")
        raise ConfigError("ATLAS_SECRET_ID", f"시크릿 조회 실패 ({code})", cause=e) from e
    except BotoCoreError as e:
        raise ConfigError("ATLAS_SECRET_ID", "시크릿 조회 실패", cause=e) from e

    try:
        payload = json.loads(response.get("SecretString") or "")
    except json.JSONDecodeError as e:
        raise ConfigError("ATLAS_SECRET_ID", "시크릿이 JSON 형식이 아닙니다", cause=e) from e

    if not isinstance(payload, dict):
        raise ConfigError("ATLAS_SECRET_ID", "시크릿은 JSON 객체여야 합니다")

    logger.debug("Secrets Manager에서 Atlas 자격 증명 로드: %s", secret_id)
    return AtlasCredentials(
        public_key=payload.get("publicKey", ""),
        private_key=payload.get("privateKey", ""),
        org_id=payload.get("orgId", ""),
    )


def load_credentials(
    settings: Settings | None = None,
    environ: Mapping[str, str] | None = None,
    secrets_client: Any = None,
) -> AtlasCredentials:
    """Atlas 자격 증명 로드

    Args:
        settings: 리전 등 실행 설정 (None이면 환경 변수에서 생성)
        environ: 환경 변수 매핑 (None이면 os.environ)
        secrets_client: 주입할 Secrets Manager 클라이언트 (테스트용)

    Returns:
        AtlasCredentials

    Raises:
        ConfigError: 필수 값이 없거나 시크릿 조회에 실패한 경우
    """
    env = os.environ if environ is None else environ
    settings = settings or Settings.from_env(env)

    secret_id = env.get("ATLAS_SECRET_ID")
    if secret_id:
        credentials = load_from_secret(secret_id, settings.AWS_REGION, client=secrets_client)
        # 조직 ID는 환경 변수로 덮어쓸 수 있음
        org_override = env.get("ATLAS_ORG_ID")
        if org_override and org_override != credentials.org_id:
            return AtlasCredentials(credentials.public_key, credentials.private_key, org_override)
        return credentials

    missing = [key for key in ("ATLAS_PUBLIC_KEY", "ATLAS_PRIVATE_KEY", "ATLAS_ORG_ID") if not env.get(key)]
    if missing:
        raise ConfigError("credentials", f"필수 환경 변수 누락: {', '.join(missing)}")

    return AtlasCredentials(
        public_key=env["ATLAS_PUBLIC_KEY"],
        private_key=env["ATLAS_PRIVATE_KEY"],
        org_id=env["ATLAS_ORG_ID"],
    )
