"""
cli/lambda_handler.py - 정기 실행용 Lambda 진입점

EventBridge 스케줄 등으로 호출되어 환경 변수 설정으로 스윕을 실행합니다.

Event (모두 선택):
    {"dryRun": true, "lookbackMinutes": 120}

Returns:
    {"statusCode": 200, "body": "<스윕 결과 JSON>"}
    설정 오류나 예상하지 못한 실패는 {"statusCode": 500, "body": "{\"error\": ...}"}

IAM: ATLAS_SECRET_ID 사용 시 secretsmanager:GetSecretValue
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from analyzers.atlas.sweep import run_sweep
from core.config import Settings, SweepConfiguration, parse_bool
from core.exceptions import AutoPauseError

logger = logging.getLogger(__name__)

# Lambda 런타임은 루트 logger에 핸들러를 미리 붙여 둠
logging.getLogger().setLevel(logging.INFO)


def _overrides_from_event(event: Mapping[str, Any] | None) -> dict[str, Any]:
    """이벤트 값을 SweepConfiguration 덮어쓰기로 변환 (잘못된 dryRun은 ConfigError)"""
    event = event or {}
    overrides: dict[str, Any] = {}
    if "dryRun" in event:
        overrides["dry_run"] = parse_bool("dryRun", event["dryRun"])
    if "lookbackMinutes" in event:
        overrides["lookback_minutes"] = event["lookbackMinutes"]
    return overrides


def handler(
    event: Mapping[str, Any] | None,
    context: Any,
    collaborator: Any = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Lambda 핸들러

    Args:
        event: 스케줄 이벤트 (dryRun, lookbackMinutes 덮어쓰기)
        context: Lambda context (사용하지 않음)
        collaborator: 주입할 Atlas 협력자 (None이면 AtlasClient 생성)
        environ: 환경 변수 매핑 (None이면 os.environ)
    """
    owned = None
    try:
        config = SweepConfiguration.from_env(environ, **_overrides_from_event(event))

        if collaborator is None:
            from core.atlas import AtlasClient, load_credentials

            settings = Settings.from_env(environ)
            owned = AtlasClient(load_credentials(settings=settings, environ=environ), settings=settings)
            collaborator = owned

        result = run_sweep(config, collaborator)
        return {"statusCode": 200, "body": json.dumps(result.to_dict(), ensure_ascii=False, default=str)}
    except AutoPauseError as e:
        logger.error(f"스윕 실행 불가: {e}")
        return {"statusCode": 500, "body": json.dumps(e.to_dict(), ensure_ascii=False, default=str)}
    except Exception as e:
        logger.exception("스윕 실행 중 예상하지 못한 오류")
        return {"statusCode": 500, "body": json.dumps({"error": str(e)}, ensure_ascii=False)}
    finally:
        if owned is not None:
            owned.close()
