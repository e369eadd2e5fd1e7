"""
cli/app.py - 메인 CLI 엔트리포인트

Click 기반의 CLI 애플리케이션 진입점입니다.

명령어 구조:
    autopause --version             # 버전 표시
    autopause run [옵션]            # 유휴 클러스터 스윕 실행
    autopause evaluate --log FILE   # 저장된 접근 로그로 오프라인 판단
    autopause config                # 적용될 설정 출력

    예시:
    autopause run --dry-run
    autopause -v run --lookback 120 --exclude-project prod
    autopause evaluate --log access.json --lookback 60

Usage:
    # 명령줄에서 직접 실행
    $ autopause run

    # 모듈로 실행
    $ python -m cli.app run
"""

import json
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가 (analyzers 모듈 임포트를 위함)
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import click  # noqa: E402
from click import Context  # noqa: E402

# Keep lightweight, centralized logging config
# WARNING 레벨로 설정하여 INFO 로그가 도구 출력에 섞이지 않도록 함
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# 실행 로그를 Rich 핸들러로 출력할 최상위 logger
RUN_LOGGERS = ("analyzers", "core", "cli")


def get_version() -> str:
    """버전 문자열 반환 (core.config.get_version 위임)"""
    from core.config import get_version as config_get_version

    return config_get_version()


VERSION = get_version()


def _configure_logging(verbose: int) -> None:
    """-v 횟수에 따라 실행 로그 레벨 설정 (0: WARNING, 1: INFO, 2+: DEBUG)"""
    from cli.ui.console import get_logger

    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG

    for name in RUN_LOGGERS:
        get_logger(name, level)


@click.group()
@click.version_option(VERSION, prog_name="autopause")
@click.option("-v", "--verbose", count=True, help="로그 상세도 (-v: INFO, -vv: DEBUG)")
@click.pass_context
def cli(ctx: Context, verbose: int) -> None:
    """autopause - MongoDB Atlas 유휴 클러스터 자동 일시정지"""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


@cli.command("run")
@click.option("--lookback", "lookback", type=int, default=None, help="조회 기간 (분, 30 미만은 30으로 올림)")
@click.option("--exclude-project", "exclude_projects", multiple=True, help="제외 프로젝트 이름 (다중 가능)")
@click.option(
    "--exclude-cluster", "exclude_clusters", multiple=True, help="제외 클러스터 (cluster 또는 project/cluster)"
)
@click.option("--ignore-account", "ignore_accounts", multiple=True, help="활동으로 보지 않는 계정 (다중 가능)")
@click.option("--dry-run", is_flag=True, help="판단만 하고 일시정지하지 않음")
@click.option("--max-workers", type=int, default=None, help="병렬 워커 수 (1~32)")
@click.option("--deadline", type=float, default=None, help="전체 실행 마감 시간 (초)")
@click.option("-f", "--format", type=click.Choice(["console", "json"]), default="console")
@click.option("-o", "--output", default=None, help="결과 JSON 파일 경로")
@click.option("-q", "--quiet", is_flag=True, help="최소 출력 모드")
def run_command(
    lookback: int | None,
    exclude_projects: tuple[str, ...],
    exclude_clusters: tuple[str, ...],
    ignore_accounts: tuple[str, ...],
    dry_run: bool,
    max_workers: int | None,
    deadline: float | None,
    format: str,
    output: str | None,
    quiet: bool,
) -> None:
    """유휴 클러스터 스윕 실행

    \b
    종료 코드:
        0  클러스터 실패 없이 완료
        1  설정 오류
        2  일부 클러스터/프로젝트 처리 실패
    """
    from cli.headless import run_headless

    exit_code = run_headless(
        lookback_minutes=lookback,
        excluded_projects=list(exclude_projects),
        excluded_clusters=list(exclude_clusters),
        ignored_accounts=list(ignore_accounts),
        dry_run=dry_run,
        max_workers=max_workers,
        deadline_seconds=deadline,
        format=format,
        output=output,
        quiet=quiet,
    )
    raise SystemExit(exit_code)


def _load_access_log(path: Path) -> list:
    """접근 로그 파일 로드 ({"accessLogs": [...]} 또는 배열)"""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("accessLogs", [])
    if not isinstance(payload, list):
        raise ValueError("accessLogs 배열이 아닙니다")
    return payload


@cli.command("evaluate")
@click.option(
    "--log",
    "log_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="접근 로그 JSON 파일",
)
@click.option("--lookback", "lookback", type=int, default=None, help="조회 기간 (분)")
@click.option("--ignore-account", "ignore_accounts", multiple=True, help="활동으로 보지 않는 계정 (다중 가능)")
@click.option("--now", "now", default=None, help="기준 시각 (ISO 8601 또는 Atlas 형식, 기본: 현재)")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
def evaluate_command(
    log_file: Path,
    lookback: int | None,
    ignore_accounts: tuple[str, ...],
    now: str | None,
    as_json: bool,
) -> None:
    """저장된 접근 로그로 유휴 여부 판단 (API 호출 없음)

    \b
    Examples:
        autopause evaluate --log access.json
        autopause evaluate --log access.json --lookback 120 --json
    """
    from analyzers.atlas.inactivity import InactivityWindow, evaluate
    from core.atlas.models import AccessLogEntry, parse_timestamp
    from core.config import SweepConfiguration
    from core.exceptions import AutoPauseError

    try:
        config = SweepConfiguration.from_env(
            lookback_minutes=lookback,
            ignored_account_ids=list(ignore_accounts) or None,
        )
        entries = [AccessLogEntry.from_api(item) for item in _load_access_log(log_file)]
        reference = parse_timestamp(now) if now else None
    except (AutoPauseError, ValueError) as e:
        click.echo(f"오류: {e}", err=True)
        raise SystemExit(1) from e

    # 클라이언트와 동일하게 최신순 정렬
    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    window = InactivityWindow.build(config.lookback_minutes, now=reference)
    verdict = evaluate(entries, window, config.ignored_account_ids)

    if as_json:
        data = verdict.to_dict()
        data["effective_minutes"] = window.effective_minutes
        data["entries"] = len(entries)
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from cli.ui.console import console

    status = "[green]활성[/green]" if verdict.is_active else "[yellow]유휴[/yellow]"
    console.print(f"{status} {verdict.reason}")
    if window.was_clamped:
        console.print(f"[dim]조회 기간 {window.requested_minutes}분 → {window.effective_minutes}분으로 조정[/dim]")


@cli.command("config")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
def config_command(as_json: bool) -> None:
    """환경 변수로 결정되는 실행 설정 출력"""
    from dataclasses import asdict

    from core.config import Settings, SweepConfiguration
    from core.exceptions import ConfigError

    try:
        sweep_config = SweepConfiguration.from_env()
        settings = Settings.from_env()
    except ConfigError as e:
        click.echo(str(e), err=True)
        raise SystemExit(1) from e

    data = {"sweep": sweep_config.to_dict(), "settings": asdict(settings)}

    if as_json:
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from cli.ui.console import print_table

    rows = [[f"sweep.{k}", v] for k, v in data["sweep"].items()]
    rows += [[f"settings.{k}", v] for k, v in data["settings"].items()]
    print_table("실행 설정", ["항목", "값"], rows)


if __name__ == "__main__":
    cli()
