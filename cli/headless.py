"""
cli/headless.py - Headless CLI Runner

스케줄러(cron, CI/CD, EventBridge 등)에서 실행하기 위한 비대화형 스윕 실행 모드입니다.

Usage:
    # 환경 변수 설정으로 실행
    autopause run

    # 조회 기간/제외 프로젝트 지정
    autopause run --lookback 120 --exclude-project prod --exclude-project shared

    # 판단만 하고 일시정지하지 않음
    autopause run --dry-run

    # JSON 출력
    autopause run -f json -o result.json

옵션:
    --lookback: 조회 기간 (분, 30 미만은 30으로 올림)
    --exclude-project: 제외 프로젝트 이름 (다중 가능)
    --exclude-cluster: 제외 클러스터 ("cluster" 또는 "project/cluster", 다중 가능)
    --ignore-account: 활동으로 보지 않는 계정 (다중 가능, 지정 시 기본값 대체)
    --dry-run: 판단만 수행
    --max-workers: 병렬 워커 수
    --deadline: 전체 실행 마감 시간 (초)
    -f, --format: 출력 형식 (console, json)
    -o, --output: 결과 JSON 파일 경로
    -q, --quiet: 최소 출력 모드

종료 코드:
    0: 클러스터 실패 없이 완료
    1: 설정 오류
    2: 일부 클러스터/프로젝트 처리 실패
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click

from analyzers.atlas.sweep import ClusterAction, SweepResult, run_sweep
from cli.ui.console import (
    console,
    get_progress,
    print_error,
    print_error_tree,
    print_stat_panels,
    print_success,
    print_warning,
)
from core.config import Settings, SweepConfiguration
from core.exceptions import AutoPauseError, ConfigError, format_error_for_user

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_PARTIAL_FAILURE = 2

# 출력 테이블의 처리 결과별 스타일
ACTION_STYLES = {
    ClusterAction.PAUSED: "green",
    ClusterAction.WOULD_PAUSE: "cyan",
    ClusterAction.SKIPPED_ACTIVE: "dim",
    ClusterAction.SKIPPED_PAUSED: "dim",
    ClusterAction.SKIPPED_NON_PAUSABLE: "dim",
    ClusterAction.SKIPPED_EXCLUDED: "dim",
    ClusterAction.DEFERRED: "yellow",
    ClusterAction.FETCH_FAILED: "red",
    ClusterAction.PAUSE_FAILED: "red",
    ClusterAction.ERROR: "red",
}


@dataclass
class HeadlessConfig:
    """Headless 실행 설정

    None/빈 값은 환경 변수 설정을 그대로 사용합니다.
    """

    lookback_minutes: int | None = None
    excluded_projects: list[str] = field(default_factory=list)
    excluded_clusters: list[str] = field(default_factory=list)
    ignored_accounts: list[str] = field(default_factory=list)
    dry_run: bool = False
    max_workers: int | None = None
    deadline_seconds: float | None = None

    # 출력
    format: str = "console"  # console, json
    output: str | None = None
    quiet: bool = False

    def to_overrides(self) -> dict[str, Any]:
        """SweepConfiguration.from_env에 넘길 덮어쓰기 값"""
        overrides: dict[str, Any] = {
            "lookback_minutes": self.lookback_minutes,
            "max_workers": self.max_workers,
            "deadline_seconds": self.deadline_seconds,
            # 플래그는 켰을 때만 환경 변수를 덮어씀
            "dry_run": True if self.dry_run else None,
        }
        if self.excluded_projects:
            overrides["excluded_project_names"] = list(self.excluded_projects)
        if self.excluded_clusters:
            overrides["excluded_cluster_names"] = list(self.excluded_clusters)
        if self.ignored_accounts:
            overrides["ignored_account_ids"] = list(self.ignored_accounts)
        return overrides


class HeadlessRunner:
    """Headless CLI Runner

    대화형 프롬프트 없이 스윕을 실행합니다.
    collaborator를 주입하지 않으면 환경 변수의 자격 증명으로 AtlasClient를 생성합니다.
    """

    def __init__(self, config: HeadlessConfig, collaborator: Any = None, environ: Any = None):
        self.config = config
        self._collaborator = collaborator
        self._environ = environ
        self.result: SweepResult | None = None

    def run(self) -> int:
        """Headless 실행

        Returns:
            0: 성공, 1: 설정 오류, 2: 일부 실패
        """
        try:
            sweep_config = SweepConfiguration.from_env(self._environ, **self.config.to_overrides())
        except ConfigError as e:
            print_error(str(e))
            return EXIT_CONFIG_ERROR

        logger.debug(f"스윕 설정: {sweep_config.to_dict()}")

        try:
            collaborator = self._collaborator or self._create_client()
        except AutoPauseError as e:
            print_error(format_error_for_user(e))
            return EXIT_CONFIG_ERROR

        if not self.config.quiet and self.config.format == "console":
            self._print_summary(sweep_config)

        try:
            self.result = self._execute(sweep_config, collaborator)
        except KeyboardInterrupt:
            if not self.config.quiet:
                console.print("\n[dim]취소됨[/dim]")
            return 130
        finally:
            if collaborator is not self._collaborator and hasattr(collaborator, "close"):
                collaborator.close()

        self._write_output(self.result)
        return EXIT_PARTIAL_FAILURE if self.result.has_failures else EXIT_OK

    def _create_client(self) -> Any:
        """환경 변수로 AtlasClient 생성"""
        from core.atlas import AtlasClient, load_credentials

        settings = Settings.from_env(self._environ)
        credentials = load_credentials(settings=settings, environ=self._environ)
        return AtlasClient(credentials, settings=settings)

    def _execute(self, sweep_config: SweepConfiguration, collaborator: Any) -> SweepResult:
        """스윕 실행 (console 모드에서는 진행 표시)"""
        if self.config.quiet or self.config.format != "console":
            return run_sweep(sweep_config, collaborator)

        with get_progress() as progress:
            task_id = progress.add_task("클러스터 평가 중", total=None)

            def on_progress(done: int, total: int) -> None:
                progress.update(task_id, completed=done, total=total)

            return run_sweep(sweep_config, collaborator, on_progress=on_progress)

    def _write_output(self, result: SweepResult) -> None:
        data = result.to_dict()

        if self.config.output:
            path = Path(self.config.output)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")

        if self.config.format == "json":
            # 파이프라인에서 파싱할 수 있도록 순수 JSON만 출력
            click.echo(json.dumps(data, ensure_ascii=False, indent=2, default=str))
            return

        if self.config.quiet:
            console.print(result.get_summary())
            return

        self._print_result(result)
        if self.config.output:
            print_success(f"결과 저장: {self.config.output}")

    def _print_summary(self, sweep_config: SweepConfiguration) -> None:
        """실행 설정 요약 출력"""
        mode = "[yellow]dry run[/yellow]" if sweep_config.dry_run else "[bold]일시정지[/bold]"
        console.print(f"[bold]Atlas 유휴 클러스터 자동 일시정지[/bold] ({mode})")
        console.print(f"  조회 기간: {sweep_config.lookback_minutes}분")
        if sweep_config.excluded_project_names:
            console.print(f"  제외 프로젝트: {', '.join(sorted(sweep_config.excluded_project_names))}")
        if sweep_config.excluded_cluster_names:
            console.print(f"  제외 클러스터: {', '.join(sorted(sweep_config.excluded_cluster_names))}")
        console.print()

    def _print_result(self, result: SweepResult) -> None:
        """클러스터별 결과 테이블 + 통계 + 에러 트리"""
        from rich.table import Table

        table = Table(title="클러스터 처리 결과", show_header=True, header_style="bold magenta")
        table.add_column("프로젝트", style="cyan")
        table.add_column("클러스터")
        table.add_column("티어")
        table.add_column("결과")
        table.add_column("사유", overflow="fold")

        for outcome in result.outcomes:
            style = ACTION_STYLES.get(outcome.action, "white")
            table.add_row(
                outcome.target.project_name,
                outcome.target.cluster_name,
                outcome.target.tier,
                f"[{style}]{outcome.action.value}[/{style}]",
                outcome.reason,
            )

        console.print(table)

        paused_label = "일시정지 예정" if result.dry_run else "일시정지"
        paused_value = result.would_pause_count if result.dry_run else result.paused_count
        print_stat_panels(
            [
                (paused_label, paused_value, "green"),
                ("건너뜀", result.skipped_count, "white"),
                ("실패", result.failed_count, "red"),
                ("보류", result.deferred_count, "yellow"),
            ]
        )

        if result.skipped_projects:
            console.print(f"[dim]제외 프로젝트: {', '.join(result.skipped_projects)}[/dim]")

        failures: dict[str, list[str]] = defaultdict(list)
        for outcome in result.outcomes:
            if outcome.error is not None:
                failures[outcome.error.category.value].append(
                    f"{outcome.target.key}: {outcome.error.message}"
                )
        for error in result.errors:
            failures[error.category.value].append(f"{error.identifier} ({error.operation}): {error.error_message}")

        if failures:
            print_error_tree(failures)
            print_warning(result.get_summary())
        else:
            print_success(result.get_summary())


def run_headless(
    lookback_minutes: int | None = None,
    excluded_projects: list[str] | None = None,
    excluded_clusters: list[str] | None = None,
    ignored_accounts: list[str] | None = None,
    dry_run: bool = False,
    max_workers: int | None = None,
    deadline_seconds: float | None = None,
    format: str = "console",
    output: str | None = None,
    quiet: bool = False,
    collaborator: Any = None,
) -> int:
    """Headless 실행 편의 함수

    Returns:
        0: 성공, 1: 설정 오류, 2: 일부 실패
    """
    config = HeadlessConfig(
        lookback_minutes=lookback_minutes,
        excluded_projects=excluded_projects or [],
        excluded_clusters=excluded_clusters or [],
        ignored_accounts=ignored_accounts or [],
        dry_run=dry_run,
        max_workers=max_workers,
        deadline_seconds=deadline_seconds,
        format=format,
        output=output,
        quiet=quiet,
    )

    runner = HeadlessRunner(config, collaborator=collaborator)
    return runner.run()
