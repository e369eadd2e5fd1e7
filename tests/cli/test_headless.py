"""
tests/cli/test_headless.py - cli/headless.py 테스트

Headless CLI Runner 단위 테스트.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from analyzers.atlas.sweep import ClusterAction
from cli.headless import (
    EXIT_CONFIG_ERROR,
    EXIT_OK,
    EXIT_PARTIAL_FAILURE,
    HeadlessConfig,
    HeadlessRunner,
    run_headless,
)
from core.exceptions import TransientFetchError


class TestHeadlessConfig:
    """HeadlessConfig 테스트"""

    def test_default_values(self):
        """기본값 확인"""
        config = HeadlessConfig()

        assert config.lookback_minutes is None
        assert config.excluded_projects == []
        assert config.dry_run is False
        assert config.format == "console"
        assert config.output is None
        assert config.quiet is False

    def test_default_overrides_keep_environment(self):
        """지정하지 않은 값은 None으로 넘겨 환경 변수 값을 유지"""
        overrides = HeadlessConfig().to_overrides()

        assert overrides == {
            "lookback_minutes": None,
            "max_workers": None,
            "deadline_seconds": None,
            "dry_run": None,
        }

    def test_custom_overrides(self):
        config = HeadlessConfig(
            lookback_minutes=120,
            excluded_projects=["prod"],
            excluded_clusters=["dev/main"],
            ignored_accounts=["reporting-bot"],
            dry_run=True,
            max_workers=8,
            deadline_seconds=600.0,
        )

        overrides = config.to_overrides()

        assert overrides["lookback_minutes"] == 120
        assert overrides["excluded_project_names"] == ["prod"]
        assert overrides["excluded_cluster_names"] == ["dev/main"]
        assert overrides["ignored_account_ids"] == ["reporting-bot"]
        assert overrides["dry_run"] is True
        assert overrides["max_workers"] == 8
        assert overrides["deadline_seconds"] == 600.0


class TestHeadlessRunner:
    """HeadlessRunner 테스트"""

    def test_success(self, fake_atlas):
        project = fake_atlas.add_project("p1", "dev")
        fake_atlas.add_cluster(project, "idle")

        runner = HeadlessRunner(HeadlessConfig(quiet=True), collaborator=fake_atlas, environ={})

        assert runner.run() == EXIT_OK
        assert fake_atlas.paused == [("p1", "idle")]
        assert runner.result.paused_count == 1

    def test_console_output(self, fake_atlas):
        """console 모드는 진행 표시와 결과 테이블 출력"""
        project = fake_atlas.add_project("p1", "dev")
        fake_atlas.add_cluster(project, "idle")
        fake_atlas.add_cluster(project, "free", tier="TENANT", instance_size="M0")

        runner = HeadlessRunner(HeadlessConfig(), collaborator=fake_atlas, environ={})

        assert runner.run() == EXIT_OK
        actions = {o.target.cluster_name: o.action for o in runner.result.outcomes}
        assert actions == {"idle": ClusterAction.PAUSED, "free": ClusterAction.SKIPPED_NON_PAUSABLE}

    def test_dry_run_from_config(self, fake_atlas):
        fake_atlas.add_cluster(fake_atlas.add_project("p1", "dev"), "idle")

        runner = HeadlessRunner(HeadlessConfig(dry_run=True, quiet=True), collaborator=fake_atlas, environ={})

        assert runner.run() == EXIT_OK
        assert fake_atlas.paused == []
        assert runner.result.would_pause_count == 1

    def test_dry_run_from_environment(self, fake_atlas):
        fake_atlas.add_cluster(fake_atlas.add_project("p1", "dev"), "idle")

        runner = HeadlessRunner(
            HeadlessConfig(quiet=True), collaborator=fake_atlas, environ={"AUTOPAUSE_DRY_RUN": "true"}
        )

        assert runner.run() == EXIT_OK
        assert fake_atlas.paused == []

    def test_partial_failure(self, fake_atlas):
        project = fake_atlas.add_project("p1", "dev")
        fake_atlas.add_cluster(project, "ok")
        fake_atlas.add_cluster(project, "broken")
        fake_atlas.history_errors[("p1", "broken")] = TransientFetchError("get_access_history", "p1/broken")

        runner = HeadlessRunner(HeadlessConfig(), collaborator=fake_atlas, environ={})

        assert runner.run() == EXIT_PARTIAL_FAILURE
        assert fake_atlas.paused == [("p1", "ok")]
        assert runner.result.failed_count == 1

    def test_config_error(self, fake_atlas):
        runner = HeadlessRunner(
            HeadlessConfig(), collaborator=fake_atlas, environ={"AUTOPAUSE_MAX_WORKERS": "many"}
        )

        assert runner.run() == EXIT_CONFIG_ERROR
        assert fake_atlas.history_calls == []

    def test_missing_credentials(self):
        """협력자 미주입 + 자격 증명 없음 → 설정 오류"""
        runner = HeadlessRunner(HeadlessConfig(quiet=True), environ={})

        assert runner.run() == EXIT_CONFIG_ERROR

    def test_owned_client_closed(self, fake_atlas):
        """직접 생성한 클라이언트는 실행 후 닫음"""
        fake_atlas.close = MagicMock()

        with patch.object(HeadlessRunner, "_create_client", return_value=fake_atlas):
            code = HeadlessRunner(HeadlessConfig(quiet=True), environ={}).run()

        assert code == EXIT_OK
        fake_atlas.close.assert_called_once()

    def test_injected_collaborator_not_closed(self, fake_atlas):
        fake_atlas.close = MagicMock()

        HeadlessRunner(HeadlessConfig(quiet=True), collaborator=fake_atlas, environ={}).run()

        fake_atlas.close.assert_not_called()

    def test_json_output_file(self, fake_atlas, tmp_path):
        fake_atlas.add_cluster(fake_atlas.add_project("p1", "dev"), "idle")
        output = tmp_path / "result.json"

        runner = HeadlessRunner(
            HeadlessConfig(format="json", output=str(output)), collaborator=fake_atlas, environ={}
        )

        assert runner.run() == EXIT_OK
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["summary"]["paused"] == 1
        assert data["outcomes"][0]["cluster_name"] == "idle"

    def test_keyboard_interrupt(self, fake_atlas):
        with patch("cli.headless.run_sweep", side_effect=KeyboardInterrupt):
            code = HeadlessRunner(HeadlessConfig(), collaborator=fake_atlas, environ={}).run()

        assert code == 130


class TestRunHeadless:
    """run_headless 편의 함수 테스트"""

    def test_passes_options(self, fake_atlas):
        fake_atlas.add_cluster(fake_atlas.add_project("p1", "prod"), "main")
        fake_atlas.add_cluster(fake_atlas.add_project("p2", "dev"), "scratch")

        code = run_headless(excluded_projects=["prod"], quiet=True, collaborator=fake_atlas)

        assert code == EXIT_OK
        assert fake_atlas.paused == [("p2", "scratch")]

    @pytest.mark.parametrize("deadline", [0, -1.0])
    def test_invalid_deadline(self, fake_atlas, deadline):
        assert run_headless(deadline_seconds=deadline, quiet=True, collaborator=fake_atlas) == EXIT_CONFIG_ERROR
