from __future__ import annotations

import pytest
from click.testing import CliRunner

from gae_deploy import cli


_ENV = {
    "PLUGIN_ACTION": "deploy",
    "PLUGIN_PROJECT": "test-project",
    "GAE_CREDENTIALS": '{"type": "service_account"}',
    "PLUGIN_VERSION": "Feature/X.1",
    "PLUGIN_MAX_VERSIONS": "2",
    "PLUGIN_ADDL_ARGS": "",
    "PLUGIN_AE_ENVIRONMENT": "",
    "PLUGIN_VARS": "",
}


@pytest.fixture(autouse=True)
def _keep_test_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    # CliRunner 의 임시 stdout 에 root 핸들러가 묶이지 않도록 한다.
    monkeypatch.setattr(cli, "setup_logging", lambda verbosity: None)


def test_plan_prints_command_without_running(tmp_path) -> None:  # noqa: ANN001
    runner = CliRunner()

    result = runner.invoke(
        cli.main,
        ["-C", str(tmp_path), "--revision", "abc123", "plan"],
        env={**_ENV, "DRONE_WORKSPACE": str(tmp_path)},
    )

    assert result.exit_code == 0, result.output
    assert "GAE deploy plugin built from abc123" in result.output
    assert "gcloud app deploy ./app.yaml --version feature-x-1 --project test-project --quiet" in result.output
    assert "- ENABLED (max_versions=2)" in result.output


def test_plan_missing_action_exits_1(tmp_path) -> None:  # noqa: ANN001
    runner = CliRunner()

    result = runner.invoke(cli.main, ["-C", str(tmp_path), "plan"], env={**_ENV, "PLUGIN_ACTION": ""})

    assert result.exit_code == 1
    assert "missing required param: action" in result.output


def test_deploy_writes_and_removes_key_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:  # noqa: ANN001
    key_file = tmp_path / "key.json"
    seen = {}

    def fake_run_deploy(cfg, runner, key_path):  # noqa: ANN001, ANN202
        seen["key"] = open(key_path, encoding="utf-8").read()
        seen["cwd"] = runner.cwd
        return ["v0"]

    monkeypatch.setattr(cli, "run_deploy", fake_run_deploy)

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "deploy", "--key-file", str(key_file)],
        env={**_ENV, "DRONE_WORKSPACE": str(tmp_path)},
    )

    assert result.exit_code == 0, result.output
    assert seen["key"] == '{"type": "service_account"}'
    assert seen["cwd"].startswith(str(tmp_path))
    assert not key_file.exists()
    assert "삭제된 버전: v0" in result.output


def test_deploy_failure_exits_1_and_removes_key_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:  # noqa: ANN001
    key_file = tmp_path / "key.json"

    def failing_run_deploy(cfg, runner, key_path):  # noqa: ANN001, ANN202, ARG001
        raise RuntimeError("boom")

    monkeypatch.setattr(cli, "run_deploy", failing_run_deploy)

    result = CliRunner().invoke(
        cli.main,
        ["-C", str(tmp_path), "deploy", "--key-file", str(key_file)],
        env={**_ENV, "DRONE_WORKSPACE": str(tmp_path)},
    )

    assert result.exit_code == 1
    assert "[ERROR] 배포 실패: boom" in result.output
    assert not key_file.exists()
