from __future__ import annotations

import io
import logging
import os
import stat
import sys
from typing import List

import pytest

from gae_deploy.errors import CommandError
from gae_deploy.gcp_auth import activate_service_account, print_access_token, service_account_key_file
from gae_deploy.subprocess_utils import CommandRunner


def _fake_gcloud(tmp_path, body: str) -> str:  # noqa: ANN001
    """`auth print-access-token` 만 받는 가짜 gcloud 실행 파일을 만든다."""
    path = tmp_path / "gcloud"
    path.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        "assert sys.argv[1:] == ['auth', 'print-access-token'], sys.argv\n"
        f"{body}\n",
        encoding="utf-8",
    )
    os.chmod(path, 0o755)
    return str(path)


class _RecordingRunner(CommandRunner):
    def __init__(self) -> None:
        super().__init__(".", env={}, stdout=io.StringIO(), stderr=io.StringIO(), log_stream=io.StringIO())
        self.calls: List[list] = []

    def run(self, program: str, *args: str) -> None:
        self.calls.append([program, *args])


def test_print_access_token_returns_stdout_verbatim(tmp_path) -> None:  # noqa: ANN001
    gcloud = _fake_gcloud(tmp_path, "print('ya29.token-value')")

    token = print_access_token(gcloud, cwd=str(tmp_path))

    # 끝의 개행은 호출하는 쪽에서 제거한다.
    assert token == "ya29.token-value\n"


def test_print_access_token_non_zero_exit_raises(tmp_path) -> None:  # noqa: ANN001
    gcloud = _fake_gcloud(tmp_path, "sys.exit(2)")

    with pytest.raises(CommandError) as excinfo:
        print_access_token(gcloud, cwd=str(tmp_path))

    assert excinfo.value.returncode == 2
    assert excinfo.value.program == gcloud


def test_print_access_token_missing_binary_raises(tmp_path) -> None:  # noqa: ANN001
    with pytest.raises(CommandError, match="필요한 명령을 찾을 수 없습니다"):
        print_access_token(str(tmp_path / "no-such-gcloud"))


def test_key_file_is_private_and_removed(tmp_path) -> None:  # noqa: ANN001
    path = str(tmp_path / "gcloud.json")

    with service_account_key_file('{"project_id": "p"}', path) as key_path:
        assert key_path == path
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        with open(path, encoding="utf-8") as f:
            assert f.read() == '{"project_id": "p"}'

    assert not os.path.exists(path)


def test_key_file_removed_when_block_raises(tmp_path) -> None:  # noqa: ANN001
    path = str(tmp_path / "gcloud.json")

    with pytest.raises(CommandError):
        with service_account_key_file("{}", path):
            raise CommandError("명령 실행 실패: gcloud (exit=1)", program="gcloud", returncode=1)

    assert not os.path.exists(path)


def test_key_file_removal_failure_only_warns(tmp_path, caplog) -> None:  # noqa: ANN001
    path = str(tmp_path / "gcloud.json")

    with caplog.at_level(logging.WARNING, logger="gae_deploy.gcp_auth"):
        with service_account_key_file("{}", path):
            os.remove(path)

    assert "키 파일 삭제 실패" in caplog.text


def test_activate_service_account_passes_key_file() -> None:
    runner = _RecordingRunner()

    activate_service_account(runner, "gcloud", "/tmp/gcloud.json")

    assert runner.calls == [["gcloud", "auth", "activate-service-account", "--key-file", "/tmp/gcloud.json"]]
