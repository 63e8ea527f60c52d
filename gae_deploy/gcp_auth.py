"""
gcp_auth
--------

서비스 계정 키 파일의 수명 관리, gcloud 서비스 계정 활성화,
appcfg.py 에 넘길 access token 발급을 담당한다.
"""

from __future__ import annotations

import os
import subprocess
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

from .errors import CommandError
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


DEFAULT_KEY_PATH = "/tmp/gcloud.json"


@contextmanager
def service_account_key_file(token: str, path: str = DEFAULT_KEY_PATH) -> Iterator[str]:
    """
    서비스 계정 JSON 키를 path 에 0600 권한으로 기록하고, 블록이 끝나면 삭제한다.

    삭제 실패는 경고만 남긴다. (보통 일회성 컨테이너 안에서 실행되므로 어차피 사라진다)
    """
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(token)
    try:
        yield path
    finally:
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("키 파일 삭제 실패: %s (%s)", path, e)


def activate_service_account(runner: CommandRunner, gcloud_cmd: str, key_path: str) -> None:
    runner.run(gcloud_cmd, "auth", "activate-service-account", "--key-file", key_path)


def print_access_token(
    gcloud_cmd: str,
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """
    `gcloud auth print-access-token` 의 stdout 을 그대로 반환한다.
    끝의 개행도 포함되므로 호출하는 쪽에서 strip 해야 한다.

    토큰이 로그에 남지 않도록 CommandRunner 를 거치지 않고 직접 실행한다.
    """
    cmd = [gcloud_cmd, "auth", "print-access-token"]
    try:
        result = subprocess.run(  # noqa: S603
            cmd,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise CommandError(f"필요한 명령을 찾을 수 없습니다: {gcloud_cmd}", program=gcloud_cmd) from e
    except OSError as e:
        raise CommandError(f"명령을 시작할 수 없습니다: {' '.join(cmd)} ({e})", program=gcloud_cmd) from e
    except subprocess.CalledProcessError as e:
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode})",
            program=gcloud_cmd,
            returncode=e.returncode,
        ) from e
    return result.stdout
