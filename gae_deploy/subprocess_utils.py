from __future__ import annotations

import io
import os
import subprocess
import sys
from contextlib import contextmanager
from typing import IO, Iterator, Mapping, Optional, Sequence

import click

from .errors import CommandError
from .logging_utils import get_logger


logger = get_logger(__name__)


REDACTED = "[redacted]"

# 이 플래그 바로 다음 인자는 비밀 값이다.
_SECRET_FLAGS = ("--oauth2_access_token", "-E")


def _redact_value(flag: str, value: str) -> str:
    if flag == "-E":
        # `KEY:value` 에서 KEY 는 남기고 첫 `:` 이후 전부를 가린다.
        key, sep, _ = value.partition(":")
        return f"{key}{sep}{REDACTED}" if sep else REDACTED
    return REDACTED


def redact_args(args: Sequence[str]) -> str:
    """
    로그에 남길 인자 문자열을 만든다. 비밀 값은 REDACTED 로 치환된다.
    (실제 프로세스에는 원래 값이 그대로 전달된다)

    인자 단위로 치환하므로 값에 공백/개행/중괄호가 있어도 새지 않는다.
    """
    shown = []
    prev = ""
    for arg in args:
        shown.append(_redact_value(prev, arg) if prev in _SECRET_FLAGS else arg)
        prev = arg
    return " ".join(shown)


def format_command(program: str, args: Sequence[str]) -> str:
    shown = redact_args(args)
    return f"{program} {shown}" if shown else program


def _fileno(stream: IO[str]) -> Optional[int]:
    try:
        return stream.fileno()
    except (AttributeError, OSError, io.UnsupportedOperation):
        return None


class CommandRunner:
    """
    외부 명령을 동기적으로 실행하는 러너.

    - 실행 직전에 `Running Command: ...` 한 줄을 log_stream 에 남긴다. (비밀 값은 가려짐)
    - 작업 디렉토리/환경변수/출력 스트림은 생성 시점에 고정된다.
    - 실패 시 재시도하지 않고 CommandError 를 던진다.
    """

    def __init__(
        self,
        cwd: str,
        env: Optional[Mapping[str, str]] = None,
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
        log_stream: Optional[IO[str]] = None,
    ) -> None:
        self.cwd = cwd
        self.env = dict(env) if env is not None else dict(os.environ)
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.log_stream = log_stream if log_stream is not None else sys.stdout

    def run(self, program: str, *args: str) -> None:
        display = format_command(program, args)
        click.echo(f"Running Command: {display}", file=self.log_stream)
        self.log_stream.flush()

        out_fd = _fileno(self.stdout)
        err_fd = _fileno(self.stderr)
        # 파이썬 레벨 버퍼에 남은 출력이 자식 프로세스 출력보다 뒤로 밀리지 않도록 먼저 비운다.
        for stream in (self.stdout, self.stderr):
            stream.flush()

        try:
            proc = subprocess.run(  # noqa: S603
                [program, *args],
                cwd=self.cwd,
                env=self.env,
                stdout=self.stdout if out_fd is not None else subprocess.PIPE,
                stderr=self.stderr if err_fd is not None else subprocess.PIPE,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CommandError(
                f"필요한 명령을 찾을 수 없습니다: {program} (gcloud/appcfg.py 가 설치되어 있는지 확인하세요)",
                program=program,
            ) from e
        except OSError as e:
            raise CommandError(f"명령을 시작할 수 없습니다: {display} ({e})", program=program) from e

        # 메모리 버퍼 같은 fd 없는 스트림은 종료 후 캡처한 내용을 옮겨 적는다.
        if out_fd is None and proc.stdout:
            self.stdout.write(proc.stdout)
        if err_fd is None and proc.stderr:
            self.stderr.write(proc.stderr)

        if proc.returncode != 0:
            raise CommandError(
                f"명령 실행 실패: {display} (exit={proc.returncode})",
                program=program,
                returncode=proc.returncode,
            )
        logger.debug("명령 완료: %s", program)

    @contextmanager
    def redirect_stdout(self, sink: IO[str]) -> Iterator[IO[str]]:
        """
        stdout 출력 대상을 잠시 sink 로 바꾼다.
        블록을 빠져나갈 때(예외 포함) 항상 원래 스트림으로 복구한다.
        """
        previous = self.stdout
        self.stdout = sink
        try:
            yield sink
        finally:
            self.stdout = previous
