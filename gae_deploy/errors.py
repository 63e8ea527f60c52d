"""
errors
------

배포 파이프라인 전체에서 사용하는 예외 타입.
CLI 는 여기 정의된 예외를 받아 한 줄짜리 에러 메시지로 종료한다.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional


class DeployError(RuntimeError):
    """배포 단계 실패의 공통 베이스."""


class CommandError(DeployError):
    """
    외부 명령을 실행할 수 없거나 0 이 아닌 코드로 종료한 경우.

    메시지에는 항상 redaction 이 적용된 인자만 들어간다.
    """

    def __init__(self, message: str, *, program: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.program = program
        self.returncode = returncode


class AppFileError(DeployError):
    """app/cron/dispatch/queue 파일 복사 또는 템플릿 렌더링 실패."""

    def __init__(self, role: str, message: str) -> None:
        super().__init__(f"{role} 파일 준비 실패: {message}")
        self.role = role


class ConfigError(ValueError):
    """설정 로드/검증 실패."""


@contextmanager
def step(name: str) -> Iterator[None]:
    """
    외부 명령 실패(CommandError)에 어느 단계였는지 접두어를 붙여 DeployError 로 다시 던진다.
    """
    try:
        yield
    except CommandError as e:
        raise DeployError(f"{name} 실패: {e}") from e
