from __future__ import annotations

from typing import List

from .config import DeploymentConfig
from .logging_utils import get_logger
from .errors import step
from . import (
    gae_tools,
    gcp_auth,
    versions,
)
from .subprocess_utils import CommandRunner, format_command


logger = get_logger(__name__)


def run_deploy(cfg: DeploymentConfig, runner: CommandRunner, key_path: str) -> List[str]:
    """
    서비스 계정 활성화 → 배포 명령 → (옵션) 오래된 버전 정리 순서로 실행한다.

    어느 단계든 실패하면 남은 단계는 실행하지 않는다.
    배포 성공 후 정리 단계가 실패해도 배포를 되돌리지는 않는다.

    Returns:
        삭제된 버전 id 목록 (정리를 하지 않았으면 빈 리스트)
    """
    with step("서비스 계정 활성화"):
        gcp_auth.activate_service_account(runner, cfg.gcloud_cmd, key_path)

    tool = gae_tools.select_tool(cfg.action)
    logger.info("배포 실행: tool=%s action=%s project=%s", tool.name, cfg.action, cfg.project)
    tool.run(cfg, runner)

    if not versions.should_prune(cfg):
        return []

    logger.info("오래된 버전 정리: max_versions=%d", cfg.max_versions)
    return versions.remove_old_versions(runner, cfg)


def plan(cfg: DeploymentConfig) -> str:
    """
    실제 명령을 실행하지 않고, 어떤 명령이 어떤 순서로 실행될지 요약 텍스트를 리턴한다.
    """
    tool = gae_tools.select_tool(cfg.action)
    inv = tool.invocation(cfg)
    supplied = gae_tools.supplied_file_names(cfg)

    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.project}")
    lines.append(f"- action: {cfg.action}")
    lines.append(f"- tool: {tool.name}")
    lines.append(f"- version: {cfg.version or '(not set)'}")
    lines.append(f"- working_dir: {cfg.working_dir}")
    lines.append("")

    lines.append("## Files")
    for role in tool.file_roles:
        name = supplied[role]
        lines.append(f"- {role}: {name or '(not set)'}")
    lines.append("")

    lines.append("## Command")
    lines.append(f"- {format_command(inv.program, inv.args)}")
    lines.append("")

    lines.append("## Prune old versions")
    if versions.should_prune(cfg):
        lines.append(f"- ENABLED (max_versions={cfg.max_versions})")
    else:
        lines.append("- SKIPPED")

    return "\n".join(lines)
