"""
gae_tools
---------

App Engine 배포 도구 두 가지에 대한 명령 인자 조립.

- GcloudTool : `gcloud app <action> ...`  (deploy/services/versions/instances)
- AppCfgTool : `appcfg.py ... <action> .` (update, update_cron, set_default_version 등 나머지 전부)

두 클래스는 같은 모양(materialize/invocation/run)을 갖고, select_tool() 이 action 으로 고른다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

from .app_files import setup_file
from .config import DeploymentConfig
from .errors import step
from .gcp_auth import print_access_token
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


GCLOUD_ACTIONS = frozenset({"deploy", "services", "versions", "instances"})

APP_YAML_PATH = "./app.yaml"

# plan 처럼 실제 토큰 없이 명령 모양만 보여줄 때 사용
ACCESS_TOKEN_PLACEHOLDER = "<access-token>"


@dataclass(frozen=True)
class Invocation:
    program: str
    args: Tuple[str, ...]


def supplied_file_names(cfg: DeploymentConfig) -> Dict[str, str]:
    return {
        "app": cfg.app_file,
        "cron": cfg.cron_file,
        "dispatch": cfg.dispatch_file,
        "queue": cfg.queue_file,
    }


def _materialize(cfg: DeploymentConfig, roles: Tuple[str, ...]) -> None:
    supplied = supplied_file_names(cfg)
    for role in roles:
        setup_file(cfg.working_dir, role, supplied[role], cfg.template_vars)


class GcloudTool:
    name = "gcloud"
    file_roles = ("app", "cron", "dispatch", "queue")

    def build_args(self, cfg: DeploymentConfig) -> List[str]:
        args = [cfg.action]

        # `gcloud app services X Y Z ...` 처럼 복합 명령을 만들 수 있도록
        args.extend(cmd for cmd in cfg.sub_commands if cmd)

        args.append(APP_YAML_PATH)

        if cfg.version:
            args.extend(["--version", cfg.version])
        if cfg.flex_image:
            args.extend(["--image-url", cfg.flex_image])

        args.extend(["--project", cfg.project])
        args.append("--quiet")

        for key, value in cfg.addl_args.items():
            args.extend([key, value])

        args.extend(flag for flag in cfg.addl_flags if flag)
        return args

    def invocation(self, cfg: DeploymentConfig) -> Invocation:
        return Invocation(cfg.gcloud_cmd, ("app", *self.build_args(cfg)))

    def materialize(self, cfg: DeploymentConfig) -> None:
        _materialize(cfg, self.file_roles)

    def run(self, cfg: DeploymentConfig, runner: CommandRunner) -> None:
        inv = self.invocation(cfg)
        self.materialize(cfg)
        with step("gcloud app 명령"):
            runner.run(inv.program, *inv.args)


class AppCfgTool:
    name = "appcfg"
    file_roles = ("app", "cron")

    def build_args(self, cfg: DeploymentConfig, access_token: str) -> List[str]:
        args = [
            "--oauth2_access_token", access_token,
            "-A", cfg.project,
        ]

        if cfg.version:
            args.extend(["-V", cfg.version])

        for key, value in cfg.ae_environment.items():
            args.extend(["-E", f"{key}:{value}"])

        for key, value in cfg.addl_args.items():
            args.extend([key, value])

        # action 과 현재 디렉토리는 항상 마지막
        args.extend([cfg.action, "."])
        return args

    def invocation(self, cfg: DeploymentConfig, access_token: str = ACCESS_TOKEN_PLACEHOLDER) -> Invocation:
        return Invocation(cfg.appcfg_cmd, tuple(self.build_args(cfg, access_token)))

    def materialize(self, cfg: DeploymentConfig) -> None:
        _materialize(cfg, self.file_roles)

    def run(self, cfg: DeploymentConfig, runner: CommandRunner) -> None:
        with step("access token 발급"):
            token = print_access_token(cfg.gcloud_cmd, cwd=runner.cwd, env=runner.env).strip()

        inv = self.invocation(cfg, token)
        self.materialize(cfg)
        with step("appcfg.py 명령"):
            runner.run(inv.program, *inv.args)


DeployTool = Union[GcloudTool, AppCfgTool]


def select_tool(action: str) -> DeployTool:
    tool: DeployTool = GcloudTool() if action in GCLOUD_ACTIONS else AppCfgTool()
    logger.debug("배포 도구 선택: %s (action=%s)", tool.name, action)
    return tool
