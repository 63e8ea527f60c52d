from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError


ENV_FILES_DEFAULT_ORDER = [".env", ".env.gae"]

DEFAULT_GCLOUD_CMD = "gcloud"
DEFAULT_APPCFG_CMD = "/go_appengine/appcfg.py"

_VERSION_UNSAFE_RE = re.compile(r"[/|.]")


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_list(name: str) -> Tuple[str, ...]:
    # 쉼표가 값에 들어가는 경우는 지원하지 않는다.
    raw = os.getenv(name, "")
    return tuple(raw.split(","))


def _expand(value: str) -> str:
    # 확장 결과가 비어 있으면 원래 값을 유지한다.
    expanded = os.path.expandvars(value)
    return expanded if expanded else value


def _get_json_map(name: str, param: str, strings_only: bool) -> Optional[Dict[str, Any]]:
    raw = os.getenv(name, "")
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"could not parse param {param} into a JSON object") from e
    if not isinstance(parsed, dict):
        raise ConfigError(f"could not parse param {param} into a JSON object")
    if strings_only and not all(isinstance(v, str) for v in parsed.values()):
        raise ConfigError(f"param {param} values must all be strings")
    return parsed


def sanitize_version(version: str) -> str:
    """`feature/PRJ-1.x` → `feature-prj-1-x` (URL/파일명에 안전한 소문자 토큰)"""
    return _VERSION_UNSAFE_RE.sub("-", version).lower()


def project_from_token(token: str) -> str:
    """서비스 계정 JSON 키에서 project_id 를 꺼낸다. 파싱 불가면 빈 문자열."""
    try:
        data = json.loads(token)
    except json.JSONDecodeError:
        return ""
    if not isinstance(data, dict):
        return ""
    project_id = data.get("project_id")
    return project_id if isinstance(project_id, str) else ""


@dataclass(frozen=True)
class DeploymentConfig:
    # 필수 공통
    action: str
    project: str = ""
    token: str = field(default="", repr=False)

    # 배포 대상
    version: str = ""
    flex_image: str = ""

    # 추가 인자
    addl_args: Mapping[str, str] = field(default_factory=dict)
    addl_flags: Tuple[str, ...] = ()
    sub_commands: Tuple[str, ...] = ()
    ae_environment: Mapping[str, str] = field(default_factory=dict, repr=False)
    template_vars: Mapping[str, Any] = field(default_factory=dict, repr=False)

    # app.yaml 등의 대체 파일 이름
    app_file: str = ""
    cron_file: str = ""
    dispatch_file: str = ""
    queue_file: str = ""

    # 경로
    workspace: str = "."
    dir: str = ""
    gcloud_cmd: str = DEFAULT_GCLOUD_CMD
    appcfg_cmd: str = DEFAULT_APPCFG_CMD

    # 0 이면 오래된 버전 정리를 하지 않는다.
    max_versions: int = 0

    @property
    def working_dir(self) -> str:
        return os.path.join(self.workspace, self.dir)

    @classmethod
    def from_env(cls) -> "DeploymentConfig":
        """
        CI 플러그인 규약(PLUGIN_* / GAE_CREDENTIALS / DRONE_WORKSPACE) 환경변수에서 설정을 읽는다.
        검증은 하지 않으므로 validated() 를 이어서 호출해야 한다.
        """
        addl_args = _get_json_map("PLUGIN_ADDL_ARGS", "addl_args", True) or {}

        ae_environment = _get_json_map("PLUGIN_AE_ENVIRONMENT", "ae_environment", True) or {}
        ae_environment = {k: _expand(v) for k, v in ae_environment.items()}

        template_vars = _get_json_map("PLUGIN_VARS", "vars", False) or {}
        template_vars = {
            k: _expand(v) if isinstance(v, str) else v for k, v in template_vars.items()
        }

        return cls(
            action=os.getenv("PLUGIN_ACTION", ""),
            project=os.getenv("PLUGIN_PROJECT", ""),
            token=os.getenv("GAE_CREDENTIALS", ""),
            version=os.getenv("PLUGIN_VERSION", ""),
            flex_image=os.getenv("PLUGIN_FLEX_IMAGE", ""),
            addl_args=addl_args,
            addl_flags=_get_list("PLUGIN_ADDL_FLAGS"),
            sub_commands=_get_list("PLUGIN_SUB_COMMANDS"),
            ae_environment=ae_environment,
            template_vars=template_vars,
            app_file=os.getenv("PLUGIN_APP_FILE", ""),
            cron_file=os.getenv("PLUGIN_CRON_FILE", ""),
            dispatch_file=os.getenv("PLUGIN_DISPATCH_FILE", ""),
            queue_file=os.getenv("PLUGIN_QUEUE_FILE", ""),
            workspace=os.getenv("DRONE_WORKSPACE") or ".",
            dir=os.getenv("PLUGIN_DIR", ""),
            gcloud_cmd=os.getenv("PLUGIN_GCLOUD_CMD", ""),
            appcfg_cmd=os.getenv("PLUGIN_APPCFG_CMD", ""),
            max_versions=_get_int("PLUGIN_MAX_VERSIONS", 0),
        )

    def validated(self) -> "DeploymentConfig":
        """
        필수값을 확인하고 기본값/정규화를 적용한 새 설정을 반환한다.
        """
        # YAML 파싱 과정에서 붙는 공백은 용서한다.
        token = self.token.strip()
        if not token:
            raise ConfigError("missing required param: token")

        project = self.project
        if not project:
            project = project_from_token(token)
            if not project:
                raise ConfigError("project id not found in token or param")

        if not self.action:
            raise ConfigError("missing required param: action")

        if self.max_versions < 0:
            raise ConfigError(f"max_versions 는 0 이상이어야 합니다: {self.max_versions}")

        return replace(
            self,
            token=token,
            project=project,
            gcloud_cmd=self.gcloud_cmd or DEFAULT_GCLOUD_CMD,
            appcfg_cmd=self.appcfg_cmd or DEFAULT_APPCFG_CMD,
            version=sanitize_version(self.version) if self.version else "",
        )
