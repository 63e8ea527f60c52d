"""
versions
--------

배포 후 오래된 App Engine 버전을 정리하는 모듈.

정리 규칙 (최신순 목록에서 i 번째 버전):
- i < max_versions 이면 유지
- 방금 배포한 버전이면 유지
- 트래픽을 받고 있으면 유지 (오래된 버전이라도 지우면 장애가 난다)
- 나머지는 한 번의 delete 호출로 삭제
"""

from __future__ import annotations

import io
import json
import os
from dataclasses import dataclass
from typing import Any, List, Sequence

import yaml

from .app_files import GAE_FILE_NAMES
from .config import DeploymentConfig
from .errors import DeployError, step
from .logging_utils import get_logger
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


PRUNE_ACTIONS = frozenset({"deploy", "update"})


@dataclass(frozen=True)
class VersionRecord:
    id: str
    traffic_split: float = 0.0

    @classmethod
    def from_json(cls, data: Any) -> "VersionRecord":
        if not isinstance(data, dict) or "id" not in data:
            raise ValueError(f"버전 목록 항목 형식이 올바르지 않습니다: {data!r}")
        return cls(id=str(data["id"]), traffic_split=float(data.get("traffic_split") or 0.0))


def should_prune(cfg: DeploymentConfig) -> bool:
    return cfg.max_versions > 0 and cfg.action in PRUNE_ACTIONS


def read_service_name(app_yaml_path: str) -> str:
    """
    app.yaml 에서 service 이름을 읽는다. 없으면 예전 필드명인 module 을 사용한다.
    """
    with open(app_yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise DeployError(f"app.yaml 형식이 올바르지 않습니다: {app_yaml_path}")
    return str(data.get("service") or data.get("module") or "")


def parse_versions(raw: str) -> List[VersionRecord]:
    # JSON 디코딩 에러는 그대로 올린다.
    return [VersionRecord.from_json(item) for item in json.loads(raw)]


def list_versions(runner: CommandRunner, cfg: DeploymentConfig, service: str) -> List[VersionRecord]:
    """
    서비스의 버전 목록을 생성 시각 내림차순으로 조회한다.
    """
    buf = io.StringIO()
    with runner.redirect_stdout(buf), step("버전 목록 조회"):
        runner.run(
            cfg.gcloud_cmd, "app", "versions", "list",
            "--service", service, "--project", cfg.project,
            "--format", "json", "--sort-by", "~version.createTime", "--quiet",
        )
    return parse_versions(buf.getvalue())


def select_versions_to_delete(
    versions: Sequence[VersionRecord],
    max_versions: int,
    deployed_version: str,
) -> List[str]:
    to_delete: List[str] = []
    for i, v in enumerate(versions):
        # 최신 N 개, 방금 배포한 버전, 트래픽을 받는 버전은 남긴다.
        if i < max_versions or v.id == deployed_version or v.traffic_split > 0:
            continue
        to_delete.append(v.id)
    return to_delete


def delete_versions(runner: CommandRunner, cfg: DeploymentConfig, service: str, version_ids: Sequence[str]) -> None:
    with step("버전 삭제"):
        runner.run(
            cfg.gcloud_cmd, "app", "versions", "delete",
            "--service", service, "--project", cfg.project, "--quiet",
            *version_ids,
        )


def remove_old_versions(runner: CommandRunner, cfg: DeploymentConfig) -> List[str]:
    """
    max_versions 를 넘는 오래된 버전을 삭제하고, 삭제한 버전 id 목록을 반환한다.
    삭제할 버전이 없으면 delete 명령을 호출하지 않는다.
    """
    app_yaml = os.path.join(cfg.working_dir, GAE_FILE_NAMES["app"])
    try:
        service = read_service_name(app_yaml)
    except (OSError, yaml.YAMLError) as e:
        raise DeployError(f"app.yaml 에서 서비스 이름을 읽지 못했습니다: {e}") from e

    versions = list_versions(runner, cfg, service)
    to_delete = select_versions_to_delete(versions, cfg.max_versions, cfg.version)

    if not to_delete:
        logger.info("삭제할 버전이 없습니다. (service=%s, 버전 수=%d)", service or "default", len(versions))
        return []

    logger.info("오래된 버전 %d 개를 삭제합니다: %s", len(to_delete), to_delete)
    delete_versions(runner, cfg, service, to_delete)
    return to_delete
