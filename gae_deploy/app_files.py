"""
app_files
---------

App Engine 이 정해진 이름(app.yaml, cron.yaml, ...)으로만 읽는 설정 파일을 준비하는 모듈.

- 사용자가 다른 이름의 파일(예: stg-app.yaml)을 지정하면 표준 이름으로 복사한다.
- 복사된 파일은 jinja2 템플릿으로 렌더링된다. 정의되지 않은 변수를 참조하면 실패한다.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, TemplateError

from .errors import AppFileError
from .logging_utils import get_logger


logger = get_logger(__name__)


# 역할 → App Engine 이 요구하는 파일 이름
GAE_FILE_NAMES = {
    "app": "app.yaml",
    "cron": "cron.yaml",
    "dispatch": "dispatch.yaml",
    "queue": "queue.yaml",
}


_jinja_env = Environment(
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


def copy_file(dst: str, src: str) -> None:
    """
    src 를 같은 디렉토리의 임시 파일로 복사한 뒤 rename 으로 dst 를 교체한다.
    파일 권한은 src 를 따른다.
    """
    mode = os.stat(src).st_mode
    fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(dst) or ".")
    try:
        with os.fdopen(fd, "wb") as fout, open(src, "rb") as fin:
            shutil.copyfileobj(fin, fout)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, dst)
    except Exception:  # noqa: BLE001
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def render_template_file(path: str, template_vars: Mapping[str, Any]) -> None:
    with open(path, "r", encoding="utf-8") as f:
        source = f.read()

    # 렌더링이 끝까지 성공한 경우에만 파일을 덮어쓴다.
    rendered = _jinja_env.from_string(source).render(dict(template_vars))

    with open(path, "w", encoding="utf-8") as f:
        f.write(rendered)
        f.flush()
        os.fsync(f.fileno())


def setup_file(
    working_dir: str,
    role: str,
    supplied_name: str,
    template_vars: Mapping[str, Any],
) -> None:
    """
    role(app/cron/dispatch/queue) 에 해당하는 파일을 표준 이름으로 준비한다.

    supplied_name 이 비어 있으면 아무 것도 하지 않는다.
    """
    if not supplied_name:
        return

    gae_name = GAE_FILE_NAMES[role]
    dest = os.path.join(working_dir, gae_name)

    if supplied_name != gae_name:
        orig = os.path.join(working_dir, supplied_name)
        logger.info("%s 파일 복사: %s -> %s", role, supplied_name, gae_name)
        try:
            copy_file(dest, orig)
        except OSError as e:
            raise AppFileError(role, f"{supplied_name!r} 을(를) {gae_name!r} 로 복사하지 못했습니다: {e}") from e

    try:
        render_template_file(dest, template_vars)
    except (OSError, UnicodeDecodeError) as e:
        raise AppFileError(role, f"템플릿 파일을 읽거나 쓸 수 없습니다 ({dest}): {e}") from e
    except TemplateError as e:
        raise AppFileError(role, f"템플릿 렌더링 실패 ({dest}): {e}") from e
