"""
pytest 설정:

site-packages 에 설치된 다른 버전의 gae_deploy 가 먼저 import 되지 않도록
repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)
