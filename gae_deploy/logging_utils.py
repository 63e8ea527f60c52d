"""
logging_utils
-------------

CLI 전역 로깅 설정.
gcloud/appcfg.py 가 stdout 으로 진행 로그를 내보내므로, 우리 로그도 같은 스트림에 섞어 순서를 유지한다.
"""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(verbosity: int = 0, stream: Optional[TextIO] = None) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=stream if stream is not None else sys.stdout,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
