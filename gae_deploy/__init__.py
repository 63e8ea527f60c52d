"""
gae_deploy
----------

Google App Engine 배포 CLI 패키지.
`gcloud app` 또는 `appcfg.py` 명령을 설정값으로부터 조립해 실행하고,
배포 후 오래된 버전을 정리(prune)하는 것을 목표로 한다.
"""

__all__ = [
    "config",
    "orchestrator",
]
