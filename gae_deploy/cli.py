import sys

import click

from .config import load_env_files, DeploymentConfig
from .gcp_auth import DEFAULT_KEY_PATH, service_account_key_file
from .logging_utils import setup_logging, get_logger
from .orchestrator import plan as plan_deploy, run_deploy
from .subprocess_utils import CommandRunner


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help=".env / .env.gae 를 읽을 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.option(
    "--revision",
    envvar="GAE_DEPLOY_REVISION",
    default="[unknown]",
    show_default=True,
    help="배너에 표시할 빌드 리비전",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int, revision: str) -> None:
    """App Engine(gcloud app / appcfg.py) 배포용 CLI"""
    setup_logging(verbose)
    click.echo(f"GAE deploy plugin built from {revision}")
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context) -> DeploymentConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    cfg = DeploymentConfig.from_env().validated()
    logger.debug("Config loaded: %s", cfg)
    return cfg


@main.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """실행될 배포 명령과 정리(prune) 여부를 출력만 한다. (외부 명령은 실행하지 않음)"""
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    click.echo(plan_deploy(cfg))


@main.command(name="deploy")
@click.option(
    "--key-file",
    "key_file",
    type=click.Path(dir_okay=False),
    default=DEFAULT_KEY_PATH,
    show_default=True,
    help="서비스 계정 키를 임시로 기록할 경로",
)
@click.pass_context
def deploy(ctx: click.Context, key_file: str) -> None:
    """서비스 계정 활성화 후 배포하고, 설정 시 오래된 버전을 정리한다."""
    try:
        cfg = _load_config_from_ctx(ctx)
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    runner = CommandRunner(cfg.working_dir)

    try:
        with service_account_key_file(cfg.token, key_file) as key_path:
            deleted = run_deploy(cfg, runner, key_path)
    except Exception as e:  # noqa: BLE001
        logger.debug("배포 실패 상세", exc_info=True)
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)

    if deleted:
        click.echo(f"삭제된 버전: {', '.join(deleted)}")
    click.echo("배포 완료")
