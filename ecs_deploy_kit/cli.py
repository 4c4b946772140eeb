import os
import sys
from dataclasses import replace
from typing import Optional, Tuple

import click

from .aws_ecs import AwsEcsController
from .config import ENV_FILE_NAME, DeployConfig, EnvFileStore, build_subprocess_env
from .docker_image import DockerImageBuilder
from .errors import DeployKitError, DeploymentAborted, ProvisioningAborted
from .logging_utils import get_logger, setup_logging
from .orchestrator import RunMode, format_report, run
from .prompts import always_yes, ask_yes_no
from .terraform import TerraformCli


logger = get_logger(__name__)


def _load_config(deployment_dir: str) -> Tuple[EnvFileStore, DeployConfig]:
    store = EnvFileStore.load(os.path.join(deployment_dir, ENV_FILE_NAME))
    cfg = DeployConfig.from_store(store, deployment_dir)
    logger.debug("Config loaded: app=%s region=%s port=%s", cfg.application_name, cfg.aws_region, cfg.port)
    return store, cfg


@click.command()
@click.argument(
    "deployment_dir",
    required=False,
    default=".",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
)
@click.argument("mode", required=False, default="")
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다.",
)
@click.option(
    "-y",
    "--yes",
    "assume_yes",
    is_flag=True,
    help="모든 확인 질문(terraform 자동 실행, 잠금 파일 무시)에 yes 로 답합니다.",
)
@click.option(
    "--grace-seconds",
    type=float,
    default=None,
    help="배포 시작 전 대기 시간(초). 기본은 .env 의 DEPLOY_GRACE_SECONDS (3초).",
)
@click.option(
    "--stream/--no-stream",
    "stream_output",
    default=False,
    help="terraform/docker 출력을 실시간으로 터미널에 흘립니다.",
)
def main(
    deployment_dir: str,
    mode: str,
    verbose: int,
    assume_yes: bool,
    grace_seconds: Optional[float],
    stream_output: bool,
) -> None:
    """
    DEPLOYMENT_DIR 의 .env 와 terraform/ 을 기준으로 ECS 에 프로비저닝/배포한다.

    MODE 에 "terraform" 이 있으면 terraform 을 강제로 다시 실행하고, "deploy" 가 있거나
    MODE 가 비어 있으면 배포하며, "gateway" 가 있으면 로드밸런서별 *_SERVICE_URL 을 .env 에 기록한다.
    """
    setup_logging(verbose)

    try:
        store, cfg = _load_config(deployment_dir)
    except DeployKitError as e:
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)

    if grace_seconds is not None:
        cfg = replace(cfg, grace_seconds=grace_seconds)

    run_mode = RunMode.parse(mode)
    env = build_subprocess_env(store)
    confirm = always_yes if assume_yes else ask_yes_no

    try:
        report = run(
            cfg,
            store,
            run_mode,
            provisioner=TerraformCli(env=env, timeout=cfg.command_timeout, stream_output=stream_output),
            builder=DockerImageBuilder(
                cfg.deployment_dir, env=env, timeout=cfg.command_timeout, stream_output=stream_output
            ),
            cluster=AwsEcsController(cfg.deployment_dir, env=env, timeout=cfg.command_timeout),
            confirm=confirm,
        )
    except (ProvisioningAborted, DeploymentAborted) as e:
        click.echo(f"[ERROR] {e}", err=True)
        click.echo("Halting...", err=True)
        sys.exit(1)
    except DeployKitError as e:
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)
    except Exception as e:  # noqa: BLE001
        logger.exception("배포 중 오류 발생")
        click.echo(f"[ERROR] 배포 실패: {e}", err=True)
        sys.exit(1)

    click.echo(format_report(report))
