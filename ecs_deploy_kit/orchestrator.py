from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .aws_ecs import ClusterController
from .config import DeployConfig, EnvFileStore
from .docker_image import ImageBuilder, registry_host
from .lock import DeployLock
from .logging_utils import format_elapsed, get_logger
from .outputs_sync import discover_service_urls, sync_db_host
from .prompts import Confirm
from .terraform import ProvisioningOutputs, Provisioner, ensure_provisioned


logger = get_logger(__name__)

# terraform 모듈이 내보내야 하는 output 이름
OUTPUT_REPOSITORY_URL = "ecr-repository-url"
OUTPUT_CLUSTER_NAME = "ecs_cluster_name"
OUTPUT_SERVICE_NAME = "ecs_service_name"
OUTPUT_ALB_DNS = "alb-dns"

FINISH_TIME_FORMAT = "%d.%m.%Y %H:%M:%S"


class DeployCommand(str, Enum):
    DEPLOY = "deploy"
    PROVISION_ONLY = "provision_only"
    FORCE_PROVISION = "force_provision"
    GATEWAY_DEPLOY = "gateway_deploy"


@dataclass(frozen=True)
class RunMode:
    """
    두 번째 위치 인자(모드 문자열)를 한 번만 해석한 결과.

    "terraform" / "deploy" / "gateway" 부분 문자열이 각각 독립적인 플래그다.
    모드 문자열이 비어 있으면 배포만 수행한다.
    """

    force_provision: bool = False
    deploy: bool = True
    gateway: bool = False

    @classmethod
    def parse(cls, mode: Optional[str]) -> "RunMode":
        raw = mode or ""
        return cls(
            force_provision="terraform" in raw,
            deploy="deploy" in raw or not raw,
            gateway="gateway" in raw,
        )

    @property
    def command(self) -> DeployCommand:
        if self.force_provision:
            return DeployCommand.FORCE_PROVISION
        if self.gateway:
            return DeployCommand.GATEWAY_DEPLOY
        if self.deploy:
            return DeployCommand.DEPLOY
        return DeployCommand.PROVISION_ONLY


@dataclass
class DeployReport:
    mode: RunMode
    outputs: ProvisioningOutputs
    db_host_updated: bool = False
    service_urls: Dict[str, str] = field(default_factory=dict)
    deployed: bool = False
    load_balancer_dns: Optional[str] = None
    elapsed_seconds: float = 0.0
    finished_at: Optional[str] = None


def finish_timestamp(timezone: str, now: Optional[datetime] = None) -> str:
    """완료 시각을 지정한 타임존의 dd.mm.yyyy HH:MM:SS 형식으로 돌려준다."""
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("알 수 없는 타임존이라 로컬 시간을 사용합니다: %s", timezone)
        tz = None
    if now is None:
        now = datetime.now(tz)
    elif tz is not None:
        now = now.astimezone(tz)
    return now.strftime(FINISH_TIME_FORMAT)


def deploy_application(
    cfg: DeployConfig,
    outputs: ProvisioningOutputs,
    builder: ImageBuilder,
    cluster: ClusterController,
    lock: DeployLock,
) -> str:
    """
    ECR 로그인 → 이미지 빌드 → 태그 → 푸시 → ECS 서비스 강제 재배포.

    각 단계 실패는 그대로 전파되어 이후 단계는 실행되지 않으며, 잠금 파일도 남는다.
    성공하면 로드밸런서 DNS 를 돌려준다.
    """
    # 필요한 output 을 잠금 전에 모두 확인해 둔다.
    repository_url = outputs.value(OUTPUT_REPOSITORY_URL)
    cluster_name = outputs.value(OUTPUT_CLUSTER_NAME)
    service_name = outputs.value(OUTPUT_SERVICE_NAME)
    alb_dns = outputs.value(OUTPUT_ALB_DNS)

    remote_ref = f"{repository_url}:latest"

    with lock:
        logger.info("Deploying application...")
        builder.login(registry_host(repository_url), cfg.aws_region)
        builder.build(
            cfg.image_name,
            [("arch", cfg.image_arch), ("PORT", str(cfg.port))],
            ".",
        )
        builder.tag(f"{cfg.image_name}:latest", remote_ref)

        logger.info("Deployment initiated on Docker Deploy!")
        builder.push(remote_ref)

        logger.info("Force new deployment on ECS!")
        cluster.update_service(cluster_name, service_name, cfg.aws_region)

        logger.info("Cleaning up...")
        logger.info("load-balancer-dns: %s", alb_dns)

    return alb_dns


def run(
    cfg: DeployConfig,
    store: EnvFileStore,
    mode: RunMode,
    *,
    provisioner: Provisioner,
    builder: ImageBuilder,
    cluster: ClusterController,
    confirm: Confirm,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> DeployReport:
    """
    프로비저닝 → outputs 동기화 → (gateway) 서비스 URL 기록 → 잠금 → 배포 → 잠금 해제.
    """
    started = clock()
    logger.info("실행 모드: %s", mode.command.value)

    outputs = ensure_provisioned(cfg, provisioner, confirm, force=mode.force_provision)
    report = DeployReport(mode=mode, outputs=outputs)
    report.db_host_updated = sync_db_host(store, outputs)

    if mode.gateway:
        report.service_urls = discover_service_urls(store, cluster, cfg.aws_region)

    if not mode.deploy:
        logger.info("Deploy command not found. Process finished!")
        report.elapsed_seconds = clock() - started
        return report

    if cfg.grace_seconds > 0:
        logger.info("Deploying in %s seconds...", f"{cfg.grace_seconds:g}")
        sleep(cfg.grace_seconds)

    lock = DeployLock(cfg.deployment_dir, confirm)
    report.load_balancer_dns = deploy_application(cfg, outputs, builder, cluster, lock)
    report.deployed = True

    report.elapsed_seconds = clock() - started
    report.finished_at = finish_timestamp(cfg.finish_timezone)
    logger.info("Running time: %s", format_elapsed(report.elapsed_seconds))
    logger.info("Finish Date: %s", report.finished_at)
    return report


def format_report(report: DeployReport) -> str:
    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- command: {report.mode.command.value}")
    lines.append(f"- deployed: {report.deployed}")
    lines.append(f"- db_host_updated: {report.db_host_updated}")
    lines.append("")

    lines.append("## Service URLs")
    if report.service_urls:
        for key, url in sorted(report.service_urls.items()):
            lines.append(f"- {key}={url}")
    else:
        lines.append("- (none)")

    if report.deployed:
        lines.append("")
        lines.append("## Deployment")
        lines.append(f"- load-balancer-dns: {report.load_balancer_dns}")
        lines.append(f"- running time: {format_elapsed(report.elapsed_seconds)}")
        lines.append(f"- finish date: {report.finished_at}")

    return "\n".join(lines)
