"""
aws_ecs
-------

ECS 서비스 강제 재배포와 로드밸런서 조회를 aws CLI 로 수행하는 모듈.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import List, Mapping, Optional, Protocol

from .errors import ExternalCommandFailed, LoadBalancerQueryFailed
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


@dataclass(frozen=True)
class LoadBalancer:
    name: str
    dns_name: str


class ClusterController(Protocol):
    def update_service(self, cluster: str, service: str, region: str) -> None: ...

    def list_load_balancers(self, region: str) -> List[LoadBalancer]: ...


def parse_load_balancers(payload: str) -> List[LoadBalancer]:
    """`aws elbv2 describe-load-balancers --output json` 출력 파싱."""
    try:
        data = json.loads(payload or "{}")
    except json.JSONDecodeError as e:
        raise LoadBalancerQueryFailed(f"로드밸런서 조회 결과를 파싱할 수 없습니다: {e}") from e

    if not isinstance(data, dict):
        raise LoadBalancerQueryFailed("로드밸런서 조회 결과 형식이 올바르지 않습니다.")
    if data.get("Error") or data.get("error"):
        raise LoadBalancerQueryFailed(f"로드밸런서 조회 실패: {data.get('Error') or data.get('error')}")

    balancers: List[LoadBalancer] = []
    for item in data.get("LoadBalancers", []):
        name = item.get("LoadBalancerName")
        dns = item.get("DNSName")
        if not name or not dns:
            logger.warning("이름 또는 DNS 가 없는 로드밸런서를 건너뜁니다: %s", item)
            continue
        balancers.append(LoadBalancer(name=name, dns_name=dns))
    return balancers


class AwsEcsController:
    """aws CLI 를 호출하는 ClusterController 구현."""

    def __init__(
        self,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = 1800.0,
    ) -> None:
        self._cwd = cwd
        self._env = env
        self._timeout = timeout

    def update_service(self, cluster: str, service: str, region: str) -> None:
        run_command(
            [
                "aws",
                "ecs",
                "update-service",
                "--cluster",
                cluster,
                "--service",
                service,
                "--force-new-deployment",
                "--region",
                region,
            ],
            cwd=self._cwd,
            env=self._env,
            timeout=self._timeout,
        )
        logger.info("ECS 서비스 강제 재배포 요청: cluster=%s service=%s", cluster, service)

    def list_load_balancers(self, region: str) -> List[LoadBalancer]:
        cmd = ["aws", "elbv2", "describe-load-balancers", "--region", region, "--output", "json"]
        try:
            result = run_command(cmd, cwd=self._cwd, env=self._env, timeout=self._timeout)
        except ExternalCommandFailed as e:
            raise LoadBalancerQueryFailed(f"로드밸런서 조회 실패: {e}") from e
        return parse_load_balancers(result.stdout)
