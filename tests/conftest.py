"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 ecs_deploy_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.
테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.

배포 흐름 테스트에서 쓰는 가짜 terraform/docker/aws 구현도 여기 모아둔다.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Dict, List, Optional, Tuple

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


BASE_ENV_LINES = [
    'APPLICATION_NAME="shop-api"',
    'AWS_DEFAULT_REGION="eu-central-1"',
    'AWS_ACCESS_KEY_ID="AKIAEXAMPLE"',
    'AWS_SECRET_ACCESS_KEY="s3cr3t"',
]

STATE_OUTPUTS: Dict[str, Dict[str, str]] = {
    "ecr-repository-url": {"value": "123456789012.dkr.ecr.eu-central-1.amazonaws.com/shop-api"},
    "ecs_cluster_name": {"value": "shop-cluster"},
    "ecs_service_name": {"value": "shop-service"},
    "alb-dns": {"value": "shop-alb-1.eu-central-1.elb.amazonaws.com"},
    "service-db-address": {"value": "shop-db.abc123.eu-central-1.rds.amazonaws.com"},
}


def write_env(deploy_dir, lines: List[str]) -> str:  # noqa: ANN001
    path = os.path.join(str(deploy_dir), ".env")
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return path


def write_state(deploy_dir, outputs: Optional[Dict[str, Dict[str, str]]] = None) -> str:  # noqa: ANN001
    tf_dir = os.path.join(str(deploy_dir), "terraform")
    os.makedirs(tf_dir, exist_ok=True)
    path = os.path.join(tf_dir, "terraform.tfstate")
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"version": 4, "outputs": STATE_OUTPUTS if outputs is None else outputs}, f)
    return path


class FakeProvisioner:
    """plan 에서 PLAN 파일을, apply 에서 terraform.tfstate 를 만들어 실제 terraform 흉내를 낸다."""

    def __init__(self, outputs: Optional[Dict[str, Dict[str, str]]] = None) -> None:
        self.calls: List[Tuple] = []
        self.outputs = STATE_OUTPUTS if outputs is None else outputs

    def init(self, workdir: str) -> None:
        os.makedirs(workdir, exist_ok=True)
        self.calls.append(("init", workdir))

    def plan(self, workdir: str, variables, plan_file: str) -> None:  # noqa: ANN001
        self.calls.append(("plan", workdir, list(variables), plan_file))
        with open(os.path.join(workdir, plan_file), "w", encoding="utf-8") as f:
            f.write("plan")

    def apply(self, workdir: str, plan_file: str) -> None:
        self.calls.append(("apply", workdir, plan_file))
        with open(os.path.join(workdir, "terraform.tfstate"), "w", encoding="utf-8") as f:
            json.dump({"outputs": self.outputs}, f)


class FakeBuilder:
    def __init__(self, steps: List[str], fail_on: Optional[str] = None) -> None:
        self.steps = steps
        self.fail_on = fail_on
        self.args: Dict[str, Tuple] = {}

    def _step(self, name: str, *args) -> None:  # noqa: ANN002
        self.steps.append(name)
        self.args[name] = args
        if name == self.fail_on:
            from ecs_deploy_kit.errors import ExternalCommandFailed

            raise ExternalCommandFailed(["docker", name], 1, stderr=f"{name} failed")

    def login(self, registry: str, region: str) -> None:
        self._step("login", registry, region)

    def build(self, image_name: str, build_args, context_dir: str) -> None:  # noqa: ANN001
        self._step("build", image_name, list(build_args), context_dir)

    def tag(self, source: str, target: str) -> None:
        self._step("tag", source, target)

    def push(self, image_ref: str) -> None:
        self._step("push", image_ref)


class FakeCluster:
    def __init__(self, steps: List[str], load_balancers=None, fail_on: Optional[str] = None) -> None:  # noqa: ANN001
        self.steps = steps
        self.load_balancers = load_balancers or []
        self.fail_on = fail_on
        self.updated: List[Tuple[str, str, str]] = []

    def update_service(self, cluster: str, service: str, region: str) -> None:
        self.steps.append("update")
        if self.fail_on == "update":
            from ecs_deploy_kit.errors import ExternalCommandFailed

            raise ExternalCommandFailed(["aws", "ecs", "update-service"], 255, stderr="denied")
        self.updated.append((cluster, service, region))

    def list_load_balancers(self, region: str):  # noqa: ANN201
        self.steps.append("list_load_balancers")
        if self.fail_on == "list_load_balancers":
            from ecs_deploy_kit.errors import LoadBalancerQueryFailed

            raise LoadBalancerQueryFailed("AccessDenied")
        return list(self.load_balancers)


@pytest.fixture
def deploy_dir(tmp_path):  # noqa: ANN001, ANN201
    write_env(tmp_path, BASE_ENV_LINES)
    return tmp_path


@pytest.fixture
def steps() -> List[str]:
    return []
