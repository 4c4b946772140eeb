"""
terraform
---------

terraform 상태 파일 존재 여부와 force 플래그로 (재)프로비저닝 여부를 정하고,
필요하면 init → plan → apply 를 실행한 뒤 terraform.tfstate 의 outputs 를 읽는다.
"""

from __future__ import annotations

import json
import os
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple

from .config import DeployConfig
from .errors import MissingProvisioningOutputs, ProvisioningAborted
from .logging_utils import get_logger
from .prompts import Confirm
from .subprocess_utils import run_command


logger = get_logger(__name__)

PLAN_FILE_NAME = "PLAN"

PROVISION_PROMPT = 'Do you want us to autorun "terraform init" and "terraform apply"?'


class ProvisioningState(str, Enum):
    NOT_PROVISIONED = "not_provisioned"
    FORCE_REQUESTED = "force_requested"
    ALREADY_PROVISIONED = "already_provisioned"

    @property
    def needs_apply(self) -> bool:
        return self is not ProvisioningState.ALREADY_PROVISIONED


class ProvisioningOutputs(Mapping[str, Any]):
    """
    terraform.tfstate 의 outputs 섹션({name: {"value": ...}}) 읽기 전용 래퍼.
    상태 파일은 terraform 이 소유하므로 여기서 수정하지 않는다.
    """

    def __init__(self, raw: Mapping[str, Any]) -> None:
        self._raw = dict(raw)

    def __getitem__(self, name: str) -> Any:
        return self._raw[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def value(self, name: str) -> str:
        try:
            entry = self._raw[name]
        except KeyError as e:
            raise MissingProvisioningOutputs(
                f"terraform.tfstate 에 '{name}' output 이 없습니다."
            ) from e
        if not isinstance(entry, Mapping) or "value" not in entry:
            raise MissingProvisioningOutputs(
                f"terraform.tfstate 의 '{name}' output 에 value 가 없습니다."
            )
        return str(entry["value"])

    def optional_value(self, name: str) -> Optional[str]:
        if name not in self._raw:
            return None
        return self.value(name)


class Provisioner(Protocol):
    def init(self, workdir: str) -> None: ...

    def plan(self, workdir: str, variables: List[Tuple[str, str]], plan_file: str) -> None: ...

    def apply(self, workdir: str, plan_file: str) -> None: ...


class TerraformCli:
    """terraform CLI 를 그대로 호출하는 Provisioner 구현."""

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = 1800.0,
        stream_output: bool = False,
    ) -> None:
        self._env = env
        self._timeout = timeout
        self._stream = stream_output

    def _run(self, cmd: List[str], workdir: str) -> None:
        run_command(cmd, cwd=workdir, env=self._env, timeout=self._timeout, stream_output=self._stream)

    def init(self, workdir: str) -> None:
        self._run(["terraform", "init", "-input=false"], workdir)

    def plan(self, workdir: str, variables: List[Tuple[str, str]], plan_file: str) -> None:
        cmd = ["terraform", "plan", "-input=false"]
        for name, value in variables:
            cmd += ["-var", f"{name}={value}"]
        cmd.append(f"-out={plan_file}")
        self._run(cmd, workdir)

    def apply(self, workdir: str, plan_file: str) -> None:
        self._run(["terraform", "apply", "-input=false", plan_file], workdir)


def provisioning_state(state_path: str, force: bool) -> ProvisioningState:
    if force:
        return ProvisioningState.FORCE_REQUESTED
    if not os.path.exists(state_path):
        return ProvisioningState.NOT_PROVISIONED
    return ProvisioningState.ALREADY_PROVISIONED


def terraform_variables(cfg: DeployConfig) -> List[Tuple[str, str]]:
    """terraform plan 에 넘길 -var 목록. DB 값은 설정된 경우에만 포함한다."""
    variables: List[Tuple[str, str]] = [
        ("aws-region", cfg.aws_region),
        ("aws-access-key", cfg.aws_access_key_id),
        ("aws-secret-key", cfg.aws_secret_access_key),
        ("app-name", cfg.application_name),
        ("container-port", str(cfg.port)),
    ]
    optional = [
        ("service-db-name", cfg.db_name),
        ("service-db-username", cfg.db_user),
        ("service-db-password", cfg.db_password),
    ]
    variables += [(name, value) for name, value in optional if value is not None]
    return variables


def read_outputs(state_path: str) -> ProvisioningOutputs:
    logger.info("Reading terraform.tfstate file...")
    try:
        with open(state_path, "r", encoding="utf-8") as f:
            state: Dict[str, Any] = json.load(f)
    except FileNotFoundError as e:
        raise MissingProvisioningOutputs(f"terraform.tfstate 파일이 없습니다: {state_path}") from e
    except json.JSONDecodeError as e:
        raise MissingProvisioningOutputs(f"terraform.tfstate 파일을 파싱할 수 없습니다: {e}") from e

    outputs = state.get("outputs") if isinstance(state, dict) else None
    if not outputs:
        raise MissingProvisioningOutputs("No outputs found in terraform.tfstate file!")
    return ProvisioningOutputs(outputs)


def ensure_provisioned(
    cfg: DeployConfig,
    provisioner: Provisioner,
    confirm: Confirm,
    *,
    force: bool = False,
) -> ProvisioningOutputs:
    """
    상태 파일이 없거나 force 면 확인 후 terraform init/plan/apply 를 실행하고,
    최종적으로 terraform.tfstate 의 outputs 를 돌려준다.
    """
    state = provisioning_state(cfg.state_path, force)
    logger.debug("프로비저닝 상태: %s", state.value)

    if state.needs_apply:
        logger.info("Terraform state file does not exist or force command runned!")
        approved = True if force else confirm(PROVISION_PROMPT)
        if not approved:
            raise ProvisioningAborted("terraform 자동 실행이 거절되었습니다.")

        workdir = cfg.terraform_dir
        logger.info('Running "terraform init"...')
        provisioner.init(workdir)
        logger.info('Running "terraform plan"...')
        provisioner.plan(workdir, terraform_variables(cfg), PLAN_FILE_NAME)
        logger.info('Running "terraform apply"...')
        provisioner.apply(workdir, PLAN_FILE_NAME)

        logger.info("Success! Removing PLAN file...")
        if os.path.exists(cfg.plan_path):
            os.remove(cfg.plan_path)

    return read_outputs(cfg.state_path)
