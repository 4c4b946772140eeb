import json
import os

import pytest

from conftest import BASE_ENV_LINES, FakeProvisioner, STATE_OUTPUTS, write_env, write_state
from ecs_deploy_kit.config import DeployConfig, EnvFileStore
from ecs_deploy_kit.errors import MissingProvisioningOutputs, ProvisioningAborted
from ecs_deploy_kit.terraform import (
    ProvisioningState,
    ensure_provisioned,
    provisioning_state,
    read_outputs,
    terraform_variables,
)


def _cfg(deploy_dir, extra=None) -> DeployConfig:  # noqa: ANN001
    path = write_env(deploy_dir, BASE_ENV_LINES + list(extra or []))
    return DeployConfig.from_store(EnvFileStore.load(path), str(deploy_dir))


def _never(prompt: str) -> bool:
    raise AssertionError(f"unexpected prompt: {prompt}")


def test_provisioning_state_transitions(tmp_path) -> None:
    state_path = os.path.join(str(tmp_path), "terraform.tfstate")

    assert provisioning_state(state_path, force=False) is ProvisioningState.NOT_PROVISIONED
    assert provisioning_state(state_path, force=True) is ProvisioningState.FORCE_REQUESTED

    with open(state_path, "w", encoding="utf-8") as f:
        f.write("{}")

    assert provisioning_state(state_path, force=False) is ProvisioningState.ALREADY_PROVISIONED
    assert provisioning_state(state_path, force=True) is ProvisioningState.FORCE_REQUESTED


def test_variables_omit_absent_db_values(tmp_path) -> None:
    cfg = _cfg(tmp_path, ['PORT="8080"', 'DB_USER="admin"'])

    variables = dict(terraform_variables(cfg))

    assert variables == {
        "aws-region": "eu-central-1",
        "aws-access-key": "AKIAEXAMPLE",
        "aws-secret-key": "s3cr3t",
        "app-name": "shop-api",
        "container-port": "8080",
        "service-db-username": "admin",
    }


def test_existing_state_skips_terraform(tmp_path) -> None:
    cfg = _cfg(tmp_path)
    write_state(tmp_path)
    provisioner = FakeProvisioner()

    outputs = ensure_provisioned(cfg, provisioner, _never)

    assert provisioner.calls == []
    assert outputs.value("ecs_cluster_name") == "shop-cluster"


def test_missing_state_prompts_then_runs_init_plan_apply(tmp_path) -> None:
    cfg = _cfg(tmp_path, ['DB_NAME="shop"', 'DB_USER="admin"', 'DB_PASSWORD="pw"'])
    provisioner = FakeProvisioner()
    prompts = []

    def confirm(prompt: str) -> bool:
        prompts.append(prompt)
        return True

    outputs = ensure_provisioned(cfg, provisioner, confirm)

    assert len(prompts) == 1
    assert [c[0] for c in provisioner.calls] == ["init", "plan", "apply"]
    plan_call = provisioner.calls[1]
    assert ("service-db-password", "pw") in plan_call[2]
    assert plan_call[3] == "PLAN"
    assert provisioner.calls[2][2] == "PLAN"
    # plan 산출물은 apply 후 삭제된다.
    assert not os.path.exists(cfg.plan_path)
    assert outputs.value("alb-dns") == STATE_OUTPUTS["alb-dns"]["value"]


def test_force_reprovisions_without_prompt(tmp_path) -> None:
    cfg = _cfg(tmp_path)
    write_state(tmp_path)
    provisioner = FakeProvisioner()

    ensure_provisioned(cfg, provisioner, _never, force=True)

    assert [c[0] for c in provisioner.calls] == ["init", "plan", "apply"]


def test_declined_prompt_aborts_before_terraform(tmp_path) -> None:
    cfg = _cfg(tmp_path)
    provisioner = FakeProvisioner()

    with pytest.raises(ProvisioningAborted):
        ensure_provisioned(cfg, provisioner, lambda prompt: False)

    assert provisioner.calls == []


@pytest.mark.parametrize("state", [{"version": 4}, {"version": 4, "outputs": {}}])
def test_state_without_outputs_is_fatal(tmp_path, state) -> None:  # noqa: ANN001
    path = os.path.join(str(tmp_path), "terraform.tfstate")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state, f)

    with pytest.raises(MissingProvisioningOutputs):
        read_outputs(path)


def test_missing_named_output_raises(tmp_path) -> None:
    path = write_state(tmp_path, {"alb-dns": {"value": "lb"}})

    outputs = read_outputs(path)

    assert outputs.optional_value("service-db-address") is None
    with pytest.raises(MissingProvisioningOutputs):
        outputs.value("ecr-repository-url")
