import os

import pytest

from ecs_deploy_kit.errors import DeploymentAborted
from ecs_deploy_kit.lock import LOCK_NOTICE, DeployLock


def test_acquire_creates_marker_and_release_removes_it(tmp_path) -> None:
    lock = DeployLock(str(tmp_path))

    lock.acquire()

    assert lock.exists()
    with open(lock.path, "r", encoding="utf-8") as f:
        assert f.read() == LOCK_NOTICE

    lock.release()
    assert not os.path.exists(os.path.join(str(tmp_path), "deploy.lock"))


def test_stale_marker_declined_aborts(tmp_path) -> None:
    lock = DeployLock(str(tmp_path))
    lock.acquire()

    with pytest.raises(DeploymentAborted):
        DeployLock(str(tmp_path)).acquire(lambda prompt: False)

    # 거절한 쪽이 기존 잠금을 지우지 않는다.
    assert lock.exists()


def test_stale_marker_without_confirm_aborts(tmp_path) -> None:
    DeployLock(str(tmp_path)).acquire()

    with pytest.raises(DeploymentAborted):
        DeployLock(str(tmp_path)).acquire()


def test_stale_marker_accepted_proceeds(tmp_path) -> None:
    DeployLock(str(tmp_path)).acquire()
    prompts = []

    lock = DeployLock(str(tmp_path), confirm=lambda prompt: prompts.append(prompt) or True)
    lock.acquire()

    assert prompts == ["Do you want to continue?"]
    assert lock.held


def test_context_manager_keeps_marker_on_failure(tmp_path) -> None:
    lock = DeployLock(str(tmp_path))

    with pytest.raises(RuntimeError):
        with lock:
            raise RuntimeError("docker build failed")

    assert lock.exists()


def test_context_manager_releases_on_success(tmp_path) -> None:
    lock = DeployLock(str(tmp_path))

    with lock:
        assert lock.exists()

    assert not lock.exists()
