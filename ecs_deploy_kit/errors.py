"""
errors
------

배포 흐름에서 사용하는 예외 모음.

모든 예외는 치명적이며 재시도하지 않는다.
라이브러리 코드는 raise 만 하고, 잡아서 종료 코드로 바꾸는 것은 cli 의 몫이다.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DeployKitError(RuntimeError):
    """ecs_deploy_kit 공통 베이스 예외."""


class MissingRequiredConfig(DeployKitError, ValueError):
    """필수 설정 키가 .env 에 없을 때."""

    def __init__(self, keys: Sequence[str]) -> None:
        self.keys = sorted(set(keys))
        super().__init__("필수 환경변수가 누락되었습니다: " + ", ".join(self.keys))


class InvalidConfigValue(DeployKitError, ValueError):
    """설정 값의 형식이 잘못되었을 때 (예: PORT=abc)."""

    def __init__(self, key: str, value: str, expected: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"{key} 값이 올바르지 않습니다: {value!r} ({expected} 필요)")


class ExternalCommandFailed(DeployKitError):
    """외부 명령이 0 이 아닌 코드로 종료되었거나 시간 안에 끝나지 않았을 때."""

    def __init__(
        self,
        command: Sequence[str],
        exit_code: Optional[int],
        stderr: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        if message is None:
            message = f"명령 실행 실패: {' '.join(self.command)} (exit={exit_code})"
            if stderr:
                message += "\nstderr:\n" + stderr
        super().__init__(message)


class CommandNotFound(ExternalCommandFailed):
    """실행 파일을 PATH 에서 찾지 못했을 때."""

    def __init__(self, command: Sequence[str]) -> None:
        super().__init__(
            command,
            127,
            message=(
                f"필요한 명령을 찾을 수 없습니다: {command[0]} "
                "(terraform/docker/aws 가 설치되어 있는지 확인하세요)"
            ),
        )


class ProvisioningAborted(DeployKitError):
    """사용자가 terraform 자동 실행을 거절했을 때."""


class DeploymentAborted(DeployKitError):
    """deploy.lock 이 남아 있는 상태에서 사용자가 계속 진행을 거절했을 때."""


class MissingProvisioningOutputs(DeployKitError):
    """terraform.tfstate 에 outputs 가 없거나 필요한 output 이 빠져 있을 때."""


class LoadBalancerQueryFailed(DeployKitError):
    """로드밸런서 목록 조회가 실패했을 때."""
