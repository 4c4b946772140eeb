"""
docker_image
------------

ECR 로그인과 도커 이미지 빌드/태그/푸시를 담당하는 모듈.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Protocol, Sequence, Tuple

from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


def registry_host(repository_url: str) -> str:
    """`<account>.dkr.ecr.<region>.amazonaws.com/<repo>` → 레지스트리 호스트 부분."""
    return repository_url.split("/")[0]


class ImageBuilder(Protocol):
    def login(self, registry: str, region: str) -> None: ...

    def build(self, image_name: str, build_args: Sequence[Tuple[str, str]], context_dir: str) -> None: ...

    def tag(self, source: str, target: str) -> None: ...

    def push(self, image_ref: str) -> None: ...


class DockerImageBuilder:
    """aws/docker CLI 를 호출하는 ImageBuilder 구현."""

    def __init__(
        self,
        cwd: str,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = 1800.0,
        stream_output: bool = False,
    ) -> None:
        self._cwd = cwd
        self._env = env
        self._timeout = timeout
        self._stream = stream_output

    def _run(self, cmd: List[str], *, input_text: Optional[str] = None, stream: Optional[bool] = None) -> str:
        result = run_command(
            cmd,
            cwd=self._cwd,
            env=self._env,
            input_text=input_text,
            timeout=self._timeout,
            stream_output=self._stream if stream is None else stream,
        )
        return result.stdout

    def login(self, registry: str, region: str) -> None:
        # `aws ecr get-login-password | docker login --password-stdin` 파이프를 두 단계로 나눈다.
        # 비밀번호가 터미널에 찍히지 않도록 첫 단계는 항상 캡처 모드로 돌린다.
        password = self._run(["aws", "ecr", "get-login-password", "--region", region], stream=False)
        self._run(
            ["docker", "login", "--username", "AWS", "--password-stdin", registry],
            input_text=password.strip() + "\n",
        )
        logger.info("ECR 로그인 완료: %s", registry)

    def build(self, image_name: str, build_args: Sequence[Tuple[str, str]], context_dir: str) -> None:
        cmd = ["docker", "build"]
        for name, value in build_args:
            cmd += ["--build-arg", f"{name}={value}"]
        cmd += ["-t", image_name, context_dir]
        self._run(cmd)

    def tag(self, source: str, target: str) -> None:
        self._run(["docker", "tag", source, target])

    def push(self, image_ref: str) -> None:
        self._run(["docker", "push", image_ref])
