"""
config
------

배포 디렉토리의 .env 파일(KEY="VALUE" 한 줄씩)을 읽고 쓰는 EnvFileStore 와,
그 값으로 만든 타입 있는 DeployConfig 를 정의한다.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from .errors import InvalidConfigValue, MissingRequiredConfig
from .logging_utils import get_logger


logger = get_logger(__name__)

ENV_FILE_NAME = ".env"
LOCK_FILE_NAME = "deploy.lock"

REQUIRED_KEYS = [
    "APPLICATION_NAME",
    "AWS_DEFAULT_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
]

_MISSING = object()


def _quote(value: str) -> str:
    """dotenv 의 큰따옴표 값 해석(escape 처리)을 거쳐도 원래 값이 나오도록 escape 한다."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def _line_key(line: str) -> str:
    """`KEY = "v"`, `export KEY=v` 도 dotenv 와 같이 KEY 로 본다."""
    name = line.split("=", 1)[0].strip()
    if name.startswith("export "):
        name = name[len("export "):].strip()
    return name


class EnvFileStore:
    """
    .env 파일의 원본 줄 목록을 순서대로 들고 있는 설정 저장소.

    - get: python-dotenv 로 파싱한 값을 돌려준다.
    - set: 파일 전체를 다시 읽고(read-modify-write) 첫 번째로 일치하는 키의 줄을 교체하거나,
      없으면 맨 끝에 KEY="VALUE" 를 추가한 뒤 파일 전체를 다시 쓴다.

    동시 호출에 대한 동기화는 하지 않는다. 호출자는 순차적으로만 사용해야 한다.
    """

    def __init__(self, path: str, lines: Optional[List[str]] = None) -> None:
        self.path = path
        self._lines: List[str] = list(lines or [])

    @classmethod
    def load(cls, path: str) -> "EnvFileStore":
        store = cls(path)
        store.reload()
        return store

    def reload(self) -> None:
        self._lines = self._read_lines()

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def _read_lines(self) -> List[str]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return f.read().splitlines()

    def _write_lines(self, lines: List[str]) -> None:
        text = os.linesep.join(lines)
        if lines:
            text += os.linesep
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    def as_dict(self) -> Dict[str, str]:
        text = "\n".join(self._lines)
        # 자격증명 등은 그대로 써야 하므로 ${VAR} 치환은 하지 않는다.
        parsed = dotenv_values(stream=io.StringIO(text), interpolate=False)
        # 값 없이 키만 있는 줄(None)은 설정되지 않은 것으로 본다.
        return {k: v for k, v in parsed.items() if v is not None}

    def get(self, key: str, default: object = _MISSING) -> Optional[str]:
        values = self.as_dict()
        if key in values:
            return values[key]
        if default is _MISSING:
            raise MissingRequiredConfig([key])
        return default  # type: ignore[return-value]

    def __contains__(self, key: str) -> bool:
        return key in self.as_dict()

    def set(self, key: str, value: str) -> None:
        lines = self._read_lines()
        new_line = f'{key}="{_quote(value)}"'
        for idx, line in enumerate(lines):
            if _line_key(line) == key:
                lines[idx] = new_line
                break
        else:
            lines.append(new_line)

        self._write_lines(lines)
        self._lines = lines
        logger.debug(".env 갱신: %s", key)


def build_subprocess_env(
    store: EnvFileStore, base: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    하위 프로세스(terraform/aws/docker)에 넘길 환경변수.

    .env 값을 현재 프로세스 환경 위에 얹되, 이미 설정된 환경변수는 덮어쓰지 않는다.
    (dotenv 의 기본 동작과 동일)
    """
    env = dict(os.environ if base is None else base)
    for key, value in store.as_dict().items():
        env.setdefault(key, value)
    return env


def _get_int(store: EnvFileStore, name: str, default: int) -> int:
    raw = store.get(name, None)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidConfigValue(name, raw, "정수") from e


def _get_float(store: EnvFileStore, name: str, default: float) -> float:
    raw = store.get(name, None)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidConfigValue(name, raw, "숫자") from e


@dataclass(frozen=True)
class DeployConfig:
    deployment_dir: str

    # 필수
    application_name: str
    aws_region: str
    aws_access_key_id: str
    aws_secret_access_key: str

    port: int = 3000

    # DB (없으면 terraform 변수에서 빠진다)
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None

    # 이미지/배포 세부 설정
    image_vendor_prefix: str = "yemctech"
    image_arch: str = "amd64"
    grace_seconds: float = 3.0
    finish_timezone: str = "Europe/Istanbul"
    terraform_dir_name: str = "terraform"
    command_timeout: float = 1800.0

    @classmethod
    def from_store(cls, store: EnvFileStore, deployment_dir: str) -> "DeployConfig":
        missing: List[str] = []

        def req(name: str) -> str:
            val = store.get(name, None)
            if not val:
                missing.append(name)
            return val or ""

        values = {key: req(key) for key in REQUIRED_KEYS}
        if missing:
            raise MissingRequiredConfig(missing)

        return cls(
            deployment_dir=os.path.abspath(deployment_dir),
            application_name=values["APPLICATION_NAME"],
            aws_region=values["AWS_DEFAULT_REGION"],
            aws_access_key_id=values["AWS_ACCESS_KEY_ID"],
            aws_secret_access_key=values["AWS_SECRET_ACCESS_KEY"],
            port=_get_int(store, "PORT", 3000),
            db_name=store.get("DB_NAME", None),
            db_user=store.get("DB_USER", None),
            db_password=store.get("DB_PASSWORD", None),
            image_vendor_prefix=store.get("IMAGE_VENDOR_PREFIX", None) or "yemctech",
            image_arch=store.get("IMAGE_ARCH", None) or "amd64",
            grace_seconds=_get_float(store, "DEPLOY_GRACE_SECONDS", 3.0),
            finish_timezone=store.get("FINISH_TIMEZONE", None) or "Europe/Istanbul",
            terraform_dir_name=store.get("TERRAFORM_DIR", None) or "terraform",
            command_timeout=_get_float(store, "COMMAND_TIMEOUT_SECONDS", 1800.0),
        )

    def rel(self, rel_path: str) -> str:
        return os.path.join(self.deployment_dir, rel_path)

    @property
    def env_path(self) -> str:
        return self.rel(ENV_FILE_NAME)

    @property
    def lock_path(self) -> str:
        return self.rel(LOCK_FILE_NAME)

    @property
    def terraform_dir(self) -> str:
        return self.rel(self.terraform_dir_name)

    @property
    def state_path(self) -> str:
        return os.path.join(self.terraform_dir, "terraform.tfstate")

    @property
    def plan_path(self) -> str:
        return os.path.join(self.terraform_dir, "PLAN")

    @property
    def image_name(self) -> str:
        return f"{self.image_vendor_prefix}-{self.application_name}"
