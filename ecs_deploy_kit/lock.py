"""
lock
----

배포 디렉토리의 deploy.lock 마커 파일로 같은 디렉토리에 대한 동시 배포를 막는다.

파일 존재 여부만 의미가 있는 권고(advisory) 잠금이다.
파이프라인이 중간에 실패하면 잠금을 풀지 않는다. 다음 실행 때 사람이 확인하고 넘어가야 한다.
"""

from __future__ import annotations

import os
from typing import Optional

from .config import LOCK_FILE_NAME
from .errors import DeploymentAborted
from .logging_utils import get_logger
from .prompts import Confirm


logger = get_logger(__name__)

LOCK_NOTICE = (
    "This stops ecs-deploy-kit from running concurrently with itself. "
    "Remove this if ecs-deploy-kit complains."
)

CONTINUE_PROMPT = "Do you want to continue?"


class DeployLock:
    def __init__(self, deployment_dir: str, confirm: Optional[Confirm] = None) -> None:
        self.path = os.path.join(deployment_dir, LOCK_FILE_NAME)
        self._confirm = confirm
        self.held = False

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def acquire(self, confirm: Optional[Confirm] = None) -> None:
        confirm = confirm or self._confirm
        logger.info("Checking for lockfile...")
        if self.exists():
            logger.error("Lockfile %s found!", LOCK_FILE_NAME)
            if confirm is None or not confirm(CONTINUE_PROMPT):
                raise DeploymentAborted(f"{self.path} 가 남아 있어 배포를 중단합니다.")
            logger.warning("기존 잠금 파일을 무시하고 계속 진행합니다.")

        logger.info("Creating lockfile...")
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(LOCK_NOTICE)
        self.held = True

    def release(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)
        self.held = False

    def __enter__(self) -> "DeployLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        # 실패 시에는 잠금을 그대로 남긴다.
        if exc_type is None:
            self.release()
        else:
            logger.error("배포 실패로 %s 를 남겨둡니다. 확인 후 직접 지워주세요.", self.path)
