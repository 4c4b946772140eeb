"""
prompts
-------

사용자 확인(y/yes) 기능. 배포 흐름에는 Confirm 호출 가능 객체로 주입한다.
force 모드나 --yes, 테스트에서는 always_yes / 람다를 넘기면 된다.
"""

from __future__ import annotations

from typing import Callable

import click


Confirm = Callable[[str], bool]

_YES = {"y", "yes"}


def ask_yes_no(prompt: str) -> bool:
    """터미널에서 답을 받아 y / yes (대소문자 무시) 일 때만 True."""
    try:
        answer = click.prompt(prompt, default="", show_default=False, prompt_suffix=" ")
    except click.Abort:
        # stdin 이 닫혀 있거나(EOF) Ctrl+C 인 경우는 거절로 본다.
        return False
    return str(answer).strip().lower() in _YES


def always_yes(prompt: str) -> bool:  # noqa: ARG001
    return True
