from __future__ import annotations

import os
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Optional, Sequence

from .errors import CommandNotFound, ExternalCommandFailed
from .logging_utils import get_logger


logger = get_logger(__name__)


_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

# 실패 메시지/디버그 로그에 싣는 출력 길이 상한
_DETAIL_WIDTH = 2000

# 로그에 그대로 남기면 안 되는 인자 (terraform -var 'aws-secret-key=...' 등)
_SECRET_MARKERS = ("secret", "password")


def _is_tty(stream) -> bool:  # noqa: ANN001
    try:
        return bool(getattr(stream, "isatty") and stream.isatty())
    except Exception:  # noqa: BLE001
        return False


def _progress_enabled() -> bool:
    raw = os.getenv("CLI_SHOW_PROGRESS")
    if raw is None:
        return True
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def redact(cmd: Sequence[str]) -> str:
    """로그 출력용 명령 문자열. 비밀값이 들어간 인자는 값 부분을 가린다."""
    parts = []
    for arg in cmd:
        lowered = arg.lower()
        if "=" in arg and any(m in lowered.split("=", 1)[0] for m in _SECRET_MARKERS):
            parts.append(arg.split("=", 1)[0] + "=***")
        else:
            parts.append(arg)
    return " ".join(parts)


class _IdleProgress:
    """
    명령이 끝날 때까지 stderr 한 줄에 스피너 + 경과시간을 그린다.
    stdout 로그와 섞이지 않도록 stderr 에만 출력한다.
    """

    def __init__(self, message: str, *, stream=None, interval: float = 0.12) -> None:  # noqa: ANN001
        self._message = shorten(message, width=72, placeholder="…")
        self._stream = stream if stream is not None else sys.stderr
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_len = 0

    def _render(self, idx: int, elapsed: float) -> None:
        text = f"{_FRAMES[idx % len(_FRAMES)]} {self._message}  {elapsed:0.1f}s"
        self._last_len = max(self._last_len, len(text))
        self._stream.write("\r" + text)
        self._stream.flush()

    def start(self) -> None:
        started = time.monotonic()

        def _run() -> None:
            idx = 0
            while not self._stop.wait(self._interval):
                self._render(idx, time.monotonic() - started)
                idx += 1

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        if self._last_len:
            self._stream.write("\r" + (" " * self._last_len) + "\r")
            self._stream.flush()


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def run_command(
    cmd: Sequence[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
    timeout: Optional[float] = 1800.0,
    stream_output: bool = False,
) -> RunResult:
    """
    외부 명령 실행 공통 유틸.

    - 인자는 리스트로 받고 셸을 거치지 않는다. 값 escape 는 하지 않는다.
    - stream_output=False: stdout/stderr 를 캡처한다. TTY 면 스피너를 보여준다.
    - stream_output=True : stdout/stderr 를 합쳐 실시간으로 터미널에 흘린다.
    - 0 이 아닌 종료 코드는 ExternalCommandFailed 로 올린다.
    """
    printable = redact(cmd)
    logger.info("명령 실행: %s", printable)

    if stream_output:
        return _run_streaming(cmd, printable, cwd=cwd, env=env, input_text=input_text, timeout=timeout)

    indicator: Optional[_IdleProgress] = None
    if _progress_enabled() and _is_tty(sys.stderr):
        indicator = _IdleProgress(printable)
        indicator.start()

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            capture_output=True,
            text=True,
            input=input_text,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        raise CommandNotFound(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise ExternalCommandFailed(
            cmd,
            None,
            message=f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {printable}",
        ) from e
    finally:
        if indicator is not None:
            indicator.stop()

    stdout = result.stdout or ""
    stderr = result.stderr or ""
    if stdout:
        logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=_DETAIL_WIDTH))
    if stderr:
        logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=_DETAIL_WIDTH))

    if result.returncode != 0:
        detail = stderr.strip() or stdout.strip()
        raise ExternalCommandFailed(
            cmd,
            result.returncode,
            stderr=shorten(detail, width=_DETAIL_WIDTH) if detail else "",
            message=_failure_message(printable, result.returncode, detail),
        )

    return RunResult(returncode=result.returncode, stdout=stdout, stderr=stderr)


def _failure_message(printable: str, returncode: Optional[int], detail: str) -> str:
    message = f"명령 실행 실패: {printable} (exit={returncode})"
    if detail:
        message += "\nstderr:\n" + shorten(detail, width=_DETAIL_WIDTH)
    return message


def _run_streaming(
    cmd: Sequence[str],
    printable: str,
    *,
    cwd: Optional[str],
    env: Optional[Mapping[str, str]],
    input_text: Optional[str],
    timeout: Optional[float],
) -> RunResult:
    # docker/terraform 은 진행 로그를 stderr 로도 내보내므로 STDOUT 으로 합친다.
    try:
        proc = subprocess.Popen(  # noqa: S603
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=subprocess.PIPE if input_text is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError as e:
        raise CommandNotFound(cmd) from e

    if input_text is not None:
        assert proc.stdin is not None
        proc.stdin.write(input_text)
        proc.stdin.close()

    out_lines: list[str] = []

    def _reader() -> None:
        assert proc.stdout is not None
        for line in proc.stdout:
            out_lines.append(line)
            sys.stdout.write(line)
            sys.stdout.flush()

    reader_thread = threading.Thread(target=_reader, daemon=True)
    reader_thread.start()

    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        raise ExternalCommandFailed(
            cmd,
            None,
            message=f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {printable}",
        ) from e
    finally:
        reader_thread.join(timeout=1.0)
        if proc.stdout is not None:
            proc.stdout.close()

    combined = "".join(out_lines)
    if returncode != 0:
        detail = combined.strip()
        raise ExternalCommandFailed(
            cmd,
            returncode,
            stderr=shorten(detail, width=_DETAIL_WIDTH) if detail else "",
            message=_failure_message(printable, returncode, detail),
        )

    return RunResult(returncode=returncode, stdout=combined, stderr="")
