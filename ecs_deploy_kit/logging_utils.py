import logging
import sys
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(verbosity: int = 0, stream: Optional[object] = None) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=stream if stream is not None else sys.stdout,
        force=True,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:0.3f}s"
    minutes = int(seconds // 60)
    sec = seconds - minutes * 60
    return f"{minutes}m{sec:06.3f}s"
