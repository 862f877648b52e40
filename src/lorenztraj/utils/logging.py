from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

LOG_FORMAT = "[%(command)s%(run)s] %(levelname)s: %(message)s"

_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

# CLI command and ensemble/sweep member currently being integrated
_current_command: ContextVar[str] = ContextVar("lorenztraj_command", default="lorenztraj")
_current_run: ContextVar[Optional[str]] = ContextVar("lorenztraj_run", default=None)


class RunContextFilter(logging.Filter):
    """Stamp records with the active command and, inside a run, its label."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.command = getattr(record, "command", None) or _current_command.get()
        run = _current_run.get()
        record.run = f":{run}" if run else ""
        return True


def setup_logging(level: str = "WARNING") -> None:
    """Attach one stderr handler to the root logger and set its level by name."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RunContextFilter())
        root.addHandler(handler)
    root.setLevel(_LEVELS.get(level.lower(), logging.WARNING))


def set_command_context(command: str) -> None:
    _current_command.set(command)


@contextmanager
def run_context(label: str) -> Iterator[None]:
    """Tag log records emitted while integrating one trajectory of a batch."""
    token = _current_run.set(label)
    try:
        yield
    finally:
        _current_run.reset(token)


def resolve_log_level(verbose: bool, debug: bool) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return "WARNING"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name if name is not None else __name__)
