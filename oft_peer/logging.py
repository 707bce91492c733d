"""Console logging for the peer reader.

Logs go to stderr through a rich handler so ``--json`` output on stdout stays
machine readable.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict

from rich.console import Console
from rich.logging import RichHandler


class SimpleLogger:
    """Very small wrapper around :mod:`logging` used across the package."""

    def __init__(self, name: str = "oft_peer") -> None:
        self._logger = logging.getLogger(name)
        self._logger.propagate = False
        if not self._logger.handlers:
            handler = RichHandler(
                console=Console(stderr=True),
                show_path=False,
                log_time_format="%Y-%m-%d %H:%M:%S",
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)
        self._timers: Dict[str, datetime] = {}
        self.configure(_env_level())

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def configure(self, level: int = logging.INFO) -> None:
        self._logger.setLevel(level)

    @property
    def level(self) -> int:
        return self._logger.level

    # ------------------------------------------------------------------
    # Basic logging methods
    # ------------------------------------------------------------------
    def debug(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.debug(self._format(msg, source, payload))

    def info(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.info(self._format(msg, source, payload))

    def warning(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.warning(self._format(msg, source, payload))

    def error(self, msg: str, source: str | None = None, payload: Any | None = None, **_: Any) -> None:
        self._logger.error(self._format(msg, source, payload))

    def exception(self, exc: BaseException, msg: str = "", source: str | None = None) -> None:
        text = f"{msg}: {exc!r}" if msg else repr(exc)
        self._logger.error(self._format(text, source), exc_info=exc if self.level <= logging.DEBUG else None)

    # ------------------------------------------------------------------
    # Timer helpers
    # ------------------------------------------------------------------
    def start_timer(self, name: str) -> None:
        self._timers[name] = datetime.now()

    def end_timer(self, name: str, source: str | None = None) -> None:
        start = self._timers.pop(name, None)
        if start:
            elapsed = datetime.now() - start
            self._logger.debug(self._format(f"{name} completed in {elapsed}", source))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _format(self, msg: str, source: str | None, payload: Any | None = None) -> str:
        base = f"[{source}] {msg}" if source else msg
        if payload is not None:
            base = f"{base} {payload}"
        return base


def _env_level() -> int:
    name = os.getenv("LOG_LEVEL", "WARNING").strip().upper()
    return logging.getLevelName(name) if isinstance(logging.getLevelName(name), int) else logging.WARNING


# Public API ---------------------------------------------------------------
log = SimpleLogger()


def configure_console_log(debug: bool = False) -> None:
    """Configure the console logger; ``debug`` wins over ``LOG_LEVEL``."""
    level = logging.DEBUG if debug else _env_level()
    log.configure(level)


__all__ = ["log", "configure_console_log", "SimpleLogger"]
