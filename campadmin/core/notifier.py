from __future__ import annotations

import logging
from typing import Protocol


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier for server-side controllers: toasts become log lines."""

    def __init__(self, name: str = "campadmin.toast") -> None:
        self._logger = logging.getLogger(name)

    def success(self, message: str) -> None:
        self._logger.info("%s", message)

    def error(self, message: str) -> None:
        self._logger.warning("%s", message)

