"""Forwarding of operation messages to an optional caller-supplied log."""

from __future__ import annotations

import logging
from typing import Any, Protocol


class OperationLog(Protocol):
    """Anything with ``info``/``warning``/``error`` methods, e.g. a ``logging.Logger``."""

    def info(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> Any: ...


class Reporter:
    """
    Send each message to the module logger and, when given, the caller's log.

    The caller's log is optional and untrusted: a missing method or a method
    that raises never interrupts the operation being reported on.
    """

    def __init__(self, logger: logging.Logger, log: OperationLog | None = None) -> None:
        self._logger = logger
        self._log = log

    @property
    def caller_log(self) -> OperationLog | None:
        return self._log

    def _forward(self, level: str, message: str) -> None:
        if self._log is None or self._log is self._logger:
            return
        method = getattr(self._log, level, None)
        if method is None and level == "warning":
            method = getattr(self._log, "warn", None)
        if not callable(method):
            return
        try:
            method(message)
        except Exception as exc:  # noqa: BLE001 - caller log must not break operations
            self._logger.debug(f"Caller log failed on {level}: {exc}")

    def info(self, message: str) -> None:
        self._logger.info(message)
        self._forward("info", message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)
        self._forward("warning", message)

    def error(self, message: str) -> None:
        self._logger.error(message)
        self._forward("error", message)
