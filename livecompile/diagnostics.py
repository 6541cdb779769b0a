"""Diagnostic collection and routing to log channels."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import Protocol

from .models import Diagnostic

logger = logging.getLogger(__name__)


class DiagnosticListener(Protocol):
    """Anything that accepts diagnostics from a backend."""

    def report(self, diagnostic: Diagnostic) -> None: ...


class LoggingDiagnosticListener:
    """Route diagnostics to a logger by severity.

    Errors always go to ``logger.error``. Warnings, notes and other messages
    go to ``logger.debug`` and only when verbose: either forced through
    ``verbose`` or because the logger is enabled for DEBUG.
    """

    def __init__(self, logger: logging.Logger | None = None, verbose: bool | None = None) -> None:
        self._logger = logger or logging.getLogger("livecompile.diagnostics")
        self._verbose = verbose

    @property
    def verbose(self) -> bool:
        if self._verbose is not None:
            return self._verbose
        return self._logger.isEnabledFor(logging.DEBUG)

    def report(self, diagnostic: Diagnostic) -> None:
        if diagnostic.is_error:
            self._logger.error(str(diagnostic))
        elif self.verbose:
            # forced verbosity must surface even when the logger sits above DEBUG
            level = logging.DEBUG if self._logger.isEnabledFor(logging.DEBUG) else logging.INFO
            self._logger.log(level, f"{diagnostic.kind.upper()} {diagnostic}")


class DiagnosticCollector:
    """Collects every diagnostic of one compile invocation.

    Each report is also forwarded to the listeners given at construction. A
    failing listener is logged and skipped; it never fails the compile.
    """

    def __init__(self, *listeners: DiagnosticListener) -> None:
        self._diagnostics: list[Diagnostic] = []
        self._listeners = list(listeners)
        self._lock = threading.Lock()

    def report(self, diagnostic: Diagnostic) -> None:
        with self._lock:
            self._diagnostics.append(diagnostic)
        for listener in self._listeners:
            try:
                listener.report(diagnostic)
            except Exception:
                logger.exception(f"Diagnostic listener {listener!r} failed")

    @property
    def diagnostics(self) -> list[Diagnostic]:
        with self._lock:
            return list(self._diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.diagnostics)

    def __len__(self) -> int:
        with self._lock:
            return len(self._diagnostics)
