"""
lsqadjust.diagnostics

Sinks for non-fatal numerical diagnostics (currently: ill-conditioning).

Solvers never raise on a large condition number. They hand a message to a
sink and return their result. The default sink forwards to `warnings`, so
the usual warning filters apply; pass a `RecordingSink` to capture
diagnostics or a `NullSink` to silence them.
"""
from __future__ import annotations

import logging
import threading
import warnings
from dataclasses import dataclass
from typing import Optional, Protocol

from lsqadjust.exceptions import IllConditionedWarning


@dataclass(frozen=True)
class Diagnostic:
    message: str
    condition_number: float


class DiagnosticSink(Protocol):
    """Receiver for non-fatal solver diagnostics."""

    def warn(self, message: str, *, condition_number: float) -> None:
        ...


class WarningsSink:
    """Emit diagnostics as `IllConditionedWarning` through `warnings.warn`."""

    def __init__(self, stacklevel: int = 4) -> None:
        self.stacklevel = stacklevel

    def warn(self, message: str, *, condition_number: float) -> None:
        warnings.warn(message, IllConditionedWarning, stacklevel=self.stacklevel)


class LoggingSink:
    """Emit diagnostics as WARNING records on a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger if logger is not None else logging.getLogger("lsqadjust")

    def warn(self, message: str, *, condition_number: float) -> None:
        self.logger.warning(message, extra={"condition_number": condition_number})


class RecordingSink:
    """Keep diagnostics in memory. Safe to share between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[Diagnostic] = []

    def warn(self, message: str, *, condition_number: float) -> None:
        with self._lock:
            self._records.append(Diagnostic(message, float(condition_number)))

    @property
    def records(self) -> list[Diagnostic]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class NullSink:
    def warn(self, message: str, *, condition_number: float) -> None:
        return None


def resolve_sink(sink: Optional[DiagnosticSink]) -> DiagnosticSink:
    return WarningsSink() if sink is None else sink
