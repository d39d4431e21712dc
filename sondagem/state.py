from __future__ import annotations

import threading

from .types import ExportStatus


class ExportBusyError(RuntimeError):
    pass


class ExportGate:
    """Single-slot export state: idle -> exporting -> (idle | failed).

    ``start`` is only available from ``idle``; a failed export keeps its
    user-facing message until ``dismiss`` is called.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._status = ExportStatus.idle
        self._message: str | None = None

    @property
    def status(self) -> ExportStatus:
        return self._status

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def can_start(self) -> bool:
        return self._status == ExportStatus.idle

    def begin(self) -> None:
        with self._lock:
            if self._status != ExportStatus.idle:
                raise ExportBusyError(f'Export not available while {self._status.value}')
            self._status = ExportStatus.exporting
            self._message = None

    def finish(self) -> None:
        with self._lock:
            if self._status == ExportStatus.exporting:
                self._status = ExportStatus.idle

    def fail(self, message: str) -> None:
        with self._lock:
            self._status = ExportStatus.failed
            self._message = message

    def dismiss(self) -> None:
        with self._lock:
            if self._status == ExportStatus.failed:
                self._status = ExportStatus.idle
                self._message = None
