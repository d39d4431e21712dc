from __future__ import annotations


class ExportError(RuntimeError):
    pass


class StagingFailure(ExportError):
    pass


class CaptureFailure(ExportError):
    pass


class ExportFailed(ExportError):
    """The single user-facing failure; the original cause is chained."""
