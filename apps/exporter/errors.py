"""Exceptions raised by the export pipeline.

Fatal errors abort the run and reach the caller. Key-scoped errors are
handled inside the worker pool and only ever show up in the logs.
"""


class ExportError(Exception):
    """Base exception for the exporter."""


class SinkError(ExportError):
    """Raised when the output cannot be opened or written."""


class EnumerationError(ExportError):
    """Raised when a key scan page cannot be fetched."""

    def __init__(self, cursor: int, cause: BaseException) -> None:
        self.cursor = cursor
        self.cause = cause
        super().__init__(f"key enumeration failed at cursor {cursor}: {cause}")


class StoreConnectionError(ExportError):
    """Raised when the store cannot be reached before the export starts."""


class ExportCancelled(ExportError):
    """Raised when a run stops because cancellation was requested."""

    def __init__(self, reason: str = "cancelled") -> None:
        self.reason = reason
        super().__init__(f"export cancelled: {reason}")


class UnsupportedKeyTypeError(ExportError):
    """Raised for a key whose type has no value fetcher."""

    def __init__(self, key_type: str) -> None:
        self.key_type = key_type
        super().__init__(f"unsupported key type: {key_type}")


class KeyResolutionError(ExportError):
    """Raised when one key cannot be resolved; never aborts the run."""

    def __init__(self, key: str, step: str, cause: BaseException) -> None:
        self.key = key
        self.step = step
        self.cause = cause
        super().__init__(f"failed to get {step} for key {key}: {cause}")
