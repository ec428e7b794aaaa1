"""
Exception hierarchy for the attachment engine.

All exceptions inherit from AttacheError so callers can catch broadly or
narrowly as needed.  Each exception carries structured context (version,
stage, details) for logging/debugging.

Per-version failures (StageError and StorageError raised while a version is
being processed) never escape the processor: they are recorded as
``(stage, reason)`` pairs in ``FileState.errors``.
"""

from __future__ import annotations

from typing import Any


class AttacheError(Exception):
    """Base exception for all attachment errors."""

    def __init__(
        self,
        message: str,
        *,
        version: str | None = None,
        stage: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.version = version
        self.stage = stage
        self.details = details or {}
        super().__init__(message)


class ValidationError(AttacheError):
    """Pre-processing rejected the file; no version work was started."""
    pass


class StageError(AttacheError):
    """A version failed in one of its pipeline stages."""

    def __init__(self, reason: Any, *, stage: str = "processing", **kwargs) -> None:
        self.reason = reason
        super().__init__(str(reason), stage=stage, **kwargs)


class TransformError(StageError):
    """A version's conversion failed."""

    def __init__(self, reason: Any, **kwargs) -> None:
        kwargs.setdefault("stage", "transform")
        super().__init__(reason, **kwargs)


class PostprocessError(StageError):
    """A version's post-transform step failed."""

    def __init__(self, reason: Any, **kwargs) -> None:
        kwargs.setdefault("stage", "postprocess")
        super().__init__(reason, **kwargs)


class StorageError(AttacheError):
    """A storage backend operation (save/delete/copy/retrieve) failed."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        path: str | None = None,
        **kwargs,
    ) -> None:
        self.operation = operation
        self.path = path
        kwargs.setdefault("stage", "storage")
        super().__init__(message, **kwargs)


class ProcessingTimeoutError(AttacheError):
    """A sequential run exceeded its overall timeout and was cancelled."""
    pass


class SerializationError(AttacheError):
    """A FileState could not be saved in the requested shape."""
    pass


class NotRegeneratableError(AttacheError):
    """The requested version cannot be regenerated (the original)."""
    pass


class UnknownVersionError(AttacheError):
    """A version id that is not part of the configured versions."""
    pass


class OptionsError(AttacheError):
    """Invalid options, e.g. an unknown storage backend."""
    pass


class SourceError(AttacheError):
    """The input file could not be read, downloaded or decoded."""
    pass


def unwrap_result(result: Any, error_class: type[StageError]) -> Any:
    """
    Accept a stage result either bare or tagged.

    ``("ok", value)`` yields ``value``; ``("error", reason)`` raises
    ``error_class(reason)``.  Anything else is returned unchanged.
    """
    if isinstance(result, tuple) and len(result) == 2 and result[0] in ("ok", "error"):
        tag, value = result
        if tag == "error":
            raise error_class(value)
        return value
    return result
