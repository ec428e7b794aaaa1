"""Shared constants and enums used across the library."""

from enum import StrEnum


# The canonical version id: the uploaded file, stored unchanged by default.
ORIGINAL = "original"


class OperationStatus(StrEnum):
    """Overall status of a store/delete/copy/regenerate operation."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"


class Stage(StrEnum):
    """Stage names recorded alongside per-version errors."""

    PREPROCESS = "preprocess"
    TRANSFORM = "transform"
    POSTPROCESS = "postprocess"
    STORAGE_DIR = "storage_dir"
    FILENAME = "filename"
    STORAGE_OPTS = "storage_opts"
    STORAGE = "storage"
    PROCESSING = "processing"


class SaveFormat(StrEnum):
    """Shapes a FileState can be serialized into."""

    FILENAME = "filename"
    MAP = "map"
    JSON = "json"


# Reason recorded when a version's unit of work is cancelled at the deadline.
TIMEOUT_REASON = "timeout"


# Version assign holding the number of files a multi-output version occupies.
OUTPUTS_ASSIGN = "outputs"
