"""
attache — file attachments with versions, transforms and pluggable storage.

Usage::

    from attache import Uploader

    class PhotoUploader(Uploader):
        options = {"versions": ["original", "thumb"], "storage_opts": {"path": "/srv/uploads"}}

    state = await PhotoUploader().store("/tmp/coffee.jpg")
"""

from attache.core.constants import ORIGINAL, OperationStatus
from attache.core.options import Options
from attache.pipeline.errors import (
    AttacheError,
    NotRegeneratableError,
    OptionsError,
    PostprocessError,
    ProcessingTimeoutError,
    SerializationError,
    SourceError,
    StageError,
    StorageError,
    TransformError,
    UnknownVersionError,
    ValidationError,
)
from attache.pipeline.state import FileState
from attache.pipeline.transform import Command
from attache.pipeline.version_state import VersionState
from attache.uploader import Uploader

__all__ = [
    "ORIGINAL",
    "AttacheError",
    "Command",
    "FileState",
    "NotRegeneratableError",
    "OperationStatus",
    "Options",
    "OptionsError",
    "PostprocessError",
    "ProcessingTimeoutError",
    "SerializationError",
    "SourceError",
    "StageError",
    "StorageError",
    "TransformError",
    "UnknownVersionError",
    "Uploader",
    "ValidationError",
    "VersionState",
]
