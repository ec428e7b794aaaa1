"""
Pipeline — the orchestration engine of attachment operations.

Every version of a file runs through an ordered flow of steps; the
Processor decides whether versions run concurrently or one stage at a time
and folds their outcomes into one FileState.

Only the data model and errors are exported here; import the processor
from ``attache.pipeline.processor``.
"""

from attache.pipeline.errors import AttacheError, StageError, StorageError
from attache.pipeline.state import FileState
from attache.pipeline.version_state import VersionState

__all__ = ["AttacheError", "FileState", "StageError", "StorageError", "VersionState"]
