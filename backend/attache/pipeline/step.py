"""
PipelineStep — abstract base class for all version stages.

Every stage a version goes through (resolve transform, transform,
postprocess, storage placement, save/delete/copy/retrieve) inherits from
this class.  The processor calls run(), which turns any failure into a
StageError tagged with the step's name, so a failing version simply
contributes an entry to ``FileState.errors``.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable

from attache.core.logging import get_logger
from attache.pipeline.errors import StageError, StorageError
from attache.pipeline.state import FileState
from attache.pipeline.version_state import VersionState

if TYPE_CHECKING:
    from attache.uploader import Uploader

logger = get_logger(__name__)


class PipelineStep(ABC):
    """
    Base class for every version stage.

    Subclasses MUST implement:
        - name (str)          — the stage name recorded with errors
        - description (str)   — human-readable label for logs
        - execute(...)        — the stage logic, returning a new VersionState

    Steps never mutate the FileState or the incoming VersionState; they
    return a new VersionState built with ``dataclasses.replace``.
    """

    name: str = "unnamed_step"
    description: str = "No description"

    @abstractmethod
    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        """
        Run the stage for one version.

        Raise a StageError subclass on failure.
        """
        ...

    async def run(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        """Execute the stage, normalising every failure into a StageError."""
        try:
            return await self.execute(state, version, version_state)
        except StageError as exc:
            exc.version = version
            raise
        except StorageError as exc:
            raise StageError(str(exc), stage=exc.stage or self.name, version=version) from exc
        except Exception as exc:
            logger.exception(
                "Unexpected error in step",
                step_name=self.name,
                version=version,
                error=str(exc),
            )
            raise StageError(str(exc), stage=self.name, version=version) from exc

    # ─── Helpers available to all steps ────────────────

    def _uploader(self, state: FileState) -> Uploader:
        if state.uploader is None:
            raise StageError("FileState has no uploader", stage=self.name)
        return state.uploader

    async def _call(self, func: Callable[..., Any], *args: Any, in_thread: bool = False) -> Any:
        """Call a host override, awaiting it when it is a coroutine function."""
        if inspect.iscoroutinefunction(func):
            return await func(*args)
        if in_thread:
            return await asyncio.to_thread(func, *args)
        return func(*args)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
