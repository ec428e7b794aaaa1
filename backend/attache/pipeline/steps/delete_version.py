"""DeleteStep — remove a version's file(s) from storage."""

from __future__ import annotations

import asyncio

from attache.core.constants import Stage
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.steps.save_version import stored_filenames
from attache.pipeline.version_state import VersionState
from attache.storage import get_storage


class DeleteStep(PipelineStep):
    """Delete a version.  Objects that are already gone count as deleted."""

    name = Stage.STORAGE
    description = "Delete version from storage"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        storage = get_storage(state.options.storage)
        for filename in stored_filenames(version_state):
            await asyncio.to_thread(
                storage.delete,
                version_state.storage_dir,
                filename,
                version_state.storage_opts,
            )
        return version_state
