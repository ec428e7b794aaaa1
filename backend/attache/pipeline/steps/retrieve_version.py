"""RetrieveStep — fetch a stored version into a local file."""

from __future__ import annotations

import asyncio
import os
from dataclasses import replace

from attache.core.constants import Stage
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.transform import create_temp_file
from attache.pipeline.version_state import VersionState
from attache.storage import get_storage


class RetrieveStep(PipelineStep):
    """
    Download a version to ``destination``.

    Without a destination a temp file carrying the stored file's extension
    is allocated.  The local path is returned in ``temp_path``.
    """

    name = Stage.STORAGE
    description = "Retrieve version from storage"

    def __init__(self, destination: str | None = None) -> None:
        self.destination = destination

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        storage = get_storage(state.options.storage)
        destination = self.destination
        if destination is None:
            destination = create_temp_file(os.path.splitext(version_state.filename)[1])

        try:
            await asyncio.to_thread(
                storage.retrieve,
                version_state.storage_dir,
                version_state.filename,
                destination,
                version_state.storage_opts,
            )
        except BaseException:
            if self.destination is None and os.path.isfile(destination):
                os.remove(destination)
            raise

        return replace(version_state, temp_path=destination)
