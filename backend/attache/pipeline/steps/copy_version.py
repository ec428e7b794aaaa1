"""
CopyStep — copy a stored version to the location of another FileState.

The source location is resolved by the steps that run before this one.  The
destination location is resolved here, by running the same placement steps
against the destination state, and the backend copy uses the destination's
storage options.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from attache.core.constants import Stage
from attache.core.logging import get_logger
from attache.pipeline.errors import StageError
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.steps.resolve_storage import FilenameStep, StorageDirStep, StorageOptsStep
from attache.pipeline.steps.save_version import numbered_filename, stored_filenames, with_output_count
from attache.pipeline.version_state import VersionState
from attache.storage import get_storage

logger = get_logger(__name__)


class CopyStep(PipelineStep):
    """Copy one version and return the destination's VersionState."""

    name = Stage.STORAGE
    description = "Copy version to destination"

    def __init__(self, to_state: FileState) -> None:
        self.to_state = to_state
        self.placement_steps = [StorageDirStep(), FilenameStep(), StorageOptsStep()]

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        destination = self.to_state.versions.get(version)
        if destination is None:
            raise StageError(f"Destination has no version {version!r}", stage=self.name)

        for step in self.placement_steps:
            destination = await step.run(self.to_state, version, destination)

        storage = get_storage(state.options.storage)
        filenames = stored_filenames(version_state)
        for index, filename in enumerate(filenames):
            to_filename = numbered_filename(destination.filename, index)
            await asyncio.to_thread(
                storage.copy,
                version_state.storage_dir,
                filename,
                destination.storage_dir,
                to_filename,
                destination.storage_opts,
            )
            logger.debug(
                "Version copied",
                version=version,
                source=f"{version_state.storage_dir}/{filename}",
                destination=f"{destination.storage_dir}/{to_filename}",
            )

        return with_output_count(replace(destination, temp_path=None), len(filenames))
