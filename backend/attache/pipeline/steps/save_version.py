"""
SaveStep — persist a version through the storage backend.

Multi-output transforms are stored under the resolved filename for the
first file and ``<root>-<n><ext>`` for every following one::

    thumbnail.jpg, thumbnail-1.jpg, thumbnail-2.jpg

The number of files is recorded in the version assigns under
``"outputs"`` so that delete and copy can address every file later, even
for a state restored from persisted data.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import replace

from attache.core.constants import OUTPUTS_ASSIGN, Stage
from attache.core.logging import get_logger
from attache.pipeline.errors import StorageError
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.version_state import VersionState
from attache.storage import get_storage

logger = get_logger(__name__)


def numbered_filename(filename: str, index: int) -> str:
    """The name of the ``index``-th output file of a version (0 = filename)."""
    if index == 0:
        return filename
    root, extension = os.path.splitext(filename)
    return f"{root}-{index}{extension}"


def output_count(version_state: VersionState) -> int:
    """Number of stored files: the transform outputs, else the persisted count."""
    if version_state.temp_paths:
        return len(version_state.temp_paths)
    try:
        return max(int(version_state.assigns.get(OUTPUTS_ASSIGN, 1)), 1)
    except (TypeError, ValueError):
        return 1


def with_output_count(version_state: VersionState, count: int) -> VersionState:
    """Record ``count`` in the assigns when a version spans several files."""
    if count > 1:
        return version_state.assign(OUTPUTS_ASSIGN, count)
    if OUTPUTS_ASSIGN in version_state.assigns:
        assigns = {key: value for key, value in version_state.assigns.items() if key != OUTPUTS_ASSIGN}
        return replace(version_state, assigns=assigns)
    return version_state


def stored_filenames(version_state: VersionState) -> list[str]:
    """Every file name a version occupies in storage."""
    return [numbered_filename(version_state.filename, index) for index in range(output_count(version_state))]


class SaveStep(PipelineStep):
    """Save the transformed file(s), or the source file, to storage."""

    name = Stage.STORAGE
    description = "Save version to storage"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        storage = get_storage(state.options.storage)
        paths = version_state.temp_paths or [state.source_path]
        if not paths[0]:
            raise StorageError("No file to save", operation="save")

        for index, path in enumerate(paths):
            filename = numbered_filename(version_state.filename, index)
            await asyncio.to_thread(
                storage.save,
                version_state.storage_dir,
                filename,
                path,
                version_state.storage_opts,
            )
            logger.debug(
                "Version file saved",
                version=version,
                storage=storage.name,
                storage_dir=version_state.storage_dir,
                filename=filename,
            )

        return with_output_count(version_state, len(paths))
