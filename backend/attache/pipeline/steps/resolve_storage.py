"""
StorageDirStep / FilenameStep / StorageOptsStep — decide where a version goes.

Stage methods see the FileState with the version's current VersionState in
place, so annotations set by postprocess can drive the placement.  The same
resolution is used synchronously by URL generation through
resolve_location().
"""

from __future__ import annotations

import inspect
from dataclasses import replace
from typing import Any

from attache.core.constants import Stage
from attache.core.options import merge_values
from attache.pipeline.errors import OptionsError
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.version_state import VersionState


def merged_storage_opts(state: FileState, version_opts: dict[str, Any] | None) -> dict[str, Any]:
    """Version-level keys win over the operation's base storage options."""
    return merge_values(dict(state.options.storage_opts), dict(version_opts or {}))


def _sync_result(value: Any, stage: str) -> Any:
    if inspect.isawaitable(value):
        if inspect.iscoroutine(value):
            value.close()
        raise OptionsError(f"{stage} must be synchronous to build URLs", stage=stage)
    return value


def resolve_location(state: FileState, version: str) -> VersionState:
    """Resolve storage_dir, filename and storage_opts without running a pipeline."""
    uploader = state.uploader
    storage_dir = _sync_result(uploader.storage_dir(state, version), Stage.STORAGE_DIR)
    filename = _sync_result(uploader.filename(state, version), Stage.FILENAME)
    version_opts = _sync_result(uploader.storage_opts(state, version), Stage.STORAGE_OPTS)
    return replace(
        state.versions[version],
        storage_dir=str(storage_dir or ""),
        filename=str(filename),
        storage_opts=merged_storage_opts(state, version_opts),
    )


class StorageDirStep(PipelineStep):
    """Resolve the storage directory of a version."""

    name = Stage.STORAGE_DIR
    description = "Resolve storage directory"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        uploader = self._uploader(state)
        view = state.with_version(version, version_state)
        storage_dir = await self._call(uploader.storage_dir, view, version)
        return replace(version_state, storage_dir=str(storage_dir or ""))


class FilenameStep(PipelineStep):
    """Resolve the stored file name of a version."""

    name = Stage.FILENAME
    description = "Resolve filename"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        uploader = self._uploader(state)
        view = state.with_version(version, version_state)
        filename = await self._call(uploader.filename, view, version)
        return replace(version_state, filename=str(filename))


class StorageOptsStep(PipelineStep):
    """Resolve the backend options of a version."""

    name = Stage.STORAGE_OPTS
    description = "Resolve storage options"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        uploader = self._uploader(state)
        view = state.with_version(version, version_state)
        version_opts = await self._call(uploader.storage_opts, view, version)
        return replace(version_state, storage_opts=merged_storage_opts(state, version_opts))
