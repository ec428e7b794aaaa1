"""
ResolveTransformStep / TransformStep — produce a version's file content.

ResolveTransformStep asks the uploader for the version's transform
instruction; TransformStep executes it against the source file.  A None
instruction skips the transform and the source file is stored as-is.
"""

from __future__ import annotations

from dataclasses import replace

from attache.core.constants import Stage
from attache.core.logging import get_logger
from attache.pipeline.errors import TransformError
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.transform import perform_transform, resolve_instruction
from attache.pipeline.version_state import VersionState

logger = get_logger(__name__)


class ResolveTransformStep(PipelineStep):
    """Resolve the transform instruction of a version."""

    name = Stage.TRANSFORM
    description = "Resolve transform instruction"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        uploader = self._uploader(state)
        instruction = resolve_instruction(await self._call(uploader.transform, state, version))
        return replace(version_state, transform=instruction)


class TransformStep(PipelineStep):
    """Run the resolved instruction and record the output path(s)."""

    name = Stage.TRANSFORM
    description = "Transform source file"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        if version_state.transform is None:
            return version_state

        if not state.source_path:
            raise TransformError("No source file to transform")

        output = await perform_transform(
            version_state.transform,
            state.source_path,
            state.extension,
        )
        logger.debug("Version transformed", version=version, output=output)
        return replace(version_state, temp_path=output)
