"""PostprocessStep — let the host derive metadata from the transformed file."""

from __future__ import annotations

from attache.core.constants import Stage
from attache.pipeline.errors import PostprocessError, unwrap_result
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.version_state import VersionState


class PostprocessStep(PipelineStep):
    """
    Call ``uploader.postprocess(version_state, version, state)``.

    The result is a VersionState, ``("ok", version_state)`` or
    ``("error", reason)``.

    Runs after the transform and before any naming decision, so hashes or
    sizes stored in the version's assigns can drive storage_dir/filename.
    """

    name = Stage.POSTPROCESS
    description = "Post-process transformed file"

    async def execute(
        self,
        state: FileState,
        version: str,
        version_state: VersionState,
    ) -> VersionState:
        uploader = self._uploader(state)
        result = await self._call(
            uploader.postprocess, version_state, version, state, in_thread=True
        )
        result = unwrap_result(result, PostprocessError)
        if not isinstance(result, VersionState):
            raise PostprocessError(f"postprocess must return a VersionState, got {result!r}")
        return result
