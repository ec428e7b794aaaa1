"""
Flows — the ordered step sequence every operation runs per version.

The full store flow::

    resolve transform → transform → postprocess →
    storage_dir → filename → storage_opts → save

Every other operation reuses the placement steps (storage_dir, filename,
storage_opts) and swaps the final storage step.

To add a new operation:
    1. Write its final step in steps/
    2. Register a flow builder in FLOW_REGISTRY below
    3. Run it through Processor.run_flow()
"""

from __future__ import annotations

from typing import Any, Callable

from attache.core.logging import get_logger
from attache.pipeline.errors import OptionsError
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep

# ─── Import all steps ─────────────────────────────────
from attache.pipeline.steps.copy_version import CopyStep
from attache.pipeline.steps.delete_version import DeleteStep
from attache.pipeline.steps.postprocess import PostprocessStep
from attache.pipeline.steps.resolve_storage import FilenameStep, StorageDirStep, StorageOptsStep
from attache.pipeline.steps.retrieve_version import RetrieveStep
from attache.pipeline.steps.save_version import SaveStep
from attache.pipeline.steps.transform_version import ResolveTransformStep, TransformStep

logger = get_logger(__name__)


def _placement_steps() -> list[PipelineStep]:
    """Steps that decide where a version lives; shared by every flow."""
    return [
        StorageDirStep(),
        FilenameStep(),
        StorageOptsStep(),
    ]


def store_flow() -> list[PipelineStep]:
    return [
        ResolveTransformStep(),
        TransformStep(),
        PostprocessStep(),
        *_placement_steps(),
        SaveStep(),
    ]


def delete_flow() -> list[PipelineStep]:
    return [*_placement_steps(), DeleteStep()]


def retrieve_flow(destination: str | None = None) -> list[PipelineStep]:
    return [*_placement_steps(), RetrieveStep(destination)]


def copy_flow(to_state: FileState) -> list[PipelineStep]:
    """Resolve the source location, then copy into ``to_state``'s location."""
    return [*_placement_steps(), CopyStep(to_state)]


# ═══════════════════════════════════════════════════════════
#  Flow Registry
# ═══════════════════════════════════════════════════════════

FLOW_REGISTRY: dict[str, Callable[..., list[PipelineStep]]] = {
    "store": store_flow,
    "delete": delete_flow,
    "retrieve": retrieve_flow,
    "copy": copy_flow,
}


class FlowResolver:
    """Resolves an operation name to its ordered list of pipeline steps."""

    def __init__(self, registry: dict[str, Callable[..., list[PipelineStep]]] | None = None) -> None:
        self.registry = registry or FLOW_REGISTRY

    def resolve(self, operation: str, **kwargs: Any) -> list[PipelineStep]:
        """
        Return the ordered step list for ``operation``.

        Args:
            operation: Registered flow name ("store", "delete", ...).
            **kwargs: Passed to the flow builder (e.g. ``to_state`` for copy).

        Raises:
            OptionsError: If no flow is registered under that name.
        """
        builder = self.registry.get(operation)
        if builder is None:
            raise OptionsError(
                f"No flow registered for operation '{operation}'",
                details={"available": self.list_available_flows()},
            )
        steps = builder(**kwargs)
        logger.debug("Flow resolved", operation=operation, steps=[step.name for step in steps])
        return steps

    def list_available_flows(self) -> list[str]:
        """Return all registered flow keys."""
        return list(self.registry.keys())
