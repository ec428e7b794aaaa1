"""
Processor — the orchestrator that drives every version through its flow.

Responsibilities:
    - Run pre-processing once per store
    - Resolve the step sequence via FlowResolver
    - Run each version's steps, concurrently or one stage at a time
    - Enforce the timeout, cancelling (and killing) unfinished work
    - Fold per-version results and errors back into one FileState

Concurrent mode (the default) gives every version its own task; a version
still running when the timeout elapses is cancelled and recorded as
``("processing", "timeout")`` while its siblings keep their results.

Sequential mode runs each stage for all versions before moving on to the
next stage, in configured version order.  The whole run shares one
timeout; exceeding it raises ProcessingTimeoutError.
"""

from __future__ import annotations

import asyncio
import inspect
import os
import time
from dataclasses import replace
from typing import Any, Union

import structlog

from attache.core.constants import ORIGINAL, TIMEOUT_REASON, Stage
from attache.pipeline.errors import (
    NotRegeneratableError,
    ProcessingTimeoutError,
    StageError,
    StorageError,
    UnknownVersionError,
    ValidationError,
)
from attache.pipeline.flows import FlowResolver
from attache.pipeline.state import FileState
from attache.pipeline.step import PipelineStep
from attache.pipeline.steps.resolve_storage import resolve_location
from attache.pipeline.version_state import VersionState
from attache.storage import get_storage

Outcome = Union[VersionState, StageError]


def discard_outputs(version_state: VersionState, keep: list[str | None]) -> None:
    """Remove the temp files of an abandoned VersionState, sparing ``keep``."""
    for path in version_state.temp_paths:
        if path in keep or not os.path.isfile(path):
            continue
        try:
            os.remove(path)
        except OSError:
            pass


class Processor:
    """
    Runs flows of PipelineStep objects for the versions of a FileState.

    Usage::

        processor = Processor()
        state = await processor.store(state)
        if not state.ok:
            print(state.errors)
    """

    def __init__(self, flow_resolver: FlowResolver | None = None) -> None:
        self.flow_resolver = flow_resolver or FlowResolver()
        self.logger = structlog.get_logger("attache.processor")

    # ─── Operations ────────────────────────────────────

    async def store(self, state: FileState) -> FileState:
        """
        Pre-process the file once, then transform and save every version.

        Raises:
            ValidationError: If pre-processing rejects the file.
            ProcessingTimeoutError: If a sequential run times out.
        """
        log = self._bind("store", state)
        started = time.monotonic()
        log.info("Operation started", versions=list(state.versions), concurrent=state.options.concurrent)

        try:
            state = await self._preprocess(state)
        except ValidationError as exc:
            log.warning("Pre-processing rejected file", error=str(exc))
            raise

        result = await self.run_flow("store", state, log=log)
        self._finish(log, result, started)
        return result

    async def delete(self, state: FileState) -> FileState:
        """Delete every version from storage."""
        log = self._bind("delete", state)
        started = time.monotonic()
        log.info("Operation started", versions=list(state.versions))
        result = await self.run_flow("delete", state, log=log)
        self._finish(log, result, started)
        return result

    async def copy(self, state: FileState, to_state: FileState) -> FileState:
        """
        Copy every stored version of ``state`` to the location of ``to_state``.

        Returns:
            ``to_state`` with the resolved destination versions and any errors.
        """
        log = self._bind("copy", state).bind(to_filename=to_state.filename)
        started = time.monotonic()
        log.info("Operation started", versions=list(state.versions))
        result = await self.run_flow("copy", state, target=to_state, log=log, to_state=to_state)
        self._finish(log, result, started)
        return result

    async def retrieve(
        self,
        state: FileState,
        version: str = ORIGINAL,
        destination: str | None = None,
    ) -> str:
        """
        Fetch one stored version into a local file and return its path.

        Raises:
            UnknownVersionError: If ``version`` is not configured.
            StorageError: If the backend could not deliver the file.
        """
        self._check_version(state, version)
        log = self._bind("retrieve", state).bind(version=version)
        result = await self.run_flow("retrieve", state, versions=[version], log=log, destination=destination)

        if version in result.errors:
            stage, reason = result.errors[version][-1]
            log.error("Retrieve failed", stage=stage, reason=reason)
            raise StorageError(str(reason), operation="retrieve", version=version, stage=stage)

        path = result.versions[version].temp_path
        log.info("Version retrieved", path=path)
        return path

    async def regenerate(self, state: FileState, versions: list[str]) -> FileState:
        """
        Rebuild ``versions`` from the stored original.

        The original is retrieved into a temp file (tracked in
        ``temp_paths``), then the store flow runs for the requested
        versions only.  Other versions are left as they are.

        Raises:
            NotRegeneratableError: If ``versions`` contains the original.
            UnknownVersionError: If a version is not configured.
        """
        versions = list(versions)
        if ORIGINAL in versions:
            raise NotRegeneratableError(
                "The original version cannot be regenerated",
                version=ORIGINAL,
            )
        for version in versions:
            self._check_version(state, version)

        log = self._bind("regenerate", state)
        started = time.monotonic()
        log.info("Operation started", versions=versions)

        lookup = state
        if ORIGINAL not in state.versions:
            lookup = replace(state, versions={**state.versions, ORIGINAL: VersionState()})
        source_path = await self.retrieve(lookup, ORIGINAL)

        working = replace(state, source_path=source_path, temp_paths=[*state.temp_paths, source_path])
        try:
            result = await self.run_flow("store", working, versions=versions, log=log)
        except BaseException:
            working.cleanup()
            raise
        self._finish(log, result, started)
        return result

    def generate_url(self, state: FileState, version: str = ORIGINAL) -> str:
        """
        Build the URI of one version without touching its content.

        Raises:
            UnknownVersionError: If ``version`` is not configured.
        """
        self._check_version(state, version)
        location = resolve_location(state, version)
        storage = get_storage(state.options.storage)
        return storage.build_uri(location.storage_dir, location.filename, location.storage_opts)

    # ─── Flow execution ────────────────────────────────

    async def run_flow(
        self,
        operation: str,
        state: FileState,
        *,
        versions: list[str] | None = None,
        target: FileState | None = None,
        log: Any = None,
        **flow_kwargs: Any,
    ) -> FileState:
        """
        Run a registered flow for ``versions`` (default: all) and fold the
        outcomes into ``target`` (default: ``state``).
        """
        log = log or self._bind(operation, state)
        steps = self.flow_resolver.resolve(operation, **flow_kwargs)
        versions = list(state.versions) if versions is None else list(versions)

        if state.options.concurrent:
            outcomes = await self._run_concurrent(state, steps, versions, log)
        else:
            outcomes = await self._run_sequential(state, steps, versions, log)

        return self._aggregate(target if target is not None else state, outcomes)

    async def _run_version(
        self,
        state: FileState,
        steps: list[PipelineStep],
        version: str,
    ) -> VersionState:
        """One version's linear pipeline; stops at the first failing step."""
        incoming = state.versions[version]
        version_state = incoming
        try:
            for step in steps:
                version_state = await step.run(state, version, version_state)
        except BaseException:
            if version_state is not incoming:
                discard_outputs(version_state, [*incoming.temp_paths, state.source_path])
            raise
        return version_state

    async def _run_concurrent(
        self,
        state: FileState,
        steps: list[PipelineStep],
        versions: list[str],
        log: Any,
    ) -> dict[str, Outcome]:
        tasks = {
            version: asyncio.create_task(
                self._run_version(state, steps, version),
                name=f"attache:{version}",
            )
            for version in versions
        }
        if not tasks:
            return {}

        try:
            _, pending = await asyncio.wait(tasks.values(), timeout=state.options.timeout_seconds)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        finally:
            for task in tasks.values():
                if not task.done():
                    task.cancel()

        outcomes: dict[str, Outcome] = {}
        for version, task in tasks.items():
            if task.cancelled():
                log.warning("Version timed out", version=version, timeout_ms=state.options.timeout)
                outcomes[version] = StageError(TIMEOUT_REASON, stage=Stage.PROCESSING, version=version)
                continue

            exc = task.exception()
            if exc is None:
                outcomes[version] = task.result()
            elif isinstance(exc, StageError):
                log.warning("Version failed", version=version, stage=exc.stage, reason=exc.reason)
                outcomes[version] = exc
            else:
                log.error("Version crashed", version=version, error=str(exc))
                outcomes[version] = StageError(str(exc), stage=Stage.PROCESSING, version=version)
        return outcomes

    async def _run_sequential(
        self,
        state: FileState,
        steps: list[PipelineStep],
        versions: list[str],
        log: Any,
    ) -> dict[str, Outcome]:
        current = {version: state.versions[version] for version in versions}
        failed: dict[str, StageError] = {}

        async def run_stages() -> None:
            for step in steps:
                for version in versions:
                    if version in failed:
                        continue
                    try:
                        current[version] = await step.run(state, version, current[version])
                    except StageError as exc:
                        log.warning("Version failed", version=version, stage=exc.stage, reason=exc.reason)
                        failed[version] = exc
                        discard_outputs(
                            current[version],
                            [*state.versions[version].temp_paths, state.source_path],
                        )

        try:
            await asyncio.wait_for(run_stages(), timeout=state.options.timeout_seconds)
        except asyncio.TimeoutError:
            for version, version_state in current.items():
                discard_outputs(version_state, [*state.versions[version].temp_paths, state.source_path])
            log.error("Operation timed out", timeout_ms=state.options.timeout)
            raise ProcessingTimeoutError(
                f"Operation timed out after {state.options.timeout} ms",
                stage=Stage.PROCESSING,
                details={"timeout_ms": state.options.timeout},
            ) from None

        return {version: failed.get(version, current[version]) for version in versions}

    # ─── Helpers ───────────────────────────────────────

    @staticmethod
    def _aggregate(target: FileState, outcomes: dict[str, Outcome]) -> FileState:
        """Successful versions replace their entry; failures only add errors."""
        versions = dict(target.versions)
        result = target
        for version, outcome in outcomes.items():
            if isinstance(outcome, StageError):
                result = result.put_error(version, outcome.stage or Stage.PROCESSING, outcome.reason)
            else:
                versions[version] = outcome
        return replace(result, versions=versions)

    async def _preprocess(self, state: FileState) -> FileState:
        uploader = state.uploader
        if uploader is None:
            return state
        result = uploader.preprocess(state)
        if inspect.isawaitable(result):
            result = await result
        if not isinstance(result, FileState):
            raise ValidationError(f"preprocess must return a FileState, got {result!r}", stage=Stage.PREPROCESS)
        return result

    @staticmethod
    def _check_version(state: FileState, version: str) -> None:
        if version not in state.versions:
            raise UnknownVersionError(
                f"Unknown version '{version}', configured: {list(state.versions)}",
                version=version,
            )

    def _bind(self, operation: str, state: FileState) -> Any:
        return self.logger.bind(operation=operation, filename=state.filename)

    @staticmethod
    def _finish(log: Any, state: FileState, started: float) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        if state.ok:
            log.info("Operation finished", status=state.status, duration_ms=duration_ms)
        else:
            log.warning(
                "Operation finished",
                status=state.status,
                duration_ms=duration_ms,
                errors=state.to_summary_dict()["errors"],
            )
