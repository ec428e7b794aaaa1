"""
FileState — the aggregate state of one store/delete/copy/url operation.

This is the single source of truth for an operation.  It owns one
VersionState per configured version id; the processor folds each version's
outcome back into it.  A fresh FileState is built for every API call and
the engine does not touch it after the call returns.

Errors are kept per version::

    {
        "thumb": [("transform", "convert: unrecognized option `-wrongOption'")],
        "preview": [("processing", "timeout")],
    }

An empty ``errors`` dict means the operation succeeded.  A non-empty one
marks it failed, but the versions that did succeed keep their data.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from attache.core.constants import OperationStatus
from attache.core.logging import get_logger
from attache.core.options import Options
from attache.pipeline.version_state import VersionState

if TYPE_CHECKING:
    from attache.uploader import Uploader

logger = get_logger(__name__)


@dataclass
class FileState:
    """
    Carries everything the stage pipeline needs for one source file.

    Args:
        filename: Original file name; root_name/extension derive from it.
        source_path: Path to the (possibly temporary) original file.  None
                     for metadata-only operations.
        versions: version id → VersionState, one per configured version.
        scope: Caller context (e.g. the owning record), read-only.
        options: Resolved options of the operation.
        errors: version id → ordered list of (stage, reason).
        assigns: Free-form annotations, persisted with the state.
        uploader: The stage dispatcher driving this operation.
        temp_paths: Temporary files owned by the operation (downloads etc.).
    """

    filename: str
    options: Options = field(default_factory=Options)
    source_path: str | None = None
    versions: dict[str, VersionState] = field(default_factory=dict)
    scope: Any = None
    errors: dict[str, list[tuple[str, Any]]] = field(default_factory=dict)
    assigns: dict[str, Any] = field(default_factory=dict)
    uploader: Uploader | None = field(default=None, repr=False)
    temp_paths: list[str] = field(default_factory=list, repr=False)

    @classmethod
    def init(
        cls,
        filename: str,
        options: Options,
        *,
        source_path: str | None = None,
        scope: Any = None,
        uploader: Uploader | None = None,
        assigns: dict[str, Any] | None = None,
        version_assigns: dict[str, dict[str, Any]] | None = None,
        temp_paths: list[str] | None = None,
    ) -> FileState:
        """
        Build a fresh state whose versions are exactly ``options.versions``.

        Annotations in ``version_assigns`` for ids outside the configured
        versions are dropped.
        """
        version_assigns = version_assigns or {}
        versions = {
            version: VersionState(assigns=dict(version_assigns.get(version) or {}))
            for version in options.versions
        }
        return cls(
            filename=filename,
            options=options,
            source_path=source_path,
            versions=versions,
            scope=scope,
            assigns=dict(assigns or {}),
            uploader=uploader,
            temp_paths=list(temp_paths or []),
        )

    # ─── Derived file name parts ───────────────────────

    @property
    def root_name(self) -> str:
        return os.path.splitext(self.filename)[0]

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1]

    @property
    def lowercase_extension(self) -> str:
        return self.extension.lower()

    # ─── Outcome ───────────────────────────────────────

    @property
    def ok(self) -> bool:
        """True when no version recorded an error."""
        return not self.errors

    @property
    def status(self) -> OperationStatus:
        if not self.errors:
            return OperationStatus.COMPLETED
        if set(self.errors) >= set(self.versions):
            return OperationStatus.FAILED
        return OperationStatus.PARTIALLY_COMPLETED

    # ─── Helpers ───────────────────────────────────────

    def assign(self, key: str, value: Any) -> FileState:
        """Return a copy with ``assigns[key] = value``."""
        return replace(self, assigns={**self.assigns, key: value})

    def with_version(self, version: str, version_state: VersionState) -> FileState:
        """Return a copy in which ``versions[version]`` is ``version_state``."""
        return replace(self, versions={**self.versions, version: version_state})

    def get_version_assign(self, version: str, key: str, default: Any = None) -> Any:
        """Read an annotation set on one version."""
        version_state = self.versions.get(version)
        if version_state is None:
            return default
        return version_state.assigns.get(key, default)

    def put_error(self, version: str, stage: str, reason: Any) -> FileState:
        """Return a copy with ``(stage, reason)`` appended to the version's errors."""
        errors = {key: list(value) for key, value in self.errors.items()}
        errors.setdefault(version, []).append((str(stage), reason))
        return replace(self, errors=errors)

    def cleanup(self) -> None:
        """Remove temporary files created by the operation (best effort)."""
        paths = list(self.temp_paths)
        for version_state in self.versions.values():
            # A transform may hand back the source itself; it is not ours to delete.
            paths.extend(p for p in version_state.temp_paths if p != self.source_path)

        for path in paths:
            if os.path.isfile(path):
                try:
                    os.remove(path)
                    logger.debug("Temp file cleaned up", path=path)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    logger.warning("Temp file cleanup failed", path=path, error=str(exc))

    def to_summary_dict(self) -> dict[str, Any]:
        """Compact summary for logging."""
        return {
            "filename": self.filename,
            "versions": {
                version: version_state.to_dict()
                for version, version_state in self.versions.items()
            },
            "status": self.status,
            "errors": {
                version: [list(entry) for entry in entries]
                for version, entries in self.errors.items()
            },
            "assigns": self.assigns,
        }
