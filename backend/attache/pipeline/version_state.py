"""VersionState — the working record of a single version."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass
class VersionState:
    """
    Per-version state carried through the stage pipeline.

    Args:
        transform: The resolved transform instruction; None stores the
                   source file unchanged.
        temp_path: Output of the transform.  A list when the transform
                   produced several files.  None means the source is stored.
        storage_dir: Directory resolved by the storage_dir stage.
        filename: Name resolved by the filename stage.
        storage_opts: Backend options resolved for this version.
        assigns: Free-form annotations, usually set by postprocess.
    """

    transform: Any = None
    temp_path: str | list[str] | None = None
    storage_dir: str | None = None
    filename: str | None = None
    storage_opts: dict[str, Any] = field(default_factory=dict)
    assigns: dict[str, Any] = field(default_factory=dict)

    def assign(self, key: str, value: Any) -> VersionState:
        """Return a copy with ``assigns[key] = value``."""
        return replace(self, assigns={**self.assigns, key: value})

    @property
    def temp_paths(self) -> list[str]:
        """The transform output(s) as a list (empty when nothing ran)."""
        if self.temp_path is None:
            return []
        if isinstance(self.temp_path, str):
            return [self.temp_path]
        return list(self.temp_path)

    def to_dict(self) -> dict[str, Any]:
        """Compact view for logging."""
        return {
            "storage_dir": self.storage_dir,
            "filename": self.filename,
            "transformed": self.temp_path is not None,
            "assigns": self.assigns,
        }
