"""
Serialization — persist a FileState and restore it later.

Only the durable parts of a state survive: the filename and the
annotations.  Everything else (paths, transform artifacts, resolved
locations, errors) is recomputed by the next operation.

Persisted map::

    {
        "filename": "coffee.jpg",
        "assigns": {"uploaded_by": 7},
        "version_assigns": {"thumb": {"hash": "abc"}},
    }

Empty subtrees are omitted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from attache.core.constants import SaveFormat
from attache.core.options import Options
from attache.pipeline.errors import SerializationError
from attache.pipeline.state import FileState

if TYPE_CHECKING:
    from attache.uploader import Uploader

AssignKeys = str | Iterable[str]


class PersistedState(BaseModel):
    """The stable, JSON-safe shape of a FileState.  Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    filename: str
    assigns: dict[str, Any] = Field(default_factory=dict)
    version_assigns: dict[str, dict[str, Any]] = Field(default_factory=dict)


def _select(assigns: dict[str, Any], keys: AssignKeys) -> dict[str, Any]:
    if keys == "all":
        return dict(assigns)
    wanted = [keys] if isinstance(keys, str) else list(keys)
    return {key: assigns[key] for key in wanted if key in assigns}


def to_persisted(state: FileState, assigns: AssignKeys = "all") -> PersistedState:
    """Project a FileState onto its persisted shape, keeping the chosen assign keys."""
    version_assigns = {
        version: selected
        for version, version_state in state.versions.items()
        if (selected := _select(version_state.assigns, assigns))
    }
    return PersistedState(
        filename=state.filename,
        assigns=_select(state.assigns, assigns),
        version_assigns=version_assigns,
    )


def save(
    state: FileState,
    format: str = SaveFormat.FILENAME,
    assigns: AssignKeys = "all",
    ignore_assigns: bool = False,
) -> str | dict[str, Any]:
    """
    Serialize ``state``.

    Args:
        state: The state to persist.
        format: "filename" (bare filename), "map" (dict) or "json" (text).
        assigns: "all" or the annotation keys to keep.
        ignore_assigns: With format "filename", drop annotations silently.

    Raises:
        SerializationError: If the filename format would lose annotations,
                            or the format is unknown.
    """
    persisted = to_persisted(state, assigns)

    if format == SaveFormat.FILENAME:
        if not ignore_assigns and (persisted.assigns or persisted.version_assigns):
            raise SerializationError(
                "State has assigns; save it as a map or json, or pass ignore_assigns=True",
                details={"filename": state.filename},
            )
        return state.filename
    if format == SaveFormat.MAP:
        return persisted.model_dump(exclude_defaults=True)
    if format == SaveFormat.JSON:
        return persisted.model_dump_json(exclude_defaults=True)
    raise SerializationError(f"Unknown save format '{format}'")


def parse_persisted(data: Any) -> PersistedState:
    """
    Accept any persisted representation.

    ``data`` may be a FileState, a PersistedState, a bare filename, the
    JSON text of a persisted map (detected by a leading ``{``), or a map.

    Raises:
        SerializationError: If ``data`` cannot be read.
    """
    if isinstance(data, PersistedState):
        return data
    if isinstance(data, FileState):
        return to_persisted(data)
    if isinstance(data, bytes):
        data = data.decode()

    try:
        if isinstance(data, str):
            if data.lstrip().startswith("{"):
                return PersistedState.model_validate_json(data)
            return PersistedState(filename=data)
        if isinstance(data, Mapping):
            return PersistedState.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise SerializationError(
            "Invalid persisted state",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    raise SerializationError(f"Cannot restore state from {type(data).__name__}")


def restore(
    data: Any,
    options: Options,
    *,
    scope: Any = None,
    uploader: Uploader | None = None,
) -> FileState:
    """
    Rebuild a FileState from persisted data.

    The versions are exactly ``options.versions``: stored annotations of
    versions no longer configured are dropped, and newly configured
    versions start empty.
    """
    persisted = parse_persisted(data)
    return FileState.init(
        persisted.filename,
        options,
        scope=scope,
        uploader=uploader,
        assigns=persisted.assigns,
        version_assigns=persisted.version_assigns,
    )
