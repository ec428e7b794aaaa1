"""
Options — the resolved execution options of one operation.

Options are assembled once per call from four layers, later layers
winning::

    library defaults → deployment settings → type options → call options

Nested dicts (``storage_opts``) are merged key by key; every other value is
replaced.  The result is an immutable pydantic model passed by value into
the FileState of the operation.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from attache.core.config import Settings, settings as default_settings
from attache.core.constants import ORIGINAL
from attache.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_OPTIONS: dict[str, Any] = {
    "versions": [ORIGINAL],
    "concurrent": True,
    "timeout": 5_000,
    "storage": "filesystem",
    "storage_opts": {},
}

DEPRECATED_OPTIONS: dict[str, str] = {
    "version_timeout": "timeout",
}


class Options(BaseModel):
    """Resolved options for one operation."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    versions: list[str] = Field(default_factory=lambda: [ORIGINAL])
    concurrent: bool = Field(True, validation_alias=AliasChoices("concurrent", "async"))
    timeout: int = Field(5_000, gt=0, description="Timeout in milliseconds")
    storage: Any = "filesystem"
    storage_opts: dict[str, Any] = Field(default_factory=dict)

    @field_validator("versions", mode="before")
    @classmethod
    def _versions_as_strings(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        return [str(version) for version in value]

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000


def merge_values(base: Any, override: Any) -> Any:
    """Deep-merge dicts; any other override replaces the base value."""
    if isinstance(base, dict) and isinstance(override, dict):
        merged = dict(base)
        for key, value in override.items():
            merged[key] = merge_values(merged[key], value) if key in merged else value
        return merged
    return override


def _normalize(layer: dict[str, Any] | None) -> dict[str, Any]:
    """Map aliases onto option names and drop deprecated keys."""
    normalized: dict[str, Any] = {}
    for key, value in (layer or {}).items():
        if key in DEPRECATED_OPTIONS:
            logger.warning(
                "Deprecated option ignored",
                option=key,
                use=DEPRECATED_OPTIONS[key],
            )
            continue
        if key == "async":
            key = "concurrent"
        normalized[key] = value
    return normalized


def build_options(
    type_options: dict[str, Any] | None = None,
    call_options: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> Options:
    """
    Merge every configuration layer into a single Options value.

    Args:
        type_options: Options declared on the Uploader subclass.
        call_options: Keyword options passed to the API call.
        settings: Deployment settings; defaults to the environment-loaded ones.
    """
    settings = settings or default_settings

    merged: dict[str, Any] = {}
    for layer in (
        DEFAULT_OPTIONS,
        settings.deployment_options(),
        _normalize(type_options),
        _normalize(call_options),
    ):
        merged = merge_values(merged, layer)

    return Options.model_validate(merged)
