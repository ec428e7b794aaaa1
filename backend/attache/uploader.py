"""
Uploader — the host-facing API and the stage dispatcher of every operation.

Subclass it, declare the versions to produce, and override the stage
methods that need per-version behaviour::

    class AvatarUploader(Uploader):
        options = {"versions": ["original", "thumb"], "storage_opts": {"path": "/srv/uploads"}}
        allowed_extensions = {".jpg", ".png"}

        def storage_dir(self, state, version):
            return str(state.scope["id"])

        def transform(self, state, version):
            if version == "thumb":
                return ("convert", "-strip -thumbnail 100x100>")
            return super().transform(state, version)

    uploader = AvatarUploader()
    state = await uploader.store("/tmp/coffee.jpg", scope={"id": 42})
    uploader.url(state, "thumb")

Every operation takes keyword options that override the class options for
that call only (``versions``, ``concurrent``/``async``, ``timeout``,
``storage``, ``storage_opts``).
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from attache.core.config import Settings
from attache.core.constants import ORIGINAL, SaveFormat
from attache.core.logging import get_logger
from attache.core.options import Options, build_options
from attache.pipeline.errors import ValidationError
from attache.pipeline.processor import Processor
from attache.pipeline.serialization import AssignKeys, restore, save
from attache.pipeline.state import FileState
from attache.pipeline.version_state import VersionState
from attache.sources import resolve_source

logger = get_logger(__name__)


class Uploader:
    """
    Attachment definition: options plus per-version stage decisions.

    Class attributes:
        options: Type-level options, merged over deployment settings.
        allowed_extensions: Lower-case extensions (with the dot) accepted by
                            the default ``preprocess``; None accepts any.
    """

    options: ClassVar[dict[str, Any]] = {}
    allowed_extensions: ClassVar[Iterable[str] | None] = None

    def __init__(self, settings: Settings | None = None, processor: Processor | None = None) -> None:
        self.settings = settings
        self.processor = processor or Processor()

    def build_options(self, **call_options: Any) -> Options:
        return build_options(self.options, call_options, self.settings)

    # ═══════════════════════════════════════════════════════════
    #  Stage methods, overridden by subclasses
    # ═══════════════════════════════════════════════════════════

    def preprocess(self, state: FileState) -> FileState:
        """
        Validate or prepare the file once, before any version work.

        Raises:
            ValidationError: To reject the file.
        """
        if self.allowed_extensions is not None:
            allowed = {ext.lower() for ext in self.allowed_extensions}
            if state.lowercase_extension not in allowed:
                raise ValidationError(
                    "Invalid file",
                    stage="preprocess",
                    details={"extension": state.lowercase_extension, "allowed": sorted(allowed)},
                )
        return state

    def transform(self, state: FileState, version: str) -> Any:
        """Transform instruction for ``version``; None stores the source as-is."""
        return None

    def postprocess(self, version_state: VersionState, version: str, state: FileState) -> VersionState:
        return version_state

    def storage_dir(self, state: FileState, version: str) -> str:
        return ""

    def filename(self, state: FileState, version: str) -> str:
        """``coffee.jpg`` for the original, ``coffee_thumb.jpg`` for "thumb"."""
        if version == ORIGINAL:
            return state.filename
        return f"{state.root_name}_{version}{state.extension}"

    def storage_opts(self, state: FileState, version: str) -> dict[str, Any]:
        return {}

    # ═══════════════════════════════════════════════════════════
    #  Operations
    # ═══════════════════════════════════════════════════════════

    async def store(self, file: Any, scope: Any = None, **options: Any) -> FileState:
        """
        Process and store ``file`` in every configured version.

        Args:
            file: A path, an http(s) URL, ``{"filename", "path"}``,
                  ``{"filename", "binary"}`` or a FastAPI UploadFile.
            scope: Caller context passed to every stage method.
            **options: Call-level option overrides.

        Returns:
            The resulting FileState; check ``state.ok`` / ``state.errors``.
            Temporary files are removed before returning.

        Raises:
            ValidationError: If ``preprocess`` rejects the file.
            SourceError: If the input cannot be read or downloaded.
            ProcessingTimeoutError: If a sequential run times out.
        """
        opts = self.build_options(**options)
        source = await resolve_source(file)
        logger.debug("Source resolved", filename=source.filename, path=source.path)
        state = FileState.init(
            source.filename,
            opts,
            source_path=source.path,
            scope=scope,
            uploader=self,
            temp_paths=source.temp_paths,
        )

        result = state
        try:
            result = await self.processor.store(state)
        finally:
            result.cleanup()
        return result

    def url(self, info: Any, version: str = ORIGINAL, scope: Any = None, **options: Any) -> str:
        """
        URI of a stored version.

        ``info`` is a FileState, a persisted map / JSON text, or a filename.
        """
        state = self._state_from(info, scope, options)
        return self.processor.generate_url(state, version)

    async def delete(self, info: Any, scope: Any = None, **options: Any) -> FileState:
        """Delete every configured version.  Missing files are not an error."""
        state = self._state_from(info, scope, options)
        return await self.processor.delete(state)

    async def retrieve(
        self,
        info: Any,
        version: str = ORIGINAL,
        scope: Any = None,
        destination: str | None = None,
        **options: Any,
    ) -> str:
        """
        Download one version and return the local path.

        Without ``destination`` a temp file is created; removing it is up to
        the caller.

        Raises:
            StorageError: If the version cannot be fetched.
        """
        state = self._state_from(info, scope, options)
        return await self.processor.retrieve(state, version, destination)

    async def copy(
        self,
        info: Any,
        to_info: Any,
        scope: Any = None,
        to_scope: Any = None,
        **options: Any,
    ) -> FileState:
        """
        Copy every version of ``info`` to where ``to_info`` would be stored.

        Returns:
            The destination FileState.
        """
        state = self._state_from(info, scope, options)
        to_state = self._state_from(to_info, to_scope if to_scope is not None else scope, options)
        return await self.processor.copy(state, to_state)

    async def regenerate(
        self,
        info: Any,
        versions: Iterable[str],
        scope: Any = None,
        **options: Any,
    ) -> FileState:
        """
        Rebuild the given versions from the stored original.

        Raises:
            NotRegeneratableError: If ``versions`` contains "original".
            UnknownVersionError: If a version is not configured.
        """
        state = self._state_from(info, scope, options)
        result = state
        try:
            result = await self.processor.regenerate(state, list(versions))
        finally:
            result.cleanup()
        return result

    # ─── Persistence ───────────────────────────────────

    def save(
        self,
        state: FileState,
        format: str = SaveFormat.FILENAME,
        assigns: AssignKeys = "all",
        ignore_assigns: bool = False,
    ) -> str | dict[str, Any]:
        """Serialize ``state`` for storage in the host's record."""
        return save(state, format=format, assigns=assigns, ignore_assigns=ignore_assigns)

    def restore(self, data: Any, scope: Any = None, **options: Any) -> FileState:
        """Rebuild a FileState for the currently configured versions."""
        return restore(data, self.build_options(**options), scope=scope, uploader=self)

    def _state_from(self, info: Any, scope: Any, options: dict[str, Any]) -> FileState:
        if isinstance(info, FileState) and scope is None:
            scope = info.scope
        return self.restore(info, scope, **options)
