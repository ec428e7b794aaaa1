"""
FileSystemStorage — stores versions on the local file system.

Files land in ``<path>/<directory>/<filename>``.  Leading slashes in the
directory or filename are ignored, and names that resolve outside
``<path>`` are rejected.

Options:
    path:      (required) base directory within which files are saved.
    acl:       (optional) file mode, octal string ``"0644"`` or int ``0o644``.
               Unparsable values are ignored.
    base_uri:  (optional) prefix for URIs built by ``build_uri``.
"""

from __future__ import annotations

import os
import posixpath
import shutil
from typing import Any

from attache.core.logging import get_logger
from attache.pipeline.errors import StorageError
from attache.storage.base import Storage

logger = get_logger(__name__)


def parse_acl(acl: Any) -> int | None:
    """Turn an ``acl`` option into a POSIX mode, or None if it is not one."""
    if isinstance(acl, bool):
        return None
    if isinstance(acl, int):
        return acl
    if isinstance(acl, str):
        try:
            return int(acl, 8)
        except ValueError:
            return None
    return None


def _relative_parts(directory: str | None, filename: str) -> list[str]:
    """Directory and filename with leading slashes removed, always relative to the base."""
    parts = [(directory or "").lstrip("/"), (filename or "").lstrip("/")]
    return [part for part in parts if part]


class FileSystemStorage(Storage):
    """Storage backend for the local file system."""

    name = "filesystem"

    def save(
        self,
        directory: str,
        filename: str,
        source_path: str,
        opts: dict[str, Any],
    ) -> None:
        """
        Copy ``source_path`` to ``<path>/<directory>/<filename>``.

        Example::

            FileSystemStorage().save("path/to", "file.ext", "/tmp/upload.ext", {"path": "/opt/uploads"})
            # → /opt/uploads/path/to/file.ext
        """
        file_path = self._full_path(directory, filename, opts, "save")
        self._copy_file(source_path, file_path, opts, "save")

    def delete(self, directory: str, filename: str, opts: dict[str, Any]) -> None:
        file_path = self._full_path(directory, filename, opts, "delete")
        try:
            os.remove(file_path)
        except FileNotFoundError:
            logger.debug("File already absent", path=file_path)
        except OSError as exc:
            raise StorageError(str(exc), operation="delete", path=file_path) from exc

    def copy(
        self,
        directory: str,
        filename: str,
        to_directory: str,
        to_filename: str,
        opts: dict[str, Any],
    ) -> None:
        source_path = self._full_path(directory, filename, opts, "copy")
        file_path = self._full_path(to_directory, to_filename, opts, "copy")
        self._copy_file(source_path, file_path, opts, "copy")

    def retrieve(
        self,
        directory: str,
        filename: str,
        destination_path: str,
        opts: dict[str, Any],
    ) -> None:
        source_path = self._full_path(directory, filename, opts, "retrieve")
        try:
            shutil.copyfile(source_path, destination_path)
        except OSError as exc:
            raise StorageError(str(exc), operation="retrieve", path=source_path) from exc

    def build_uri(self, directory: str, filename: str, opts: dict[str, Any]) -> str:
        """
        Join ``base_uri``, directory and filename.

        Examples::

            build_uri("path/to", "file.ext", {})                                   # "path/to/file.ext"
            build_uri("path/to", "file.ext", {"base_uri": "http://example.com"})   # "http://example.com/path/to/file.ext"
            build_uri("path/to", "file.ext", {"base_uri": "/uploads/"})            # "/uploads/path/to/file.ext"
        """
        base_uri = opts.get("base_uri") or ""
        return posixpath.join(base_uri, *_relative_parts(directory, filename))

    # ─── Helpers ───────────────────────────────────────

    def _full_path(
        self,
        directory: str,
        filename: str,
        opts: dict[str, Any],
        operation: str,
    ) -> str:
        base_path = opts.get("path")
        if not base_path:
            raise StorageError(
                "Storage option 'path' is required",
                operation=operation,
            )
        base = os.path.realpath(base_path)
        file_path = os.path.realpath(os.path.join(base, *_relative_parts(directory, filename)))
        if os.path.commonpath([base, file_path]) != base or file_path == base:
            raise StorageError(
                f"Path escapes the storage directory: {directory!r}/{filename!r}",
                operation=operation,
                path=file_path,
            )
        return file_path

    def _copy_file(
        self,
        source_path: str,
        file_path: str,
        opts: dict[str, Any],
        operation: str,
    ) -> None:
        try:
            os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
            shutil.copyfile(source_path, file_path)
            mode = parse_acl(opts.get("acl"))
            if mode is not None:
                os.chmod(file_path, mode)
        except OSError as exc:
            raise StorageError(str(exc), operation=operation, path=file_path) from exc
