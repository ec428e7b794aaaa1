"""
Storage — the contract every storage backend must satisfy.

The processor only talks to backends through these five methods.  They are
synchronous; the processor runs them in a worker thread so a slow backend
never blocks sibling versions.  Failures are reported by raising
StorageError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Storage(ABC):
    """
    Base class for every storage backend.

    Subclasses MUST implement:
        - save(directory, filename, source_path, opts)
        - delete(directory, filename, opts)
        - copy(directory, filename, to_directory, to_filename, opts)
        - retrieve(directory, filename, destination_path, opts)
        - build_uri(directory, filename, opts)
    """

    name: str = "unnamed_storage"

    @abstractmethod
    def save(
        self,
        directory: str,
        filename: str,
        source_path: str,
        opts: dict[str, Any],
    ) -> None:
        """Persist ``source_path`` as ``directory/filename``."""
        ...

    @abstractmethod
    def delete(self, directory: str, filename: str, opts: dict[str, Any]) -> None:
        """Remove ``directory/filename``.  A missing object is not an error."""
        ...

    @abstractmethod
    def copy(
        self,
        directory: str,
        filename: str,
        to_directory: str,
        to_filename: str,
        opts: dict[str, Any],
    ) -> None:
        """Copy a stored object to a new location within the same backend."""
        ...

    @abstractmethod
    def retrieve(
        self,
        directory: str,
        filename: str,
        destination_path: str,
        opts: dict[str, Any],
    ) -> None:
        """Fetch ``directory/filename`` into a local file."""
        ...

    @abstractmethod
    def build_uri(self, directory: str, filename: str, opts: dict[str, Any]) -> str:
        """Return the URI under which the stored object can be reached."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
