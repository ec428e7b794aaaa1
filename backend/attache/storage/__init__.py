"""
Storage backends.

Backends are looked up by name through STORAGE_REGISTRY; options may also
name a Storage subclass or pass an instance directly.

To add a new backend:
    1. Subclass ``attache.storage.base.Storage``
    2. Register it in STORAGE_REGISTRY below (or pass the class in options)
"""

from __future__ import annotations

from typing import Any

from attache.pipeline.errors import OptionsError
from attache.storage.base import Storage
from attache.storage.filesystem import FileSystemStorage
from attache.storage.s3 import S3Storage

STORAGE_REGISTRY: dict[str, type[Storage]] = {
    "filesystem": FileSystemStorage,
    "s3": S3Storage,
}


def get_storage(storage: Any) -> Storage:
    """
    Resolve a storage option to a backend instance.

    Accepts a registered name, a Storage subclass, or a Storage instance.

    Raises:
        OptionsError: If the name is not registered or the value is not a backend.
    """
    if isinstance(storage, Storage):
        return storage
    if isinstance(storage, type) and issubclass(storage, Storage):
        return storage()
    if isinstance(storage, str):
        if storage not in STORAGE_REGISTRY:
            raise OptionsError(
                f"Unknown storage backend '{storage}'",
                details={"available": sorted(STORAGE_REGISTRY)},
            )
        return STORAGE_REGISTRY[storage]()
    raise OptionsError(f"Invalid storage option: {storage!r}")


__all__ = ["Storage", "FileSystemStorage", "S3Storage", "STORAGE_REGISTRY", "get_storage"]
