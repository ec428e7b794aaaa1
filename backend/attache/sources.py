"""
Input sources — turn whatever the caller handed to ``store`` into a local file.

Accepted inputs:
    - a filesystem path (``str`` or ``os.PathLike``)
    - an ``http://`` / ``https://`` URL, downloaded with httpx
    - ``{"filename": ..., "path": ...}``
    - ``{"filename": ..., "binary": ...}``
    - a FastAPI ``UploadFile``

Downloaded, decoded and uploaded inputs are written to temp files that the
FileState owns through ``temp_paths``.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlparse

import httpx
from fastapi import UploadFile

from attache.core.logging import get_logger
from attache.pipeline.errors import SourceError
from attache.pipeline.transform import create_temp_file

logger = get_logger(__name__)

DOWNLOAD_TIMEOUT = 30.0


@dataclass
class SourceFile:
    """A local copy of the input, ready for processing."""

    filename: str
    path: str
    temp_paths: list[str] = field(default_factory=list)


async def resolve_source(source: Any, *, timeout: float = DOWNLOAD_TIMEOUT) -> SourceFile:
    """
    Materialize ``source`` as a local file.

    Raises:
        SourceError: If the input type is not supported, the file is
                     missing, or the download fails.
    """
    if isinstance(source, UploadFile):
        return await _from_upload(source)
    if isinstance(source, os.PathLike):
        source = os.fspath(source)
    if isinstance(source, str):
        if source.startswith(("http://", "https://")):
            return await download(source, timeout=timeout)
        return _from_path(os.path.basename(source), source)
    if isinstance(source, Mapping) and "filename" in source:
        if "path" in source:
            return _from_path(str(source["filename"]), os.fspath(source["path"]))
        if "binary" in source:
            return await _from_binary(str(source["filename"]), source["binary"])
    raise SourceError(f"Unsupported file source: {type(source).__name__}")


async def download(url: str, *, timeout: float = DOWNLOAD_TIMEOUT) -> SourceFile:
    """Fetch ``url``; the filename is the last segment of its path."""
    filename = unquote(os.path.basename(urlparse(url).path))
    if not filename:
        raise SourceError(f"Cannot derive a filename from {url}")

    logger.info("Downloading source file", url=url)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        raise SourceError(f"Download failed: {exc}", details={"url": url}) from exc

    return await _from_binary(filename, response.content)


def _from_path(filename: str, path: str) -> SourceFile:
    if not os.path.isfile(path):
        raise SourceError(f"Source file not found: {path}", details={"path": path})
    return SourceFile(filename=filename, path=path)


async def _from_binary(filename: str, binary: bytes | str) -> SourceFile:
    if isinstance(binary, str):
        binary = binary.encode()
    path = create_temp_file(os.path.splitext(filename)[1])

    def write() -> None:
        with open(path, "wb") as fh:
            fh.write(binary)

    await asyncio.to_thread(write)
    return SourceFile(filename=filename, path=path, temp_paths=[path])


async def _from_upload(upload: UploadFile) -> SourceFile:
    if not upload.filename:
        raise SourceError("Uploaded file has no filename")
    filename = os.path.basename(upload.filename)
    path = create_temp_file(os.path.splitext(filename)[1])

    def write() -> None:
        upload.file.seek(0)
        with open(path, "wb") as fh:
            shutil.copyfileobj(upload.file, fh)

    await asyncio.to_thread(write)
    return SourceFile(filename=filename, path=path, temp_paths=[path])
