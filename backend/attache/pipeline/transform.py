"""
Transform instructions and the transform executor.

A version's ``transform`` stage resolves to one of:

    None
        Store the source file unchanged.
    Command / (executable, args) / (executable, args, extension)
        Run an external program.  The program receives
        ``[source, *args, destination]``; ``args`` may be a string (split
        shell-style), a list, or a callable ``(source, destination) -> list``
        when the two paths have to go somewhere else.  ``extension`` forces
        the extension of the destination temp file.
    callable(source_path) -> path | list[path]
        Produce the output in-process (sync or async).  Report a failure
        by raising TransformError or by returning ``("error", reason)``;
        ``("ok", path)`` is accepted as a success.

Example::

    def transform(self, state, version):
        if version == "thumb":
            return ("convert", "-strip -thumbnail 100x100>")
        if version == "png_thumb":
            return ("convert", "-strip -thumbnail 100x100>", "png")
        return super().transform(state, version)
"""

from __future__ import annotations

import asyncio
import inspect
import os
import shlex
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from attache.core.logging import get_logger
from attache.pipeline.errors import TransformError, unwrap_result

logger = get_logger(__name__)

ArgsBuilder = Callable[[str, str], Sequence[str]]


@dataclass(frozen=True)
class Command:
    """An external program invocation."""

    executable: str
    args: str | Sequence[str] | ArgsBuilder = ()
    extension: str | None = None

    def argv(self, source: str, destination: str) -> list[str]:
        """Fully resolved argument list (without the executable)."""
        if callable(self.args):
            return [str(arg) for arg in self.args(source, destination)]
        if isinstance(self.args, str):
            args = shlex.split(self.args)
        else:
            args = [str(arg) for arg in self.args]
        return [source, *args, destination]

    def temp_extension(self, default: str) -> str:
        if not self.extension:
            return default
        extension = str(self.extension)
        return extension if extension.startswith(".") else f".{extension}"


TransformFunction = Callable[[str], Any]
TransformInstruction = Union[Command, TransformFunction, None]


def resolve_instruction(value: Any) -> TransformInstruction:
    """
    Normalize whatever the transform stage returned.

    Raises:
        TransformError: If the value is not a recognised instruction.
    """
    if value is None or isinstance(value, Command):
        return value
    if isinstance(value, tuple) and len(value) in (2, 3):
        return Command(str(value[0]), *value[1:])
    if callable(value):
        return value
    raise TransformError(f"Invalid transform instruction: {value!r}")


def create_temp_file(extension: str = "") -> str:
    """Allocate an empty temp file and return its path."""
    fd, path = tempfile.mkstemp(prefix="attache-", suffix=extension)
    os.close(fd)
    return path


async def run_command(executable: str, argv: list[str]) -> str:
    """
    Run an external program and return its combined output.

    If the awaiting task is cancelled the process is killed and reaped
    before the cancellation propagates.

    Raises:
        TransformError: On a non-zero exit status (reason = captured output)
                        or when the program cannot be started.
    """
    logger.debug("Running transform command", executable=executable, argv=argv)
    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        raise TransformError(str(exc), details={"executable": executable}) from exc

    try:
        output, _ = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
            logger.warning("Transform command killed", executable=executable, pid=process.pid)
        raise

    text = output.decode(errors="replace")
    if process.returncode != 0:
        raise TransformError(
            text,
            details={"executable": executable, "exit_code": process.returncode},
        )
    return text


async def perform_transform(
    instruction: Command | TransformFunction,
    source_path: str,
    default_extension: str = "",
) -> str | list[str]:
    """
    Execute a resolved instruction against the source file.

    Returns:
        The output path, or a list of paths for multi-output transforms.
    """
    if isinstance(instruction, Command):
        destination = create_temp_file(instruction.temp_extension(default_extension))
        try:
            await run_command(instruction.executable, instruction.argv(source_path, destination))
        except (TransformError, asyncio.CancelledError):
            _remove_quietly(destination)
            raise
        return destination

    if inspect.iscoroutinefunction(instruction):
        result = await instruction(source_path)
    else:
        # Threads cannot be killed; a cancelled caller just stops waiting.
        result = await asyncio.to_thread(instruction, source_path)
        if inspect.isawaitable(result):
            result = await result

    return _output_paths(unwrap_result(result, TransformError))


def _output_paths(result: Any) -> str | list[str]:
    if isinstance(result, (str, os.PathLike)):
        return os.fspath(result)
    if isinstance(result, (list, tuple)) and result:
        paths = [os.fspath(path) for path in result]
        return paths[0] if len(paths) == 1 else paths
    raise TransformError(f"Transform returned no output: {result!r}")


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass
