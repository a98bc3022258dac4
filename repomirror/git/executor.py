"""
Run external commands and collect their output.

Commands are always passed as argument lists to
``asyncio.create_subprocess_exec``; no shell is involved. Output is read with
a fixed upper bound so a runaway command cannot exhaust memory.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from .exceptions import CommandError

logger = logging.getLogger(__name__)

MAX_BUFFER_BYTES = 4 * 1024 * 1024  # 4M
_CHUNK_SIZE = 64 * 1024


class _BufferExceeded(Exception):
    def __init__(self, stream: str):
        self.stream = stream


async def _read_bounded(stream: asyncio.StreamReader, name: str, limit: int) -> bytes:
    data = bytearray()
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            return bytes(data)
        data.extend(chunk)
        if len(data) > limit:
            raise _BufferExceeded(name)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


async def run_command(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    max_buffer: int = MAX_BUFFER_BYTES,
) -> str:
    """
    Run a command and return its standard output.

    The command fails if it exits with a non-zero code or writes anything to
    stderr, even when the exit code is zero. Callers pass ``--quiet`` to git
    subcommands that would otherwise report progress on stderr.

    Args:
        args: Program and arguments, e.g. ["git", "tag"]
        cwd: Working directory for the command
        max_buffer: Maximum number of bytes accepted on stdout or stderr

    Returns:
        The decoded stdout of the command

    Raises:
        CommandError: If the command cannot be started, fails, writes to
            stderr or exceeds the output buffer
    """
    args = [str(arg) for arg in args]
    logger.debug(f"Running `{' '.join(args)}`" + (f" in {cwd}" if cwd else ""))

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(args, cwd=cwd, message=str(e)) from e

    readers = [
        asyncio.ensure_future(_read_bounded(proc.stdout, "stdout", max_buffer)),
        asyncio.ensure_future(_read_bounded(proc.stderr, "stderr", max_buffer)),
    ]
    try:
        stdout_bytes, stderr_bytes = await asyncio.gather(*readers)
        returncode = await proc.wait()
    except _BufferExceeded as e:
        await _terminate(proc)
        raise CommandError(
            args,
            cwd=cwd,
            returncode=proc.returncode,
            message=f"{e.stream} exceeded the {max_buffer} byte buffer",
        )
    finally:
        for reader in readers:
            reader.cancel()
        # also reached when the awaiting task is cancelled
        await _terminate(proc)

    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")

    if returncode != 0 or stderr:
        raise CommandError(
            args, cwd=cwd, returncode=returncode, stdout=stdout, stderr=stderr
        )

    return stdout
