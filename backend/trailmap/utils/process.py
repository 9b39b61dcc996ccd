"""Safe execution wrapper for external command-line programs.

This module runs helper programs (such as the circuit solver) as
asyncio subprocesses. Input is fed through stdin, stdout is returned to
the caller, and failures surface as CommandError with the program's
stderr output.

The subprocess lives exactly as long as the awaiting task: if the task
is cancelled or the timeout expires, the process is killed and reaped
before the exception propagates.

Example:
    Run a command and read its output:
        >>> from trailmap.utils.process import run_command, CommandError

        >>> try:
        ...     output = await run_command(
        ...         ["circuit-solver"], stdin=b'{"edges": []}', timeout=30
        ...     )
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Exception raised when a subprocess command fails.

    Raised when the program cannot be started, exits with a non-zero
    status code, or exceeds its timeout. The message carries the stderr
    output of the failed command when there is any.

    Example:
        Handle command failures:
            >>> try:
            ...     await run_command(["circuit-solver"], stdin=b"{}")
            ... except CommandError as e:
            ...     print(f"Solver failed: {e}")
    """


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
        await process.wait()


async def run_command(
    command: Iterable[str | pathlib.Path],
    stdin: bytes | None = None,
    timeout: float | None = None,
    workdir: pathlib.Path | None = None,
) -> bytes:
    """Execute a command, feed it ``stdin`` and return its stdout.

    Args:
        command: Iterable arguments to execute (e.g., ["circuit-solver"]).
        stdin: Bytes written to the process's standard input.
        timeout: Seconds to wait before the process is killed.
        workdir: Optional working directory for the command execution.

    Returns:
        Everything the process wrote to stdout.

    Raises:
        CommandError: if the command cannot be started, exits with a
            non-zero status code or times out.
        asyncio.CancelledError: if the awaiting task is cancelled. The
            process is killed first.
    """
    args = [str(part) for part in command]
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=workdir,
        )
    except OSError as exc:
        raise CommandError(f"Unable to start {args[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(stdin), timeout
        )
    except TimeoutError as exc:
        await _kill(process)
        raise CommandError(
            f"{args[0]} did not finish within {timeout} seconds"
        ) from exc
    except asyncio.CancelledError:
        logger.info("Cancelled; killing %s (pid %s)", args[0], process.pid)
        await _kill(process)
        raise

    if process.returncode != 0:
        message = stderr.decode(errors="replace").strip()
        raise CommandError(message or "Unknown command failure")
    return stdout
