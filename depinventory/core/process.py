"""Subprocess helper — run an external tool under a wall-clock timeout.

Every package-manager invocation goes through :func:`run_command`.  The
child is started in its own session on POSIX so that a timeout can kill the
whole process group, including build daemons the tool forked.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Protocol

import structlog

from depinventory.exceptions import CommandError, CommandNotFoundError, CommandTimeoutError

log = structlog.get_logger("depinventory.process")

# Tail of stderr kept in error messages
_STDERR_TAIL = 1000


@dataclass
class CommandResult:
    """Captured output of a finished external command."""

    cmd: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Callable that runs a command; swapped for a fake in tests."""

    async def __call__(
        self,
        cmd: list[str],
        *,
        cwd: Path,
        timeout: float,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult: ...


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Force-kill *proc* and, on POSIX, its whole process group."""
    if proc.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


async def run_command(
    cmd: list[str],
    *,
    cwd: Path,
    timeout: float,
    check: bool = True,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run *cmd* in *cwd*, returning its captured output.

    Raises:
        CommandNotFoundError: the executable is not on PATH or cannot be spawned.
        CommandTimeoutError: *timeout* seconds elapsed; the process was killed.
        CommandError: the process exited non-zero and *check* is true.
    """
    executable = shutil.which(cmd[0])
    if executable is None:
        raise CommandNotFoundError(f"executable not found: {cmd[0]}", cmd=cmd)

    full_env = dict(os.environ)
    if env:
        full_env.update(env)

    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            *cmd[1:],
            cwd=str(cwd),
            env=full_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name == "posix",
        )
    except OSError as e:
        raise CommandNotFoundError(f"cannot spawn {cmd[0]}: {e}", cmd=cmd) from e

    log.debug("process.started", cmd=cmd, cwd=str(cwd), pid=proc.pid, timeout=timeout)
    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        log.debug("process.killed", cmd=cmd, pid=proc.pid, timeout=timeout)
        raise CommandTimeoutError(
            f"{' '.join(cmd)} timed out after {timeout:g}s", cmd=cmd, timeout=timeout
        ) from None
    except asyncio.CancelledError:
        _kill(proc)
        raise

    result = CommandResult(
        cmd=cmd,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=out.decode("utf-8", errors="replace"),
        stderr=err.decode("utf-8", errors="replace"),
    )
    log.debug(
        "process.finished",
        cmd=cmd,
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )

    if check and not result.ok:
        raise CommandError(
            f"{' '.join(cmd)} failed (exit {result.returncode}): "
            f"{result.stderr.strip()[-_STDERR_TAIL:]}",
            cmd=cmd,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result
