"""Async helpers for running the external build and signing tools."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from twaforge.errors import ProcessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    stdout: str
    stderr: str


async def execute_file(
    cmd: str,
    args: list[str],
    env: dict[str, str] | None = None,
    cwd: str | Path | None = None,
    log: logging.Logger | None = None,
) -> ProcessResult:
    """Run ``cmd`` with ``args`` and capture its output.

    No shell is involved, so arguments are passed through untouched and do
    not need quoting. Raises ProcessError on a non-zero exit status.
    """
    log = log or logger
    log.debug("Executing command %s with args %s", cmd, _redact(args))
    proc = await asyncio.create_subprocess_exec(
        cmd,
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        cwd=str(cwd) if cwd is not None else None,
    )
    stdout, stderr = await proc.communicate()
    result = ProcessResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if proc.returncode != 0:
        raise ProcessError(
            f"{Path(cmd).name} exited with status {proc.returncode}: {result.stderr.strip()}",
            proc.returncode,
            result.stdout,
            result.stderr,
        )
    return result


async def execute(
    cmd: list[str],
    env: dict[str, str] | None = None,
    log: logging.Logger | None = None,
) -> ProcessResult:
    """Run a command given as a single argument list."""
    if not cmd:
        raise ValueError("cmd must not be empty")
    return await execute_file(cmd[0], cmd[1:], env, log=log)


async def exec_interactive(
    cmd: str, args: list[str], env: dict[str, str] | None = None
) -> int:
    """Run ``cmd`` attached to the current terminal, e.g. for license prompts."""
    proc = await asyncio.create_subprocess_exec(cmd, *args, env=env)
    returncode = await proc.wait()
    if returncode != 0:
        raise ProcessError(f"{Path(cmd).name} exited with status {returncode}", returncode)
    return returncode


def _redact(args: list[str]) -> list[str]:
    """Hide password values from debug logs."""
    redacted = []
    hide_next = False
    for arg in args:
        if hide_next:
            redacted.append("****")
            hide_next = False
        elif arg in ("-storepass", "-keypass"):
            redacted.append(arg)
            hide_next = True
        elif arg.startswith("pass:"):
            redacted.append("pass:****")
        else:
            redacted.append(arg)
    return redacted


__all__ = ["ProcessResult", "exec_interactive", "execute", "execute_file"]
