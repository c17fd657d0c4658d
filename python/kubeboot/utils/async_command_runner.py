"""
kubeboot/utils/async_command_runner.py

Provides a reusable asynchronous command runner with retry logic and an optional
per-attempt timeout. A process that outlives its timeout is killed and reported
as CommandTimeoutError, so an unreachable host cannot hang a bootstrap run.

Usage example:
    from kubeboot.utils.async_command_runner import run_command, CommandError

    try:
        output = await run_command(["ssh", "root@10.0.0.1", "uptime"], timeout=30)
        print(output)
    except CommandError as err:
        print(f"Command failed: {err}")
"""

from __future__ import annotations

import asyncio
import os
from typing import Dict, List, Optional

from kubeboot.utils.async_retry import async_retry


class CommandError(Exception):
    """Represents a failure when executing a shell command.

    Attributes:
        message (str): The error message describing the command failure.
        return_code (Optional[int]): The exit code if available.
    """

    def __init__(self, message: str, return_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.return_code = return_code


class CommandTimeoutError(CommandError):
    """The command did not finish within its timeout."""


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    env: Optional[Dict[str, str]] = None,
    input_data: Optional[str] = None,
    successful_return_codes: Optional[List[int]] = None,
    retries: int = 1,
    retry_delay: float = 1.0,
    timeout: Optional[float] = None,
) -> str:
    """
    Executes a local command in a subprocess, asynchronously, with optional retries.

    If the command fails (return code not in successful_return_codes), we raise
    CommandError. When `sensitive=True`, we omit the command, stdout, and stderr
    from the error message.

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides command details in the raised error.
        env (Optional[Dict[str, str]]):
            Additional environment variables to add or override.
        input_data (Optional[str]):
            If provided, passed to stdin.
        successful_return_codes (Optional[List[int]]):
            Which return codes won't be treated as errors. Defaults to [0].
        retries (int):
            Total attempts. Defaults to 1 (no retry).
        retry_delay (float):
            Delay in seconds between attempts. Defaults to 1.0.
        timeout (Optional[float]):
            Seconds allowed per attempt. None means unbounded.

    Returns:
        str: The captured stdout of the command on success.

    Raises:
        CommandTimeoutError: If an attempt exceeds `timeout`.
        CommandError: If the command fails after all attempts.
    """
    ok_codes = successful_return_codes if successful_return_codes is not None else [0]

    @async_retry(retries=retries, delay=retry_delay, retry_on=(CommandError,))
    async def _inner_run_command() -> str:
        proc_env = None
        if env:
            proc_env = os.environ.copy()
            proc_env.update(env)

        stdin = asyncio.subprocess.PIPE if input_data else asyncio.subprocess.DEVNULL

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=stdin,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=proc_env,
            )
        except OSError as exc:
            raise CommandError(f"Failed to start {command[0]!r}: {exc}") from exc

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(input=input_data.encode() if input_data else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            await _kill_and_reap(proc)
            raise CommandTimeoutError(
                f"Command timed out after {timeout} seconds."
            ) from exc
        except BaseException:
            # Cancelled from outside (e.g. a caller's wait_for); the child must
            # not outlive the call.
            await _kill_and_reap(proc)
            raise

        stdout_str = stdout_bytes.decode(errors="replace")
        stderr_str = stderr_bytes.decode(errors="replace").strip()

        if proc.returncode not in ok_codes:
            detail = ""
            if not sensitive:
                detail = (
                    f"\nCommand: {' '.join(command)}"
                    f"\nStdout: {stdout_str.strip()}"
                    f"\nStderr: {stderr_str}"
                )
            raise CommandError(
                f"Command failed with return code {proc.returncode}.{detail}",
                proc.returncode,
            )

        return stdout_str

    return await _inner_run_command()


async def _kill_and_reap(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await asyncio.shield(proc.wait())
