"""
kubeboot/remote/executor.py

The remote execution port every bootstrap step talks to. It has exactly two
operations:
  - run: execute one shell command on a machine and return its console text.
  - write_artifact: place a multi-line document at a path on a machine.

Concrete transports implement `_run` / `_write_artifact`; the public methods add
the per-call timeout so no single unreachable machine can hang a bootstrap.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from kubeboot.models.machine import Machine
from kubeboot.utils.async_command_runner import CommandTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 600.0


class RemoteExecutor(ABC):
    """
    Abstract remote execution port.

    Args:
        timeout: Seconds allowed for one call. None disables the bound.
    """

    def __init__(self, timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT) -> None:
        self.timeout = timeout

    async def run(self, machine: Machine, command: str) -> str:
        """
        Run `command` through a shell on `machine`.

        Returns:
            The captured console output, unmodified.

        Raises:
            CommandError: Transport failure or non-zero exit.
            CommandTimeoutError: The call exceeded `timeout`.
        """
        logger.debug("run on %s: %s", machine.ip, command)
        return await self._bounded(self._run(machine, command), machine)

    async def write_artifact(self, machine: Machine, path: str, content: str) -> None:
        """
        Write `content` to `path` on `machine`, replacing any existing file.

        Raises:
            CommandError: Transport failure.
            CommandTimeoutError: The call exceeded `timeout`.
        """
        logger.debug("write %d bytes to %s:%s", len(content), machine.ip, path)
        await self._bounded(self._write_artifact(machine, path, content), machine)

    async def _bounded(self, coro, machine: Machine):
        if self.timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise CommandTimeoutError(
                f"Remote call to {machine.ip} timed out after {self.timeout} seconds."
            ) from exc

    @abstractmethod
    async def _run(self, machine: Machine, command: str) -> str:
        ...

    @abstractmethod
    async def _write_artifact(self, machine: Machine, path: str, content: str) -> None:
        ...
