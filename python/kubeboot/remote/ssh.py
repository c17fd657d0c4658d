"""
kubeboot/remote/ssh.py

The OpenSSH implementation of the remote execution port. Private keys and
known_hosts live in ephemeral files under /dev/shm for the lifetime of a single
ssh invocation. Host keys are either supplied up front or learned once per host
(trust on first use) and then pinned with StrictHostKeyChecking=yes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles
import aiofiles.ospath

from kubeboot.models.machine import Machine
from kubeboot.models.settings import BootstrapSettings
from kubeboot.models.ssh import SSHConfig
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.utils.async_command_runner import CommandError, run_command
from kubeboot.utils.ephemeral_file import ephemeral_file

logger = logging.getLogger(__name__)


def _base_ssh_args(cfg: SSHConfig, pk_path: str, kh_path: str, strict: str) -> List[str]:
    return [
        "ssh",
        "-p",
        str(cfg.port),
        "-i",
        pk_path,
        "-o",
        "BatchMode=yes",
        "-o",
        f"StrictHostKeyChecking={strict}",
        "-o",
        f"UserKnownHostsFile={kh_path}",
        "-o",
        "GlobalKnownHostsFile=/dev/null",
        f"{cfg.user}@{cfg.hostname}",
    ]


async def ssh_get_server_key(
    cfg: SSHConfig,
    *,
    retries: int = 1,
    retry_delay: float = 1.0,
    timeout: Optional[float] = None,
) -> List[str]:
    """
    Perform a minimal SSH handshake with StrictHostKeyChecking=accept-new
    to retrieve the server's host key lines (TOFU).

    Returns:
      A list of lines from ephemeral known_hosts (the server's keys).

    Raises:
      CommandError: if handshake fails or no host keys found
    """
    async with ephemeral_file("ssh_known_hosts", prefix="sshkh-") as kh_path:
        async with ephemeral_file(
            "ssh_idkey", content=cfg.private_key, prefix="sshpk-"
        ) as pk_path:
            ssh_cmd = _base_ssh_args(cfg, pk_path, kh_path, "accept-new")
            ssh_cmd += ["exit", "0"]
            await run_command(
                ssh_cmd, retries=retries, retry_delay=retry_delay, timeout=timeout
            )

            lines: List[str] = []
            if await aiofiles.ospath.exists(kh_path):
                async with aiofiles.open(kh_path, "r", encoding="utf-8") as fkh:
                    content = await fkh.readlines()
                    lines = [ln.strip() for ln in content if ln.strip()]

            if not lines:
                raise CommandError(
                    "ssh_get_server_key found no lines; server key not retrieved."
                )
            return lines


async def run_ssh_command(
    ssh_config: SSHConfig,
    remote_command: str,
    *,
    input_data: Optional[str] = None,
    sensitive: bool = True,
    retries: int = 1,
    retry_delay: float = 1.0,
    timeout: Optional[float] = None,
) -> str:
    """
    Run a shell command string in strict host-key-checking mode, requiring
    host_keys in ssh_config. The string is interpreted by the remote login
    shell, so pipes and redirections work as typed.

    Returns:
      captured stdout from the remote command

    Raises:
      CommandError: if host_keys empty or the command fails.
    """
    if not ssh_config.host_keys:
        raise CommandError("run_ssh_command requires non-empty host_keys.")

    known_hosts = "".join(line + "\n" for line in ssh_config.host_keys)
    async with ephemeral_file(
        "ssh_known_hosts", content=known_hosts, prefix="sshkh-"
    ) as kh_path:
        async with ephemeral_file(
            "ssh_idkey", content=ssh_config.private_key, prefix="sshpk-"
        ) as pk_path:
            ssh_cmd = _base_ssh_args(ssh_config, pk_path, kh_path, "yes")
            ssh_cmd.append(remote_command)
            return await run_command(
                ssh_cmd,
                input_data=input_data,
                sensitive=sensitive,
                retries=retries,
                retry_delay=retry_delay,
                timeout=timeout,
            )


class SSHExecutor(RemoteExecutor):
    """
    Remote execution over OpenSSH with one credential for every machine.

    Args:
        user: Remote login user.
        private_key: PEM/OpenSSH private key text.
        port: SSH port.
        host_keys: Known host key lines per machine IP. Hosts missing here are
            learned on first contact when `trust_on_first_use` is set, and
            rejected otherwise.
        trust_on_first_use: Whether unknown hosts may be pinned on first contact.
        retries: Transport attempts per call.
        retry_delay: Seconds between attempts.
        timeout: Seconds allowed per call.
    """

    def __init__(
        self,
        user: str,
        private_key: str,
        *,
        port: int = 22,
        host_keys: Optional[Dict[str, List[str]]] = None,
        trust_on_first_use: bool = True,
        retries: int = 1,
        retry_delay: float = 1.0,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(timeout=timeout)
        self.user = user
        self.private_key = private_key
        self.port = port
        self.trust_on_first_use = trust_on_first_use
        self.retries = retries
        self.retry_delay = retry_delay
        self._host_keys: Dict[str, List[str]] = dict(host_keys or {})
        self._host_locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(cls, settings: BootstrapSettings) -> SSHExecutor:
        key_path = Path(os.path.expanduser(settings.ssh_private_key_path))
        return cls(
            user=settings.ssh_user,
            private_key=key_path.read_text(encoding="utf-8"),
            port=settings.ssh_port,
            trust_on_first_use=settings.trust_on_first_use,
            retries=settings.ssh_retries,
            retry_delay=settings.ssh_retry_delay,
            timeout=settings.command_timeout_seconds,
        )

    async def ssh_config_for(self, machine: Machine) -> SSHConfig:
        """Build a strict SSHConfig for `machine`, learning its host key if allowed."""
        cfg = SSHConfig(
            user=self.user,
            hostname=machine.ip,
            port=self.port,
            private_key=self.private_key,
        )
        lock = self._host_locks.setdefault(machine.ip, asyncio.Lock())
        async with lock:
            if machine.ip not in self._host_keys:
                if not self.trust_on_first_use:
                    raise CommandError(
                        f"No known host keys for {machine.ip} and trust on first use is disabled."
                    )
                logger.info("Learning host key for %s (trust on first use)", machine.ip)
                self._host_keys[machine.ip] = await ssh_get_server_key(
                    cfg,
                    retries=self.retries,
                    retry_delay=self.retry_delay,
                    timeout=self.timeout,
                )
        return cfg.with_host_keys(self._host_keys[machine.ip])

    async def _run(self, machine: Machine, command: str) -> str:
        cfg = await self.ssh_config_for(machine)
        return await run_ssh_command(
            cfg,
            command,
            retries=self.retries,
            retry_delay=self.retry_delay,
            timeout=self.timeout,
        )

    async def _write_artifact(self, machine: Machine, path: str, content: str) -> None:
        cfg = await self.ssh_config_for(machine)
        # Content travels on stdin, so it never passes through shell quoting.
        await run_ssh_command(
            cfg,
            f"cat > {shlex.quote(path)}",
            input_data=content,
            retries=self.retries,
            retry_delay=self.retry_delay,
            timeout=self.timeout,
        )
