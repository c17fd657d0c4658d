"""Pytest configuration and fixtures for kubeboot tests."""

import os
import asyncio
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

import pytest

# Keep settings deterministic regardless of the developer's environment.
os.environ.setdefault("KUBEBOOT_MAX_CONCURRENCY", "4")
os.environ.setdefault("KUBEBOOT_COMMAND_TIMEOUT_SECONDS", "30")

from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.utils.async_command_runner import CommandError

Response = Union[str, Exception, Callable[[Machine, str], str]]

JOIN_MASTER = (
    "  kubeadm join 10.0.0.1:6443 --token abcdef.0123456789abcdef \\\n"
    "\t--discovery-token-ca-cert-hash sha256:1111 \\\n"
    "\t--control-plane --certificate-key 2222"
)
JOIN_WORKER = (
    "kubeadm join 10.0.0.1:6443 --token abcdef.0123456789abcdef \\\n"
    "\t--discovery-token-ca-cert-hash sha256:1111 "
)

INIT_OUTPUT = (
    "[init] Using Kubernetes version: v1.29.3\n"
    "Your Kubernetes control-plane has initialized successfully!\n"
    "\n"
    "You can now join any number of the control-plane node running the following"
    " command on each as root:\n"
    "\n"
    f"{JOIN_MASTER}\n"
    "\n"
    "Then you can join any number of worker nodes by running the following on each"
    " as root:\n"
    "\n"
    f"{JOIN_WORKER}\n"
)

KUBECONFIG = (
    "apiVersion: v1\n"
    "clusters:\n"
    "- cluster:\n"
    "    certificate-authority-data: LS0tLS1CRUdJTg==\n"
    "    server: https://10.0.0.1:6443\n"
    "  name: kubernetes\n"
    "users:\n"
    "- name: kubernetes-admin\n"
    "  user:\n"
    "    client-certificate-data: LS0tLS1DRVJU\n"
    "    client-key-data: LS0tLS1LRVk=\n"
)


class FakeHost:
    """Observable state of one simulated machine."""

    def __init__(self) -> None:
        self.files: Set[str] = {".bashrc"}
        self.interfaces: Set[str] = {"cni0", "flannel.1"}
        self.install_fails = False


class FakeExecutor(RemoteExecutor):
    """
    In-memory remote executor. Simulates just enough of a host for the reset
    sequence; every other command is answered from `responses`, matched by
    substring in insertion order, defaulting to empty output.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        super().__init__(timeout=timeout)
        self.hosts: Dict[str, FakeHost] = {}
        self.responses: Dict[str, Response] = {}
        self.commands: List[Tuple[str, str]] = []
        self.artifacts: Dict[Tuple[str, str], str] = {}
        self.write_errors: Dict[str, Exception] = {}

    def host(self, machine: Machine) -> FakeHost:
        return self.hosts.setdefault(machine.ip, FakeHost())

    def commands_for(self, machine: Machine) -> List[str]:
        return [cmd for ip, cmd in self.commands if ip == machine.ip]

    async def _run(self, machine: Machine, command: str) -> str:
        self.commands.append((machine.ip, command))
        await asyncio.sleep(0)
        host = self.host(machine)

        for needle, response in self.responses.items():
            if needle in command:
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(machine, command)
                return response

        if command == "ls -lah":
            return "total 8\n" + "".join(
                f"-rw-r--r-- 1 root root 10 Jan 1 00:00 {name}\n"
                for name in sorted(host.files)
            )
        if command.startswith("sh init.sh.partial"):
            if host.install_fails:
                raise CommandError("Command failed with return code 100.", 100)
            host.files.discard("init.sh.partial")
            host.files.add("init.sh")
            return "installed\n"
        if command.startswith("rm -rf .kube"):
            host.files -= {".kube", "flannel.yaml"}
            return ""
        for iface in ("cni0", "flannel.1"):
            if command.startswith(f"ip link set {iface} down"):
                if iface not in host.interfaces:
                    raise CommandError(f'Cannot find device "{iface}"', 1)
                host.interfaces.discard(iface)
                return ""
        return ""

    async def _write_artifact(self, machine: Machine, path: str, content: str) -> None:
        self.commands.append((machine.ip, f"<write {path}>"))
        if machine.ip in self.write_errors:
            raise self.write_errors[machine.ip]
        self.artifacts[(machine.ip, path)] = content
        self.host(machine).files.add(path)


@pytest.fixture
def executor():
    """A fresh in-memory executor."""
    return FakeExecutor()


@pytest.fixture
def master():
    return Machine(ip="10.0.0.1", hostname="Master-1.Cluster.Local", labels={"role": "cp"})


@pytest.fixture
def workers():
    return [
        Machine(ip="10.0.0.2", hostname="w1", labels={"zone": "a"}),
        Machine(ip="10.0.0.3", hostname="w2", labels={"zone": "a", "tier": "gpu"}),
    ]


@pytest.fixture
def init_output():
    return INIT_OUTPUT


@pytest.fixture
def kubeconfig():
    return KUBECONFIG


@pytest.fixture
def fake_executor_cls():
    """The FakeExecutor class itself, for tests that subclass it."""
    return FakeExecutor
