"""
kubeboot/remote/registry.py

An explicit registry of remote executor drivers (name => factory). A registry
is a plain value built at process start and handed to whoever needs to create
executors; there is no module-level mutable map. Registration is guarded by a
lock and can be frozen once start-up is complete.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, List

from kubeboot.models.settings import BootstrapSettings
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.remote.ssh import SSHExecutor

ExecutorFactory = Callable[[BootstrapSettings], RemoteExecutor]


class RegistryError(Exception):
    """Base class for driver registry errors."""


class RegistryFrozenError(RegistryError):
    """Raised when registering into a frozen registry."""


class UnknownDriverError(RegistryError):
    """Raised when asking for a driver name that was never registered."""


class ExecutorRegistry:
    """Thread-safe name => executor factory mapping."""

    def __init__(self) -> None:
        self._factories: Dict[str, ExecutorFactory] = {}
        self._lock = threading.Lock()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, name: str, factory: ExecutorFactory) -> None:
        """
        Register `factory` under `name`, replacing any previous entry.

        Raises:
            RegistryFrozenError: If `freeze()` has been called.
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register driver '{name}': registry is frozen."
                )
            self._factories[name] = factory

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._factories)

    def create(self, name: str, settings: BootstrapSettings) -> RemoteExecutor:
        """
        Build an executor from `settings` with the factory registered under `name`.

        Raises:
            UnknownDriverError: If no such driver exists.
        """
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            raise UnknownDriverError(
                f"Unknown executor driver '{name}'. Known drivers: {self.names()}"
            )
        return factory(settings)


def default_registry() -> ExecutorRegistry:
    """A fresh registry with the built-in `ssh` driver."""
    registry = ExecutorRegistry()
    registry.register("ssh", SSHExecutor.from_settings)
    return registry
