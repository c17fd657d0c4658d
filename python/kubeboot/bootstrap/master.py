"""
kubeboot/bootstrap/master.py

Stands up the control plane on the designated master.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from kubeboot.bootstrap.reset import DEFAULT_KUBERNETES_VERSION, reset_machine
from kubeboot.bootstrap.templates import INIT_COMMAND, render
from kubeboot.models.bootstrap import InitParameters, StepOutcome
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor

logger = logging.getLogger(__name__)


async def initialize_master(
    executor: RemoteExecutor,
    machine: Machine,
    pod_cidr: str,
    service_cidr: str,
    *,
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION,
    reset_outcomes: Optional[List[StepOutcome]] = None,
) -> str:
    """
    Reset `machine`, then run `kubeadm init` on it.

    Args:
        executor: Remote execution port.
        machine: The master.
        pod_cidr: Pod network; must not overlap `service_cidr`.
        service_cidr: Service network.
        kubernetes_version: Package stream used if tooling must be installed.
        reset_outcomes: If given, the reset step outcomes are appended to it.

    Returns:
        The raw console output of `kubeadm init`, unparsed.

    Raises:
        TemplateError: If the init command cannot be rendered.
        CommandError: If running the init command fails.
    """
    outcomes = await reset_machine(executor, machine, kubernetes_version)
    if reset_outcomes is not None:
        reset_outcomes.extend(outcomes)

    init_command = render_init_command(machine, pod_cidr, service_cidr)
    logger.info("Running kubeadm init on %s", machine.ip)
    return await executor.run(machine, init_command)


def render_init_command(machine: Machine, pod_cidr: str, service_cidr: str) -> str:
    params = InitParameters(
        master_ip=machine.ip, pod_cidr=pod_cidr, service_cidr=service_cidr
    )
    return render(INIT_COMMAND, params)
