"""
kubeboot/bootstrap/reset.py

Drives a machine back to a clean, kubeadm-ready baseline. Every step is
best-effort: a failing step is recorded as a StepOutcome and the sequence
continues. Calling reset repeatedly is safe from any state:

  1) Install the bootstrap script unless `init.sh` is already present.
  2) `kubeadm reset`, auto-confirmed.
  3) Remove the cached kubeconfig and any shipped flannel manifest.
  4) Tear down the flannel/CNI interfaces and state, stop kubelet.
"""

from __future__ import annotations

import logging
from typing import List

from kubeboot.bootstrap.templates import BOOTSTRAP_SCRIPT, render
from kubeboot.models.bootstrap import StepOutcome
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.utils.async_command_runner import CommandError

logger = logging.getLogger(__name__)

BOOTSTRAP_MARKER = "init.sh"
KUBECONFIG_DIR = ".kube"
OVERLAY_MANIFEST_PATH = "flannel.yaml"
DEFAULT_KUBERNETES_VERSION = "v1.29"

# Ordered teardown; each entry runs even if an earlier one failed.
TEARDOWN_STEPS = [
    ("kubeadm-reset", "echo y | kubeadm reset"),
    ("remove-local-state", f"rm -rf {KUBECONFIG_DIR} {OVERLAY_MANIFEST_PATH}"),
    ("delete-cni0", "ip link set cni0 down && ip link delete cni0"),
    ("delete-flannel.1", "ip link set flannel.1 down && ip link delete flannel.1"),
    ("remove-cni-state", "rm -rf /var/lib/cni/ && rm -f /etc/cni/net.d/*"),
    ("stop-kubelet", "systemctl stop kubelet"),
]


async def run_best_effort(
    executor: RemoteExecutor, machine: Machine, step: str, command: str
) -> StepOutcome:
    """
    Run one command, converting a transport failure into a failed StepOutcome.
    """
    try:
        output = await executor.run(machine, command)
    except CommandError as exc:
        logger.warning("Step %s failed on %s: %s", step, machine.ip, exc)
        return StepOutcome(step=step, target=machine.ip, ok=False, error=str(exc))
    return StepOutcome(step=step, target=machine.ip, ok=True, output=output)


async def install_bootstrap(
    executor: RemoteExecutor,
    machine: Machine,
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION,
) -> List[StepOutcome]:
    """
    Install container runtime and kubeadm tooling once per machine.

    The marker file only appears after the script succeeded: the script is
    shipped under a temporary name and renamed on success, so a failed install
    is retried by the next reset.

    Raises:
        TemplateError: If the bootstrap script cannot be rendered.
    """
    listing = await run_best_effort(executor, machine, "check-bootstrap", "ls -lah")
    if not listing.ok:
        return [listing]

    if BOOTSTRAP_MARKER in listing.output.split():
        logger.debug("Bootstrap already installed on %s", machine.ip)
        return [
            listing,
            StepOutcome(
                step="install-bootstrap",
                target=machine.ip,
                ok=True,
                output="skipped: already installed",
            ),
        ]

    script = render(BOOTSTRAP_SCRIPT, {"kubernetes_version": kubernetes_version})
    partial = f"{BOOTSTRAP_MARKER}.partial"
    try:
        await executor.write_artifact(machine, partial, script)
    except CommandError as exc:
        logger.warning("Could not ship bootstrap script to %s: %s", machine.ip, exc)
        return [
            listing,
            StepOutcome(
                step="write-bootstrap", target=machine.ip, ok=False, error=str(exc)
            ),
        ]

    logger.info("Installing kubeadm tooling on %s", machine.ip)
    installed = await run_best_effort(
        executor,
        machine,
        "install-bootstrap",
        f"sh {partial} && mv -f {partial} {BOOTSTRAP_MARKER}",
    )
    return [listing, installed]


async def reset_machine(
    executor: RemoteExecutor,
    machine: Machine,
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION,
) -> List[StepOutcome]:
    """
    Reset `machine` to a known baseline.

    Returns:
        One StepOutcome per remote step, in execution order. Failures are
        reported here and logged, never raised.

    Raises:
        TemplateError: If the bootstrap script cannot be rendered.
    """
    logger.info("Resetting %s (%s)", machine.hostname, machine.ip)
    outcomes = await install_bootstrap(executor, machine, kubernetes_version)
    for step, command in TEARDOWN_STEPS:
        outcomes.append(await run_best_effort(executor, machine, step, command))
    return outcomes
