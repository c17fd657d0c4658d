"""
kubeboot/bootstrap/labels.py

Node labels and the control-plane taint. Everything here is best-effort: each
command's outcome is returned, a failure never stops the remaining commands.
"""

from __future__ import annotations

import logging
import shlex
from typing import List, Sequence, Tuple

from kubeboot.bootstrap.reset import run_best_effort
from kubeboot.models.bootstrap import StepOutcome
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.utils.bounded_gather import bounded_gather

logger = logging.getLogger(__name__)

# Older clusters label masters with node-role.kubernetes.io/master, newer ones
# with control-plane; select on either label and untaint both keys.
REMOVE_MASTER_TAINT = (
    "{ kubectl get nodes -l node-role.kubernetes.io/control-plane --no-headers;"
    " kubectl get nodes -l node-role.kubernetes.io/master --no-headers; }"
    " | awk '{print $1}' | sort -u"
    " | xargs -r -I {} sh -c"
    " 'kubectl taint nodes {} node-role.kubernetes.io/master:NoSchedule- || true;"
    " kubectl taint nodes {} node-role.kubernetes.io/control-plane:NoSchedule- || true'"
)


def label_command(machine: Machine, key: str, value: str) -> str:
    return (
        f"kubectl label nodes {shlex.quote(machine.node_name)} "
        f"{shlex.quote(f'{key}={value}')} --overwrite"
    )


async def apply_labels(
    executor: RemoteExecutor,
    master: Machine,
    machines: Sequence[Machine],
    *,
    limit: int = 8,
) -> List[StepOutcome]:
    """
    Issue one `kubectl label` on the master per label of every machine, with at
    most `limit` commands in flight.

    Returns:
        One StepOutcome per label command, in (machine, label) order.
    """
    todo: List[Tuple[Machine, str, str]] = [
        (machine, key, value)
        for machine in machines
        for key, value in machine.labels.items()
    ]

    async def _label(item: Tuple[Machine, str, str]) -> StepOutcome:
        machine, key, value = item
        return await run_best_effort(
            executor,
            master,
            f"label {machine.node_name} {key}={value}",
            label_command(machine, key, value),
        )

    outcomes: List[StepOutcome] = []
    for (machine, key, value), res in zip(
        todo, await bounded_gather(todo, _label, limit=limit)
    ):
        if isinstance(res, BaseException):
            if not isinstance(res, Exception):
                raise res
            logger.warning("Labeling %s failed: %s", machine.node_name, res)
            res = StepOutcome(
                step=f"label {machine.node_name} {key}={value}",
                target=master.ip,
                ok=False,
                error=str(res),
            )
        outcomes.append(res)
    return outcomes


async def remove_master_taint(executor: RemoteExecutor, master: Machine) -> StepOutcome:
    """Allow workloads on control-plane nodes by removing the NoSchedule taint."""
    return await run_best_effort(executor, master, "remove-master-taint", REMOVE_MASTER_TAINT)
