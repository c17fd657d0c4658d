"""
Bootstraps a kubeadm cluster over already-provisioned machines. Remote access goes
through a RemoteExecutor (normally kubeboot.remote.ssh.SSHExecutor); each step lives
in kubeboot.bootstrap.

Master path, strictly in order:
  1) Reset the master, run `kubeadm init`            -> RESET, INITIALIZED
  2) Parse the control-plane and worker join commands -> TOKENS_EXTRACTED
  3) Ship and apply the flannel manifest              -> OVERLAY_INSTALLED
  4) Fetch and validate the admin kubeconfig          -> CREDENTIALS_RETRIEVED
  5) Reset + join every worker, bounded in parallel   -> WORKERS_JOINED
  6) Apply node labels                                -> LABELED
  7) Remove the control-plane NoSchedule taint        -> TAINT_REMOVED

A hard failure stops the attempt and propagates unchanged; a result object
passed in as `result` still records the last stage reached. There is no
rollback. Re-running the whole attempt is safe because every path starts with
a reset.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from kubeboot.bootstrap.credentials import retrieve_credentials
from kubeboot.bootstrap.join import extract_join_commands, join_worker, request_join_token
from kubeboot.bootstrap.labels import apply_labels, remove_master_taint
from kubeboot.bootstrap.master import initialize_master
from kubeboot.bootstrap.overlay import install_overlay
from kubeboot.bootstrap.reset import reset_machine
from kubeboot.models.bootstrap import (
    BootstrapStage,
    ClusterBootstrapResult,
    InitParameters,
    JoinCommand,
    JoinRole,
    NetworkOverlayParameters,
    StepOutcome,
)
from kubeboot.models.machine import Machine
from kubeboot.models.settings import BootstrapSettings
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.utils.bounded_gather import bounded_gather

logger = logging.getLogger(__name__)


async def bootstrap_cluster(
    executor: RemoteExecutor,
    master: Machine,
    workers: Sequence[Machine],
    init_params: InitParameters,
    overlay_params: NetworkOverlayParameters,
    settings: Optional[BootstrapSettings] = None,
    *,
    result: Optional[ClusterBootstrapResult] = None,
) -> ClusterBootstrapResult:
    """
    Run one full bootstrap attempt.

    Args:
        executor: Remote execution port shared by all machines.
        master: The control-plane machine. kubeadm advertises its IP.
        workers: Machines to join as workers (may be empty).
        init_params: Pod/service networks (must not overlap).
        overlay_params: flannel settings.
        settings: Worker fan-out limit and tooling version. Defaults from environment.
        result: Optional result object to fill in, so callers can inspect the
            reached stage even when a hard failure is raised.

    Returns:
        The filled-in ClusterBootstrapResult, at stage TAINT_REMOVED.

    Raises:
        TemplateError, CommandError, InsufficientJoinCommandsError,
        InvalidCredentialFormatError: hard failures, unchanged.
    """
    settings = settings or BootstrapSettings()
    result = result if result is not None else ClusterBootstrapResult()

    def _advance(stage: BootstrapStage) -> None:
        result.stage = stage
        logger.info("Bootstrap of %s reached stage %s", master.ip, stage.value)

    if init_params.master_ip != master.ip:
        logger.warning(
            "InitParameters.master_ip %s differs from master %s; advertising %s",
            init_params.master_ip,
            master.ip,
            master.ip,
        )

    reset_outcomes: List[StepOutcome] = []
    try:
        init_output = await initialize_master(
            executor,
            master,
            init_params.pod_cidr,
            init_params.service_cidr,
            kubernetes_version=settings.kubernetes_version,
            reset_outcomes=reset_outcomes,
        )
    finally:
        result.outcomes.extend(reset_outcomes)
        if reset_outcomes:
            _advance(BootstrapStage.RESET)
    _advance(BootstrapStage.INITIALIZED)

    result.master_join, result.worker_join = extract_join_commands(init_output)
    _advance(BootstrapStage.TOKENS_EXTRACTED)

    await install_overlay(executor, master, overlay_params)
    _advance(BootstrapStage.OVERLAY_INSTALLED)

    result.credentials = await retrieve_credentials(executor, master)
    _advance(BootstrapStage.CREDENTIALS_RETRIEVED)

    result.outcomes.extend(
        await join_workers(executor, workers, result.worker_join, settings)
    )
    _advance(BootstrapStage.WORKERS_JOINED)

    result.outcomes.extend(
        await apply_labels(
            executor, master, [master, *workers], limit=settings.max_concurrency
        )
    )
    _advance(BootstrapStage.LABELED)

    result.outcomes.append(await remove_master_taint(executor, master))
    _advance(BootstrapStage.TAINT_REMOVED)

    if result.failures:
        logger.warning(
            "Bootstrap of %s finished with %d failed best-effort step(s)",
            master.ip,
            len(result.failures),
        )
    return result


async def join_workers(
    executor: RemoteExecutor,
    workers: Sequence[Machine],
    join_command: JoinCommand,
    settings: Optional[BootstrapSettings] = None,
) -> List[StepOutcome]:
    """
    Reset and join every worker with at most `settings.max_concurrency` in flight.
    A worker that fails to join is reported as a failed "join" outcome; the
    others carry on.
    """
    settings = settings or BootstrapSettings()

    async def _one(worker: Machine) -> List[StepOutcome]:
        return await join_worker(
            executor, worker, join_command, kubernetes_version=settings.kubernetes_version
        )

    results = await bounded_gather(workers, _one, limit=settings.max_concurrency)
    return _flatten(workers, results, failed_step="join")


async def add_workers(
    executor: RemoteExecutor,
    master: Machine,
    workers: Sequence[Machine],
    settings: Optional[BootstrapSettings] = None,
) -> List[StepOutcome]:
    """
    Join workers to an existing cluster using a freshly minted token, then
    apply their labels.

    Raises:
        CommandError, JoinTokenError: If no join command can be obtained.
    """
    settings = settings or BootstrapSettings()
    printed = await request_join_token(executor, master)
    join_command = JoinCommand(command=printed, role=JoinRole.WORKER)
    outcomes = await join_workers(executor, workers, join_command, settings)
    outcomes.extend(
        await apply_labels(executor, master, workers, limit=settings.max_concurrency)
    )
    return outcomes


async def reset_machines(
    executor: RemoteExecutor,
    machines: Sequence[Machine],
    settings: Optional[BootstrapSettings] = None,
) -> List[StepOutcome]:
    """Reset many machines in parallel, bounded by `settings.max_concurrency`."""
    settings = settings or BootstrapSettings()

    async def _one(machine: Machine) -> List[StepOutcome]:
        return await reset_machine(executor, machine, settings.kubernetes_version)

    results = await bounded_gather(machines, _one, limit=settings.max_concurrency)
    return _flatten(machines, results, failed_step="reset")


def _flatten(
    machines: Sequence[Machine],
    results: Sequence[Union[List[StepOutcome], BaseException]],
    *,
    failed_step: str,
) -> List[StepOutcome]:
    outcomes: List[StepOutcome] = []
    for machine, res in zip(machines, results):
        if isinstance(res, BaseException):
            if not isinstance(res, Exception):
                raise res
            logger.warning("%s failed on %s: %s", failed_step, machine.ip, res)
            outcomes.append(
                StepOutcome(step=failed_step, target=machine.ip, ok=False, error=str(res))
            )
        else:
            outcomes.extend(res)
    return outcomes
