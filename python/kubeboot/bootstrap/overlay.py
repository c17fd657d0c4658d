"""
kubeboot/bootstrap/overlay.py

Installs the flannel pod network once the control plane is up.
"""

from __future__ import annotations

import logging

from kubeboot.bootstrap.reset import OVERLAY_MANIFEST_PATH
from kubeboot.bootstrap.templates import OVERLAY_MANIFEST, render
from kubeboot.models.bootstrap import NetworkOverlayParameters
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor

logger = logging.getLogger(__name__)


async def install_overlay(
    executor: RemoteExecutor,
    machine: Machine,
    parameters: NetworkOverlayParameters,
) -> str:
    """
    Render the flannel manifest, ship it to `machine` and apply it.

    The manifest embeds the access secret, so it is never logged.

    Returns:
        The `kubectl apply` output.

    Raises:
        TemplateError: If the manifest cannot be rendered.
        CommandError: If writing or applying the manifest fails.
    """
    manifest = render(OVERLAY_MANIFEST, parameters)
    await executor.write_artifact(machine, OVERLAY_MANIFEST_PATH, manifest)
    logger.info(
        "Applying flannel (%s backend, %s) on %s",
        parameters.network_mode.value,
        parameters.pod_cidr,
        machine.ip,
    )
    return await executor.run(machine, f"kubectl apply -f {OVERLAY_MANIFEST_PATH}")
