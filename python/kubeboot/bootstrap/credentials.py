"""
kubeboot/bootstrap/credentials.py

Fetches the admin kubeconfig generated by kubeadm on the master.
"""

from __future__ import annotations

from pydantic import ValidationError

from kubeboot.bootstrap.errors import InvalidCredentialFormatError
from kubeboot.models.bootstrap import (
    ADMIN_IDENTITY_MARKER,
    CERTIFICATE_DATA_MARKER,
    CredentialBundle,
)
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor

FETCH_KUBECONFIG = (
    "mkdir -p $HOME/.kube"
    " && sudo cp -f /etc/kubernetes/admin.conf $HOME/.kube/config"
    " && sudo chown $(id -u):$(id -g) $HOME/.kube/config"
    " && cat $HOME/.kube/config"
)


def validate_credentials(text: str) -> CredentialBundle:
    """
    Wrap `text` in a CredentialBundle, unmodified.

    Raises:
        InvalidCredentialFormatError: If the admin identity or certificate data
            marker is missing.
    """
    try:
        return CredentialBundle(kubeconfig=text)
    except ValidationError as exc:
        raise InvalidCredentialFormatError(
            f"kubeconfig format is wrong: expected '{ADMIN_IDENTITY_MARKER}' "
            f"and '{CERTIFICATE_DATA_MARKER}'"
        ) from exc


async def retrieve_credentials(executor: RemoteExecutor, machine: Machine) -> CredentialBundle:
    """
    Copy admin.conf into the remote user's ~/.kube and return its contents.

    Raises:
        CommandError: If the remote call fails.
        InvalidCredentialFormatError: If the output is not an admin kubeconfig.
    """
    result = await executor.run(machine, FETCH_KUBECONFIG)
    return validate_credentials(result)
