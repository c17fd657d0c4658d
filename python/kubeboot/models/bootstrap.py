"""
kubeboot/models/bootstrap.py

Pydantic models for one bootstrap attempt:
 - InitParameters / NetworkOverlayParameters: inputs rendered into templates
 - JoinCommand / CredentialBundle: validated outputs recovered from console text
 - StepOutcome: the result of a best-effort step
 - BootstrapStage / ClusterBootstrapResult: where an attempt ended up
"""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

JOIN_MARKER = "kubeadm join"
ADMIN_IDENTITY_MARKER = "kubernetes-admin"
CERTIFICATE_DATA_MARKER = "client-certificate-data"


class NetworkMode(str, Enum):
    """flannel backend types the overlay manifest knows how to render."""

    VXLAN = "vxlan"
    HOST_GW = "host-gw"
    ALI_VPC = "ali-vpc"


class JoinRole(str, Enum):
    MASTER = "master"
    WORKER = "worker"


class InitParameters(BaseModel):
    """
    Inputs for the control-plane init command.

    The pod and service networks must not overlap. That is the caller's
    responsibility; see `cidrs_overlap` for a helper.
    """

    model_config = ConfigDict(frozen=True)

    master_ip: str
    pod_cidr: str
    service_cidr: str


class NetworkOverlayParameters(BaseModel):
    """
    Inputs for the flannel manifest. The access key/secret are only used by the
    ali-vpc backend but are always rendered into the manifest's secret env.
    """

    model_config = ConfigDict(frozen=True)

    pod_cidr: str
    access_key: str = ""
    access_secret: str = Field(default="", repr=False)
    network_mode: NetworkMode = NetworkMode.VXLAN


class JoinCommand(BaseModel):
    """A trimmed `kubeadm join ...` command bound to the role it joins as."""

    model_config = ConfigDict(frozen=True)

    command: str
    role: JoinRole

    @field_validator("command")
    @classmethod
    def validate_join_marker(cls, val: str) -> str:
        val = val.strip()
        if JOIN_MARKER not in val:
            raise ValueError(f"join command must contain '{JOIN_MARKER}'")
        return val

    def single_line(self) -> str:
        """
        Collapse the backslash continuations kubeadm prints so the command can
        be sent as one shell line.
        """
        parts = [
            part.strip().rstrip("\\").strip() for part in self.command.splitlines()
        ]
        return " ".join(part for part in parts if part)


class CredentialBundle(BaseModel):
    """The admin kubeconfig, exactly as printed by the master."""

    model_config = ConfigDict(frozen=True)

    kubeconfig: str = Field(repr=False)

    @field_validator("kubeconfig")
    @classmethod
    def validate_markers(cls, val: str) -> str:
        if ADMIN_IDENTITY_MARKER not in val or CERTIFICATE_DATA_MARKER not in val:
            raise ValueError(
                f"kubeconfig must contain '{ADMIN_IDENTITY_MARKER}' "
                f"and '{CERTIFICATE_DATA_MARKER}'"
            )
        return val


class StepOutcome(BaseModel):
    """
    Result of one best-effort remote step. Soft failures are reported here
    instead of being raised.
    """

    model_config = ConfigDict(frozen=True)

    step: str
    target: str
    ok: bool
    output: str = ""
    error: Optional[str] = None


class BootstrapStage(str, Enum):
    """Stages of one master-path bootstrap attempt, in order."""

    UNRESET = "unreset"
    RESET = "reset"
    INITIALIZED = "initialized"
    TOKENS_EXTRACTED = "tokens_extracted"
    OVERLAY_INSTALLED = "overlay_installed"
    CREDENTIALS_RETRIEVED = "credentials_retrieved"
    WORKERS_JOINED = "workers_joined"
    LABELED = "labeled"
    TAINT_REMOVED = "taint_removed"


class ClusterBootstrapResult(BaseModel):
    """
    What a bootstrap attempt produced. `stage` is the last stage reached;
    outcomes collect every best-effort step across all machines.
    """

    stage: BootstrapStage = BootstrapStage.UNRESET
    master_join: Optional[JoinCommand] = None
    worker_join: Optional[JoinCommand] = None
    credentials: Optional[CredentialBundle] = None
    outcomes: List[StepOutcome] = Field(default_factory=list)

    @property
    def failures(self) -> List[StepOutcome]:
        return [o for o in self.outcomes if not o.ok]


def cidrs_overlap(pod_cidr: str, service_cidr: str) -> bool:
    """
    Return True if the two networks share any address.

    Raises:
        ValueError: If either value is not a valid CIDR.
    """
    pod_net = ipaddress.ip_network(pod_cidr, strict=False)
    svc_net = ipaddress.ip_network(service_cidr, strict=False)
    if pod_net.version != svc_net.version:
        return False
    return pod_net.overlaps(svc_net)
