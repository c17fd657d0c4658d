"""
kubeboot/models/machine.py

Defines the Pydantic model for a machine that takes part in a cluster bootstrap.
Machines are created by the provisioning layer and only consumed here: nothing
in kubeboot mutates a Machine locally, all changes happen on the host itself.
"""

from __future__ import annotations

from typing import Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Machine(BaseModel):
    """
    A single already-provisioned host.

    Attributes:
        ip: Address used to reach the machine and advertised by the API server.
        hostname: Hostname as reported by the provider, possibly fully qualified.
        labels: Node label key => value, applied once the node joins the cluster.
    """

    model_config = ConfigDict(frozen=True)

    ip: str
    hostname: str
    labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator("ip", "hostname")
    @classmethod
    def validate_not_blank(cls, val: str) -> str:
        if not val.strip():
            raise ValueError("must be a non-empty string")
        return val.strip()

    @property
    def node_name(self) -> str:
        """The node name kubelet registers for this machine."""
        return canonical_hostname(self.hostname)


def canonical_hostname(hostname: str) -> str:
    """
    Lower-case the hostname and strip any domain part, which is how kubelet
    names the node by default.

    >>> canonical_hostname("Worker-1.EC2.Internal")
    'worker-1'
    """
    return hostname.strip().split(".", 1)[0].lower()
