"""
kubeboot/models/cluster.py

Describes a whole cluster to bootstrap: which machine is the master, which are
workers, and the network parameters. Loaded from YAML by the CLI, e.g.:

    master:
      ip: 10.0.0.1
      hostname: master-1
    workers:
      - ip: 10.0.0.2
        hostname: worker-1
        labels: {zone: a}
    pod_cidr: 10.244.0.0/16
    service_cidr: 10.96.0.0/12
    overlay:
      network_mode: vxlan
"""

from __future__ import annotations

from typing import List
import yaml
from pydantic import BaseModel, Field, model_validator

from kubeboot.models.bootstrap import (
    InitParameters,
    NetworkMode,
    NetworkOverlayParameters,
)
from kubeboot.models.machine import Machine


class OverlayDescription(BaseModel):
    """Overlay settings; the pod CIDR comes from the enclosing description."""

    network_mode: NetworkMode = NetworkMode.VXLAN
    access_key: str = ""
    access_secret: str = Field(default="", repr=False)


class ClusterDescription(BaseModel):
    """
    One master, zero or more workers, and the networks they share.

    After initialization we verify that no hostname or IP is used twice, since
    a machine's role is fixed for the whole attempt.
    """

    master: Machine
    workers: List[Machine] = Field(default_factory=list)
    pod_cidr: str = "10.244.0.0/16"
    service_cidr: str = "10.96.0.0/12"
    overlay: OverlayDescription = Field(default_factory=OverlayDescription)

    @model_validator(mode="after")
    def check_unique_machines(self) -> ClusterDescription:
        machines = self.machines
        ips = [m.ip for m in machines]
        names = [m.node_name for m in machines]
        if len(ips) != len(set(ips)) or len(names) != len(set(names)):
            raise ValueError("Duplicate machine IP or hostname in cluster description.")
        return self

    @property
    def machines(self) -> List[Machine]:
        return [self.master] + list(self.workers)

    def init_parameters(self) -> InitParameters:
        return InitParameters(
            master_ip=self.master.ip,
            pod_cidr=self.pod_cidr,
            service_cidr=self.service_cidr,
        )

    def overlay_parameters(self) -> NetworkOverlayParameters:
        return NetworkOverlayParameters(
            pod_cidr=self.pod_cidr,
            access_key=self.overlay.access_key,
            access_secret=self.overlay.access_secret,
            network_mode=self.overlay.network_mode,
        )

    def to_yaml(self, *, sort_keys: bool = False) -> str:
        """
        Serialize this ClusterDescription to a YAML string using PyYAML.
        """
        return yaml.safe_dump(self.model_dump(mode="json"), sort_keys=sort_keys)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> ClusterDescription:
        """
        Deserialize a ClusterDescription from a YAML string.
        """
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data)
