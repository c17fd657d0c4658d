"""Tests for kubeboot.bootstrap.templates."""

import pytest
import yaml

from kubeboot.bootstrap.errors import TemplateError
from kubeboot.bootstrap.templates import (
    BOOTSTRAP_SCRIPT,
    INIT_COMMAND,
    OVERLAY_MANIFEST,
    declared_fields,
    environment_for,
    render,
)
from kubeboot.models.bootstrap import InitParameters, NetworkMode, NetworkOverlayParameters

INIT = InitParameters(master_ip="10.0.0.1", pod_cidr="10.244.0.0/16", service_cidr="10.96.0.0/12")


def test_init_command_is_deterministic():
    first = render(INIT_COMMAND, INIT)
    assert first == render(INIT_COMMAND, INIT)
    assert first == render(INIT_COMMAND, INIT.model_dump())


def test_init_command_fields():
    cmd = render(INIT_COMMAND, INIT)
    assert cmd.startswith("kubeadm init")
    assert "--apiserver-advertise-address=10.0.0.1" in cmd
    assert "--pod-network-cidr=10.244.0.0/16" in cmd
    assert "--service-cidr=10.96.0.0/12" in cmd


def test_declared_fields():
    assert declared_fields(INIT_COMMAND) == {"master_ip", "pod_cidr", "service_cidr"}
    assert declared_fields(OVERLAY_MANIFEST) == {
        "pod_cidr",
        "access_key",
        "access_secret",
        "network_mode",
    }
    assert declared_fields(BOOTSTRAP_SCRIPT) == {"kubernetes_version"}


def test_missing_field_fails_instead_of_rendering_empty():
    with pytest.raises(TemplateError) as excinfo:
        render(INIT_COMMAND, {"master_ip": "10.0.0.1", "pod_cidr": "10.244.0.0/16"})
    assert "service_cidr" in str(excinfo.value)
    assert excinfo.value.template_name == INIT_COMMAND


def test_unknown_template():
    with pytest.raises(TemplateError):
        render("no-such-template", {})


def test_malformed_template():
    env = environment_for({"broken": "kubeadm init {{ master_ip "})
    with pytest.raises(TemplateError):
        render("broken", {"master_ip": "10.0.0.1"}, env=env)


def test_undeclared_attribute_fails():
    env = environment_for({"nested": "{{ machine.address }}"})
    with pytest.raises(TemplateError):
        render("nested", {"machine": {}}, env=env)


def test_overlay_manifest_is_valid_yaml_with_parameters():
    params = NetworkOverlayParameters(
        pod_cidr="10.244.0.0/16",
        access_key="AK'1",
        access_secret='S"2',
        network_mode=NetworkMode.ALI_VPC,
    )
    docs = [d for d in yaml.safe_load_all(render(OVERLAY_MANIFEST, params)) if d]

    kinds = [d["kind"] for d in docs]
    assert kinds == [
        "Namespace",
        "ServiceAccount",
        "ClusterRole",
        "ClusterRoleBinding",
        "Secret",
        "ConfigMap",
        "DaemonSet",
    ]
    secret = docs[kinds.index("Secret")]
    assert secret["stringData"] == {"access-key-id": "AK'1", "access-key-secret": 'S"2'}

    config = docs[kinds.index("ConfigMap")]
    net_conf = yaml.safe_load(config["data"]["net-conf.json"])
    assert net_conf == {"Network": "10.244.0.0/16", "Backend": {"Type": "ali-vpc"}}


def test_bootstrap_script_mentions_version():
    script = render(BOOTSTRAP_SCRIPT, {"kubernetes_version": "v1.28"})
    assert script.startswith("#!/usr/bin/env bash")
    assert "core:/stable:/v1.28/deb" in script
    assert "{{" not in script
