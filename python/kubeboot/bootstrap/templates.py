"""
kubeboot/bootstrap/templates.py

Named jinja2 templates for the text we ship to machines, plus `render`, the only
way to turn them into concrete commands and manifests. Rendering is pure: no
network or filesystem access, and any undeclared field is an error rather than
an empty string (StrictUndefined).

Templates and the fields they use:
  - init-command:     master_ip, pod_cidr, service_cidr
  - overlay-manifest: pod_cidr, access_key, access_secret, network_mode
  - bootstrap-script: kubernetes_version
"""

from __future__ import annotations

import textwrap
from typing import Any, Dict, Mapping, Set, Union

import jinja2
import jinja2.meta
from pydantic import BaseModel

from kubeboot.bootstrap.errors import TemplateError

INIT_COMMAND = "init-command"
OVERLAY_MANIFEST = "overlay-manifest"
BOOTSTRAP_SCRIPT = "bootstrap-script"

_INIT_COMMAND = (
    "kubeadm init"
    " --apiserver-advertise-address={{ master_ip }}"
    " --control-plane-endpoint={{ master_ip }}:6443"
    " --pod-network-cidr={{ pod_cidr }}"
    " --service-cidr={{ service_cidr }}"
    " --upload-certs"
)

_BOOTSTRAP_SCRIPT = textwrap.dedent(
    """\
    #!/usr/bin/env bash
    # Prepares an Ubuntu host for kubeadm. Safe to re-run.
    set -eux

    swapoff -a
    sed -i.bak '/\\sswap\\s/s/^/#/g' /etc/fstab

    cat <<'MODULES' > /etc/modules-load.d/k8s.conf
    overlay
    br_netfilter
    MODULES
    modprobe overlay
    modprobe br_netfilter

    cat <<'SYSCTL' > /etc/sysctl.d/99-kubernetes.conf
    net.ipv4.ip_forward=1
    net.bridge.bridge-nf-call-iptables=1
    net.bridge.bridge-nf-call-ip6tables=1
    SYSCTL
    sysctl --system

    apt-get update -y
    apt-get install -y apt-transport-https ca-certificates curl gpg containerd
    mkdir -p /etc/containerd /etc/apt/keyrings
    containerd config default | sed 's/SystemdCgroup = false/SystemdCgroup = true/' > /etc/containerd/config.toml
    systemctl restart containerd
    systemctl enable containerd

    curl -fsSL https://pkgs.k8s.io/core:/stable:/{{ kubernetes_version }}/deb/Release.key \\
      | gpg --dearmor --yes -o /etc/apt/keyrings/kubernetes-apt-keyring.gpg
    echo 'deb [signed-by=/etc/apt/keyrings/kubernetes-apt-keyring.gpg] https://pkgs.k8s.io/core:/stable:/{{ kubernetes_version }}/deb/ /' \\
      > /etc/apt/sources.list.d/kubernetes.list
    apt-get update -y
    apt-get install -y kubelet kubeadm kubectl
    apt-mark hold kubelet kubeadm kubectl
    systemctl enable kubelet
    """
)

_OVERLAY_MANIFEST = textwrap.dedent(
    """\
    apiVersion: v1
    kind: Namespace
    metadata:
      name: kube-flannel
      labels:
        pod-security.kubernetes.io/enforce: privileged
    ---
    apiVersion: v1
    kind: ServiceAccount
    metadata:
      name: flannel
      namespace: kube-flannel
    ---
    kind: ClusterRole
    apiVersion: rbac.authorization.k8s.io/v1
    metadata:
      name: flannel
    rules:
    - apiGroups: [""]
      resources: ["pods"]
      verbs: ["get"]
    - apiGroups: [""]
      resources: ["nodes"]
      verbs: ["get", "list", "watch"]
    - apiGroups: [""]
      resources: ["nodes/status"]
      verbs: ["patch"]
    ---
    kind: ClusterRoleBinding
    apiVersion: rbac.authorization.k8s.io/v1
    metadata:
      name: flannel
    roleRef:
      apiGroup: rbac.authorization.k8s.io
      kind: ClusterRole
      name: flannel
    subjects:
    - kind: ServiceAccount
      name: flannel
      namespace: kube-flannel
    ---
    apiVersion: v1
    kind: Secret
    metadata:
      name: flannel-cloud-credentials
      namespace: kube-flannel
    type: Opaque
    stringData:
      access-key-id: {{ access_key | tojson }}
      access-key-secret: {{ access_secret | tojson }}
    ---
    kind: ConfigMap
    apiVersion: v1
    metadata:
      name: kube-flannel-cfg
      namespace: kube-flannel
      labels:
        app: flannel
    data:
      cni-conf.json: |
        {
          "name": "cbr0",
          "cniVersion": "0.3.1",
          "plugins": [
            {"type": "flannel", "delegate": {"hairpinMode": true, "isDefaultGateway": true}},
            {"type": "portmap", "capabilities": {"portMappings": true}}
          ]
        }
      net-conf.json: |
        {
          "Network": {{ pod_cidr | tojson }},
          "Backend": {
            "Type": {{ network_mode | tojson }}
          }
        }
    ---
    apiVersion: apps/v1
    kind: DaemonSet
    metadata:
      name: kube-flannel-ds
      namespace: kube-flannel
      labels:
        app: flannel
    spec:
      selector:
        matchLabels:
          app: flannel
      template:
        metadata:
          labels:
            app: flannel
        spec:
          hostNetwork: true
          priorityClassName: system-node-critical
          tolerations:
          - operator: Exists
            effect: NoSchedule
          serviceAccountName: flannel
          initContainers:
          - name: install-cni-plugin
            image: docker.io/flannel/flannel-cni-plugin:v1.4.0-flannel1
            command: ["cp"]
            args: ["-f", "/flannel", "/opt/cni/bin/flannel"]
            volumeMounts:
            - name: cni-plugin
              mountPath: /opt/cni/bin
          - name: install-cni
            image: docker.io/flannel/flannel:v0.24.2
            command: ["cp"]
            args: ["-f", "/etc/kube-flannel/cni-conf.json", "/etc/cni/net.d/10-flannel.conflist"]
            volumeMounts:
            - name: cni
              mountPath: /etc/cni/net.d
            - name: flannel-cfg
              mountPath: /etc/kube-flannel/
          containers:
          - name: kube-flannel
            image: docker.io/flannel/flannel:v0.24.2
            command: ["/opt/bin/flanneld"]
            args: ["--ip-masq", "--kube-subnet-mgr"]
            securityContext:
              privileged: false
              capabilities:
                add: ["NET_ADMIN", "NET_RAW"]
            env:
            - name: POD_NAME
              valueFrom:
                fieldRef:
                  fieldPath: metadata.name
            - name: POD_NAMESPACE
              valueFrom:
                fieldRef:
                  fieldPath: metadata.namespace
            - name: ACCESS_KEY_ID
              valueFrom:
                secretKeyRef:
                  name: flannel-cloud-credentials
                  key: access-key-id
            - name: ACCESS_KEY_SECRET
              valueFrom:
                secretKeyRef:
                  name: flannel-cloud-credentials
                  key: access-key-secret
            volumeMounts:
            - name: run
              mountPath: /run/flannel
            - name: flannel-cfg
              mountPath: /etc/kube-flannel/
            - name: xtables-lock
              mountPath: /run/xtables.lock
          volumes:
          - name: run
            hostPath:
              path: /run/flannel
          - name: cni-plugin
            hostPath:
              path: /opt/cni/bin
          - name: cni
            hostPath:
              path: /etc/cni/net.d
          - name: flannel-cfg
            configMap:
              name: kube-flannel-cfg
          - name: xtables-lock
            hostPath:
              path: /run/xtables.lock
              type: FileOrCreate
    """
)

TEMPLATES: Dict[str, str] = {
    INIT_COMMAND: _INIT_COMMAND,
    OVERLAY_MANIFEST: _OVERLAY_MANIFEST,
    BOOTSTRAP_SCRIPT: _BOOTSTRAP_SCRIPT,
}

Parameters = Union[BaseModel, Mapping[str, Any]]


def _environment(templates: Mapping[str, str]) -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.DictLoader(dict(templates)),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )


_ENV = _environment(TEMPLATES)


def render(
    template_name: str,
    parameters: Parameters,
    *,
    env: jinja2.Environment = _ENV,
) -> str:
    """
    Render the named template with `parameters`.

    Args:
        template_name: One of INIT_COMMAND, OVERLAY_MANIFEST, BOOTSTRAP_SCRIPT
            (or a name known to a custom `env`).
        parameters: A pydantic model (dumped in JSON mode, so enums become their
            values) or a plain mapping.
        env: The jinja2 environment holding the templates.

    Returns:
        The rendered text.

    Raises:
        TemplateError: Unknown template, malformed template, or a field the
            template references is missing from `parameters`.
    """
    if isinstance(parameters, BaseModel):
        context: Dict[str, Any] = parameters.model_dump(mode="json")
    else:
        context = dict(parameters)

    try:
        missing = sorted(declared_fields(template_name, env=env) - set(context))
        if missing:
            raise TemplateError(template_name, f"missing field(s): {', '.join(missing)}")
        return env.get_template(template_name).render(**context)
    except jinja2.TemplateNotFound as exc:
        raise TemplateError(template_name, "no such template") from exc
    except jinja2.TemplateSyntaxError as exc:
        raise TemplateError(template_name, f"malformed template: {exc}") from exc
    except jinja2.UndefinedError as exc:
        raise TemplateError(template_name, f"missing field: {exc}") from exc


def declared_fields(
    template_name: str, *, env: jinja2.Environment = _ENV
) -> Set[str]:
    """
    The top-level names the template reads.

    Raises:
        jinja2.TemplateNotFound / jinja2.TemplateSyntaxError: see `render`.
    """
    source, _, _ = env.loader.get_source(env, template_name)
    return jinja2.meta.find_undeclared_variables(env.parse(source))


def environment_for(templates: Mapping[str, str]) -> jinja2.Environment:
    """Build a strict environment over custom templates, e.g. to override a manifest."""
    return _environment(templates)
