"""Tests for the kubeboot CLI entry points."""

import sys
from unittest.mock import patch

import pytest

from kubeboot.cli import bootstrap as cli
from kubeboot.cli import kubebootctl

DESCRIPTION = """
master: {ip: 10.0.0.1, hostname: m1}
workers:
  - {ip: 10.0.0.2, hostname: w1}
pod_cidr: {pod}
service_cidr: 10.96.0.0/12
"""


def _write(tmp_path, pod_cidr="10.244.0.0/16"):
    path = tmp_path / "cluster.yaml"
    path.write_text(DESCRIPTION.replace("{pod}", pod_cidr), encoding="utf-8")
    return str(path)


def test_overlapping_networks_are_refused(tmp_path, capsys):
    path = _write(tmp_path, pod_cidr="10.96.0.0/16")
    with patch.object(sys, "argv", ["kubeboot", "bootstrap", "--file", path]), patch.object(
        cli, "_build_executor"
    ) as build:
        with pytest.raises(SystemExit) as excinfo:
            cli.main()

    assert excinfo.value.code == 1
    assert "overlaps" in capsys.readouterr().err
    build.assert_not_called()


def test_reset_prints_every_step(tmp_path, capsys, executor):
    path = _write(tmp_path)
    with patch.object(sys, "argv", ["kubeboot", "reset", "--file", path]), patch.object(
        cli, "_build_executor", return_value=executor
    ):
        cli.main()

    out = capsys.readouterr().out
    assert "[10.0.0.1] kubeadm-reset: ok" in out
    assert "[10.0.0.2] stop-kubelet: ok" in out


def test_unknown_driver_exits_nonzero(tmp_path, capsys):
    path = _write(tmp_path)
    with patch.object(
        sys, "argv", ["kubeboot", "--driver", "nope", "reset", "--file", path]
    ):
        with pytest.raises(SystemExit):
            cli.main()
    assert "Unknown executor driver" in capsys.readouterr().err


def test_kubebootctl_forwards_to_cli_module():
    argv = ["kubebootctl", "bootstrap", "reset", "--file", "c.yaml"]
    with patch.object(sys, "argv", argv), patch.object(
        kubebootctl.subprocess, "call", return_value=0
    ) as call:
        with pytest.raises(SystemExit) as excinfo:
            kubebootctl.main()

    assert excinfo.value.code == 0
    assert call.call_args.args[0] == [
        sys.executable, "-m", "kubeboot.cli.bootstrap", "reset", "--file", "c.yaml"
    ]


def test_kubebootctl_without_arguments(capsys):
    with patch.object(sys, "argv", ["kubebootctl"]):
        with pytest.raises(SystemExit) as excinfo:
            kubebootctl.main()
    assert excinfo.value.code == 2
    assert "Usage" in capsys.readouterr().err
