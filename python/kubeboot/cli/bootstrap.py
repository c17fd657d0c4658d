#!/usr/bin/env python3
"""
kubeboot/cli/bootstrap.py

CLI for bootstrapping a kubeadm cluster described by a YAML file (see
kubeboot.models.cluster for the format). SSH settings come from KUBEBOOT_*
environment variables (see kubeboot.models.settings).

Example usage:

    python -m kubeboot.cli.bootstrap bootstrap --file cluster.yaml \
        --kubeconfig-out ./admin.conf

    python -m kubeboot.cli.bootstrap reset --file cluster.yaml
    python -m kubeboot.cli.bootstrap join-token --file cluster.yaml
    python -m kubeboot.cli.bootstrap add-workers --file cluster.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List

import aiofiles

from kubeboot.bootstrap.join import request_join_token
from kubeboot.deployment.cluster import add_workers, bootstrap_cluster, reset_machines
from kubeboot.models.bootstrap import ClusterBootstrapResult, StepOutcome, cidrs_overlap
from kubeboot.models.cluster import ClusterDescription
from kubeboot.models.settings import BootstrapSettings
from kubeboot.remote.executor import RemoteExecutor
from kubeboot.remote.registry import default_registry
from kubeboot.utils.logs import configure_logging

logger = logging.getLogger(__name__)


async def _load_description(path: str) -> ClusterDescription:
    async with aiofiles.open(path, "r", encoding="utf-8") as fh:
        return ClusterDescription.from_yaml(await fh.read())


def _build_executor(driver: str, settings: BootstrapSettings) -> RemoteExecutor:
    registry = default_registry()
    registry.freeze()
    return registry.create(driver, settings)


def _print_outcomes(outcomes: List[StepOutcome]) -> None:
    for outcome in outcomes:
        status = "ok" if outcome.ok else f"FAILED ({outcome.error})"
        print(f"  [{outcome.target}] {outcome.step}: {status}")


async def _run_bootstrap(args: argparse.Namespace, settings: BootstrapSettings) -> None:
    desc = await _load_description(args.file)
    if cidrs_overlap(desc.pod_cidr, desc.service_cidr):
        raise ValueError(
            f"pod CIDR {desc.pod_cidr} overlaps service CIDR {desc.service_cidr}"
        )

    executor = _build_executor(args.driver, settings)
    result = ClusterBootstrapResult()
    try:
        await bootstrap_cluster(
            executor,
            desc.master,
            desc.workers,
            desc.init_parameters(),
            desc.overlay_parameters(),
            settings,
            result=result,
        )
    finally:
        print(f"Bootstrap stage reached: {result.stage.value}")
        _print_outcomes(result.outcomes)

    if result.worker_join is not None:
        print("Worker join command:")
        print(result.worker_join.command)
    if args.kubeconfig_out and result.credentials is not None:
        async with aiofiles.open(args.kubeconfig_out, "w", encoding="utf-8") as fh:
            await fh.write(result.credentials.kubeconfig)
        Path(args.kubeconfig_out).chmod(0o600)
        print(f"Admin kubeconfig written to {args.kubeconfig_out}")


async def _run_reset(args: argparse.Namespace, settings: BootstrapSettings) -> None:
    desc = await _load_description(args.file)
    executor = _build_executor(args.driver, settings)
    _print_outcomes(await reset_machines(executor, desc.machines, settings))


async def _run_join_token(args: argparse.Namespace, settings: BootstrapSettings) -> None:
    desc = await _load_description(args.file)
    executor = _build_executor(args.driver, settings)
    print((await request_join_token(executor, desc.master)).strip())


async def _run_add_workers(args: argparse.Namespace, settings: BootstrapSettings) -> None:
    desc = await _load_description(args.file)
    executor = _build_executor(args.driver, settings)
    _print_outcomes(await add_workers(executor, desc.master, desc.workers, settings))


def main() -> None:
    """
    Entry point for the bootstrap CLI.
    Subcommands:
      - bootstrap:   full master + workers bootstrap
      - reset:       reset every machine in the description
      - join-token:  print a fresh worker join command from the master
      - add-workers: join the description's workers to an existing master
    """
    parser = argparse.ArgumentParser(
        prog="kubeboot.cli.bootstrap",
        description="Bootstrap a kubeadm cluster over SSH.",
    )
    parser.add_argument(
        "--driver",
        default="ssh",
        help="Remote executor driver (default: ssh).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level; overrides KUBEBOOT_LOG_LEVEL.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    handlers = {
        "bootstrap": (_run_bootstrap, "Reset, init, network, credentials, join, label."),
        "reset": (_run_reset, "Reset every machine to a clean baseline."),
        "join-token": (_run_join_token, "Print a fresh join command from the master."),
        "add-workers": (_run_add_workers, "Join the listed workers to an existing cluster."),
    }
    for name, (handler, help_text) in handlers.items():
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--file", required=True, help="Path to the cluster description YAML."
        )
        sub.set_defaults(func=handler)

    subparsers.choices["bootstrap"].add_argument(
        "--kubeconfig-out",
        default=None,
        help="Write the admin kubeconfig to this path.",
    )

    args = parser.parse_args()
    settings = BootstrapSettings()
    configure_logging(args.log_level or settings.log_level)

    try:
        asyncio.run(args.func(args, settings))
    except Exception as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"kubeboot error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
