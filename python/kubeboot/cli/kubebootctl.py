#!/usr/bin/env python3
"""
kubeboot/cli/kubebootctl.py

Console entry point. Forwards to a module under kubeboot.cli, so

    kubebootctl bootstrap reset --file cluster.yaml

runs `python -m kubeboot.cli.bootstrap reset --file cluster.yaml` with the same
interpreter and exits with its status.
"""

import subprocess
import sys


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: kubebootctl <cli-module> [args...]", file=sys.stderr)
        print("  e.g. kubebootctl bootstrap bootstrap --file cluster.yaml", file=sys.stderr)
        sys.exit(2)

    module = f"kubeboot.cli.{sys.argv[1]}"
    sys.exit(subprocess.call([sys.executable, "-m", module, *sys.argv[2:]]))


if __name__ == "__main__":
    main()
