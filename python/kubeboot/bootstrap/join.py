"""
kubeboot/bootstrap/join.py

Recovers join commands from kubeadm console text and uses them.

kubeadm prints each join instruction as one logical command over three physical
lines:

      kubeadm join 10.0.0.1:6443 --token abcdef.0123456789abcdef \\
        --discovery-token-ca-cert-hash sha256:... \\
        --control-plane --certificate-key ...

The parser here accepts exactly that shape: a line containing the join
directive, immediately followed by two more lines. Blocks never overlap, and
text before the directive on its line is dropped. The first block in `kubeadm
init` output is the control-plane join, the second the worker join.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from kubeboot.bootstrap.errors import InsufficientJoinCommandsError, JoinTokenError
from kubeboot.bootstrap.reset import DEFAULT_KUBERNETES_VERSION, reset_machine
from kubeboot.models.bootstrap import JOIN_MARKER, JoinCommand, JoinRole, StepOutcome
from kubeboot.models.machine import Machine
from kubeboot.remote.executor import RemoteExecutor

logger = logging.getLogger(__name__)

BLOCK_LINES = 3


def find_join_blocks(output: str) -> List[str]:
    """
    Every complete join block in `output`, in order of appearance, each
    stripped of surrounding whitespace.
    """
    lines = output.split("\n")
    blocks: List[str] = []
    index = 0
    while index < len(lines):
        line = lines[index]
        position = line.find(JOIN_MARKER)
        if position >= 0 and index + BLOCK_LINES <= len(lines):
            block = [line[position:]] + lines[index + 1 : index + BLOCK_LINES]
            blocks.append(_drop_trailing_text(block))
            index += BLOCK_LINES
        else:
            index += 1
    return blocks


def _drop_trailing_text(block: List[str]) -> str:
    # A line without a trailing backslash ends the command; whatever follows it
    # inside the block (blank line, next paragraph) is not part of it.
    kept: List[str] = []
    for line in block:
        kept.append(line.rstrip())
        if not line.rstrip().endswith("\\"):
            break
    return "\n".join(kept).strip()


def extract_join_commands(output: str) -> Tuple[JoinCommand, JoinCommand]:
    """
    Parse `kubeadm init` output into (master-join, worker-join).

    Raises:
        InsufficientJoinCommandsError: If fewer than two join blocks are present.
    """
    blocks = find_join_blocks(output)
    if len(blocks) < 2:
        raise InsufficientJoinCommandsError(found=len(blocks), output=output)
    if len(blocks) > 2:
        logger.warning("Found %d join blocks in init output; using the first two", len(blocks))
    return (
        JoinCommand(command=blocks[0], role=JoinRole.MASTER),
        JoinCommand(command=blocks[1], role=JoinRole.WORKER),
    )


async def request_join_token(executor: RemoteExecutor, master: Machine) -> str:
    """
    Mint a fresh bootstrap token on the master and return the printed join command.

    Raises:
        CommandError: If the remote call fails.
        JoinTokenError: If the output does not contain a join command.
    """
    result = await executor.run(master, "kubeadm token create --print-join-command")
    if JOIN_MARKER not in result:
        raise JoinTokenError(result)
    return result


async def join_worker(
    executor: RemoteExecutor,
    worker: Machine,
    join_command: JoinCommand,
    *,
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION,
) -> List[StepOutcome]:
    """
    Reset `worker`, then run the join command on it.

    Returns:
        The reset outcomes followed by the join outcome.

    Raises:
        CommandError: If the join command itself fails.
    """
    outcomes = await reset_machine(executor, worker, kubernetes_version)
    logger.info("Joining %s as %s", worker.ip, join_command.role.value)
    output = await executor.run(worker, join_command.single_line())
    outcomes.append(StepOutcome(step="join", target=worker.ip, ok=True, output=output))
    return outcomes
