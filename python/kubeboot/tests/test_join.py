"""Tests for kubeboot.bootstrap.join."""

import asyncio

import pytest

from kubeboot.bootstrap.errors import (
    InsufficientJoinCommandsError,
    JoinParseError,
    JoinTokenError,
)
from kubeboot.bootstrap.join import (
    extract_join_commands,
    find_join_blocks,
    join_worker,
    request_join_token,
)
from kubeboot.models.bootstrap import JOIN_MARKER, JoinCommand, JoinRole
from kubeboot.models.machine import Machine
from kubeboot.utils.async_command_runner import CommandError


def _block(ip: str, token: str) -> str:
    return (
        f"kubeadm join {ip}:6443 --token {token} \\\n"
        "    --discovery-token-ca-cert-hash sha256:abc \\\n"
        "    --control-plane"
    )


class TestExtractJoinCommands:
    """Parsing kubeadm init console output."""

    def test_two_blocks_in_order(self, init_output):
        master_join, worker_join = extract_join_commands(init_output)

        assert master_join.role is JoinRole.MASTER
        assert worker_join.role is JoinRole.WORKER
        assert "--control-plane" in master_join.command
        assert "--control-plane" not in worker_join.command
        assert init_output.index(master_join.command.splitlines()[0]) < init_output.index(
            "Then you can join"
        )

    def test_commands_are_trimmed_and_carry_marker_and_ip(self, init_output):
        for cmd in extract_join_commands(init_output):
            assert cmd.command == cmd.command.strip()
            assert cmd.command
            assert cmd.command.startswith(JOIN_MARKER)
            assert "10.0.0.1" in cmd.command

    def test_blocks_keep_original_order(self):
        text = "\n".join([_block("10.0.0.9", "first"), "", _block("10.0.0.9", "second"), ""])
        master_join, worker_join = extract_join_commands(text)
        assert "first" in master_join.command
        assert "second" in worker_join.command

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "no join instructions here\n",
            _block("10.0.0.1", "only-one") + "\n",
        ],
    )
    def test_fewer_than_two_blocks_fail(self, text):
        with pytest.raises(InsufficientJoinCommandsError) as excinfo:
            extract_join_commands(text)
        assert isinstance(excinfo.value, JoinParseError)
        assert excinfo.value.output == text

    def test_directive_without_continuation_lines_is_not_a_block(self):
        text = _block("10.0.0.1", "a") + "\n\nkubeadm join 10.0.0.1:6443 --token b"
        assert len(find_join_blocks(text)) == 1
        with pytest.raises(InsufficientJoinCommandsError) as excinfo:
            extract_join_commands(text)
        assert excinfo.value.found == 1

    def test_text_before_directive_is_dropped(self):
        text = "[out] kubeadm join 10.0.0.1:6443 --token t \\\n  --discovery-token-ca-cert-hash sha256:x\n\n"
        assert find_join_blocks(text) == [
            "kubeadm join 10.0.0.1:6443 --token t \\\n  --discovery-token-ca-cert-hash sha256:x"
        ]

    def test_single_line_collapses_continuations(self, init_output):
        _, worker_join = extract_join_commands(init_output)
        assert worker_join.single_line() == (
            "kubeadm join 10.0.0.1:6443 --token abcdef.0123456789abcdef"
            " --discovery-token-ca-cert-hash sha256:1111"
        )


class TestRequestJoinToken:
    """kubeadm token create --print-join-command."""

    def test_returns_printed_command(self, executor, master):
        printed = "kubeadm join 10.0.0.1:6443 --token x --discovery-token-ca-cert-hash sha256:y\n"
        executor.responses["kubeadm token create"] = printed

        assert asyncio.run(request_join_token(executor, master)) == printed
        assert executor.commands_for(master) == ["kubeadm token create --print-join-command"]

    def test_missing_marker_raises_with_raw_output(self, executor, master):
        executor.responses["kubeadm token create"] = "error: cluster unreachable"

        with pytest.raises(JoinTokenError) as excinfo:
            asyncio.run(request_join_token(executor, master))
        assert excinfo.value.output == "error: cluster unreachable"

    def test_transport_error_propagates(self, executor, master):
        executor.responses["kubeadm token create"] = CommandError("connection refused", 255)

        with pytest.raises(CommandError):
            asyncio.run(request_join_token(executor, master))


class TestJoinWorker:
    def test_resets_then_joins_on_one_line(self, executor, init_output):
        worker = Machine(ip="10.0.0.2", hostname="w1")
        _, worker_join = extract_join_commands(init_output)

        outcomes = asyncio.run(join_worker(executor, worker, worker_join))

        commands = executor.commands_for(worker)
        assert commands[0] == "ls -lah"
        assert commands[-1] == worker_join.single_line()
        assert "echo y | kubeadm reset" in commands
        assert outcomes[-1].step == "join" and outcomes[-1].ok

    def test_join_failure_is_hard(self, executor):
        worker = Machine(ip="10.0.0.2", hostname="w1")
        join = JoinCommand(command="kubeadm join 10.0.0.1:6443 --token t", role=JoinRole.WORKER)
        executor.responses["kubeadm join"] = CommandError("Command failed with return code 1.", 1)

        with pytest.raises(CommandError):
            asyncio.run(join_worker(executor, worker, join))
