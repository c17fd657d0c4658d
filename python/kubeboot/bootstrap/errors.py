"""
kubeboot/bootstrap/errors.py

Hard-failure exception types for the bootstrap steps. Transport errors are not
wrapped: they surface as kubeboot.utils.async_command_runner.CommandError.
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for every non-transport bootstrap failure."""


class TemplateError(BootstrapError):
    """A named template is unknown, malformed, or missing a required field."""

    def __init__(self, template_name: str, reason: str) -> None:
        super().__init__(f"Cannot render template '{template_name}': {reason}")
        self.template_name = template_name


class JoinParseError(BootstrapError):
    """Console output did not have the shape the join parser expects."""


class InsufficientJoinCommandsError(JoinParseError):
    """kubeadm init output held fewer than the two expected join blocks."""

    def __init__(self, found: int, output: str) -> None:
        super().__init__(
            f"Expected 2 join commands in init output, found {found}."
        )
        self.found = found
        self.output = output


class InvalidCredentialFormatError(BootstrapError):
    """The admin kubeconfig lacks the admin identity or certificate data."""


class JoinTokenError(BootstrapError):
    """`kubeadm token create --print-join-command` did not print a join command."""

    def __init__(self, output: str) -> None:
        super().__init__(f"Printing the join command returned unexpected output: {output}")
        self.output = output
