"""
bootstrap/__init__.py

Aggregate imports so the bootstrap steps can be used directly from this package.
"""

from kubeboot.bootstrap.credentials import retrieve_credentials
from kubeboot.bootstrap.errors import (
    BootstrapError,
    InsufficientJoinCommandsError,
    InvalidCredentialFormatError,
    JoinParseError,
    JoinTokenError,
    TemplateError,
)
from kubeboot.bootstrap.join import (
    extract_join_commands,
    join_worker,
    request_join_token,
)
from kubeboot.bootstrap.labels import apply_labels, remove_master_taint
from kubeboot.bootstrap.master import initialize_master
from kubeboot.bootstrap.overlay import install_overlay
from kubeboot.bootstrap.reset import reset_machine
from kubeboot.bootstrap.templates import render

__all__ = [
    "BootstrapError",
    "InsufficientJoinCommandsError",
    "InvalidCredentialFormatError",
    "JoinParseError",
    "JoinTokenError",
    "TemplateError",
    "apply_labels",
    "extract_join_commands",
    "initialize_master",
    "install_overlay",
    "join_worker",
    "remove_master_taint",
    "render",
    "request_join_token",
    "reset_machine",
    "retrieve_credentials",
]
