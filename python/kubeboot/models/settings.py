# kubeboot/models/settings.py

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BootstrapSettings(BaseSettings):
    """
    Pydantic settings for a bootstrap run.
    By default, these fields map to environment variables prefixed with `KUBEBOOT_`.
    For example, `KUBEBOOT_COMMAND_TIMEOUT_SECONDS`, `KUBEBOOT_MAX_CONCURRENCY`, etc.
    """

    model_config = SettingsConfigDict(env_prefix="KUBEBOOT_")

    # Upper bound for any single remote call; kubeadm init can take minutes.
    command_timeout_seconds: float = Field(default=600.0, gt=0)
    max_concurrency: int = Field(default=8, ge=1)

    # Transport-level attempts; orchestrator steps themselves never retry.
    ssh_retries: int = Field(default=1, ge=1)
    ssh_retry_delay: float = Field(default=1.0, ge=0)
    ssh_user: str = "root"
    ssh_port: int = Field(default=22, ge=1, le=65535)
    ssh_private_key_path: str = "~/.ssh/id_rsa"
    trust_on_first_use: bool = True

    # pkgs.k8s.io package stream installed by the bootstrap script.
    kubernetes_version: str = "v1.29"

    log_level: str = "INFO"
