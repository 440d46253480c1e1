"""SSH command builders and the `RemoteHost` wrapper.

Security note: this shells out to `ssh`, `scp` and `rsync` with host-key
checking disabled, matching a first-contact deploy to a fresh server.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Mapping

from deploykit.deploy.deploy_config import DeployConfig
from deploykit.deploy.errors import SSHConnectivityError
from deploykit.deploy.shell_utils import CommandResult, Runner


SSH_OPTIONS = ["-o", "BatchMode=yes", "-o", "StrictHostKeyChecking=no"]


def build_ssh_cmd(*, config: DeployConfig, remote_command: str) -> list[str]:
    return ["ssh", *SSH_OPTIONS, "-i", str(config.ssh_key_path), config.target, remote_command]


def build_ssh_connectivity_cmd(*, config: DeployConfig) -> list[str]:
    return build_ssh_cmd(config=config, remote_command="echo OK")


def build_remote_shell_cmd(*, env: Mapping[str, str] | None = None) -> str:
    assignments = [f"{k}={shlex.quote(str(v))}" for k, v in (env or {}).items()]
    return " ".join([*assignments, "bash", "-s"])


def build_rsync_cmd(*, config: DeployConfig, source_dir: Path, remote_dir: str) -> list[str]:
    ssh_transport = f"ssh -i {shlex.quote(str(config.ssh_key_path))} -o StrictHostKeyChecking=no"
    # Trailing slash on the source copies its contents, not the directory itself.
    src = f"{str(source_dir).rstrip('/')}/"
    return [
        "rsync",
        "-avz",
        "--delete",
        "--exclude",
        ".git",
        "-e",
        ssh_transport,
        src,
        f"{config.target}:{remote_dir}",
    ]


def build_scp_cmd(*, config: DeployConfig, local_path: Path, remote_path: str) -> list[str]:
    return [
        "scp",
        *SSH_OPTIONS,
        "-i",
        str(config.ssh_key_path),
        str(local_path),
        f"{config.target}:{remote_path}",
    ]


class RemoteHost:
    """One blocking SSH round trip per call; no session reuse."""

    def __init__(self, config: DeployConfig, runner: Runner):
        self.config = config
        self.runner = runner

    def check_connectivity(self) -> None:
        result = self.runner.run(build_ssh_connectivity_cmd(config=self.config), check=False, capture=True)
        if not result.ok:
            raise SSHConnectivityError(
                f"SSH connection to {self.config.target} failed. Verify SSH key, user and host."
            )

    def run(self, command: str, *, check: bool = True) -> CommandResult:
        return self.runner.run(build_ssh_cmd(config=self.config, remote_command=command), check=check)

    def run_script(
        self,
        script: str,
        *,
        env: Mapping[str, str] | None = None,
        check: bool = True,
    ) -> CommandResult:
        """Send a multi-line script on stdin to `bash -s` (no heredoc re-quoting)."""
        cmd = build_ssh_cmd(config=self.config, remote_command=build_remote_shell_cmd(env=env))
        return self.runner.run(cmd, input_text=script, check=check)

    def write_file(self, remote_path: str, content: str, *, sudo: bool = True) -> CommandResult:
        prefix = "sudo " if sudo else ""
        command = f"{prefix}tee {shlex.quote(remote_path)} >/dev/null"
        cmd = build_ssh_cmd(config=self.config, remote_command=command)
        return self.runner.run(cmd, input_text=content)

    def copy(self, local_path: Path, remote_path: str) -> CommandResult:
        return self.runner.run(build_scp_cmd(config=self.config, local_path=local_path, remote_path=remote_path))
