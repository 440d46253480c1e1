"""Error taxonomy for the remote deploy pipeline.

Each error carries the process exit code that `remote_deploy.main()` maps it to.
"""

from __future__ import annotations


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INPUT = 2
EXIT_SSH = 3
EXIT_INTERRUPTED = 130


class DeployError(Exception):
    exit_code = EXIT_FAILURE


class InputValidationError(DeployError):
    exit_code = EXIT_INPUT

    def __init__(self, *, problems: list[str]):
        super().__init__("; ".join(problems))
        self.problems = problems

    def format(self) -> str:
        lines = ["[input] validation failed"]
        for p in self.problems:
            lines.append(f"- {p}")
        lines.append("Fix the errors above and re-run.")
        return "\n".join(lines)


class SSHConnectivityError(DeployError):
    exit_code = EXIT_SSH


class RemoteCommandError(DeployError):
    """A command exited non-zero where failure is not tolerated."""

    def __init__(self, *, command: str, returncode: int, output: str = ""):
        super().__init__(f"Command failed with exit code {returncode}: {command}")
        self.command = command
        self.returncode = returncode
        self.output = output


class SourceCheckoutError(DeployError):
    pass
