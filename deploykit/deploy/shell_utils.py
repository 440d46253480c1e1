#!/usr/bin/env python3
"""Shared subprocess utilities.

Every external command the deploy pipeline issues (ssh, scp, rsync, git) goes
through `CommandRunner`, so tests can swap in a recording fake.
"""

from __future__ import annotations

import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable, Protocol, runtime_checkable

from deploykit.deploy.deploy_logging import LOG_PREFIX, logger
from deploykit.deploy.errors import RemoteCommandError


REDACTED = "***"


def redact(text: str, secrets: Iterable[str]) -> str:
    out = str(text or "")
    for secret in secrets:
        if secret:
            out = out.replace(secret, REDACTED)
    return out


def format_cmd(cmd: list[str], secrets: Iterable[str] = ()) -> str:
    return redact(shlex.join(cmd), secrets)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class Runner(Protocol):
    def run(
        self,
        cmd: list[str],
        *,
        input_text: str | None = None,
        check: bool = True,
        capture: bool = False,
    ) -> CommandResult: ...

    def which(self, name: str) -> bool: ...


class CommandRunner:
    """Run commands, streaming merged stdout/stderr into the deploy log.

    `secrets` are masked in both the echoed command line and its output.
    With `capture=True` output is collected and returned instead of logged.
    """

    def __init__(self, *, secrets: Iterable[str] = ()):
        self.secrets = [s for s in secrets if s]

    def add_secret(self, secret: str) -> None:
        if secret and secret not in self.secrets:
            self.secrets.append(secret)

    def which(self, name: str) -> bool:
        return shutil.which(name) is not None

    def run(
        self,
        cmd: list[str],
        *,
        input_text: str | None = None,
        check: bool = True,
        capture: bool = False,
    ) -> CommandResult:
        printable = format_cmd(cmd, self.secrets)
        logger.info("%s $ %s", LOG_PREFIX, printable)

        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if input_text is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        if input_text is not None:
            assert proc.stdin is not None
            proc.stdin.write(input_text)
            proc.stdin.close()

        collected: list[str] = []
        assert proc.stdout is not None
        for line in proc.stdout:
            line = redact(line.rstrip("\n"), self.secrets)
            collected.append(line)
            if not capture:
                logger.info("%s", line)
        returncode = proc.wait()

        output = "\n".join(collected)
        if check and returncode != 0:
            raise RemoteCommandError(command=printable, returncode=returncode, output=output)
        return CommandResult(returncode=returncode, output=output)
