"""Deployment configuration: interactive collection, defaults and validation.

Prompting is the only input channel. Values from `.env.deploy` (and the token
from `.env.deploy.secrets`) only pre-fill the bracketed prompt defaults; the
process environment overrides both files.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping

from dotenv import dotenv_values

from deploykit.deploy.errors import InputValidationError


DEFAULT_BRANCH = "main"
DEFAULT_REMOTE_USER = "ubuntu"
DEFAULT_APP_PORT = 80
REMOTE_APP_DIR = "~/app"


class PromptKey(str, Enum):
    REPO_URL = "DEPLOY_REPO_URL"
    ACCESS_TOKEN = "DEPLOY_ACCESS_TOKEN"
    BRANCH = "DEPLOY_BRANCH"
    REMOTE_USER = "DEPLOY_REMOTE_USER"
    REMOTE_HOST = "DEPLOY_REMOTE_HOST"
    SSH_KEY = "DEPLOY_SSH_KEY"
    APP_PORT = "DEPLOY_APP_PORT"


# Keys that live in `.env.deploy.secrets` rather than `.env.deploy`.
SECRET_KEYS = frozenset({PromptKey.ACCESS_TOKEN})


@dataclass(frozen=True)
class Prompt:
    key: PromptKey
    label: str
    secret: bool = False


PROMPTS: tuple[Prompt, ...] = (
    Prompt(PromptKey.REPO_URL, "Enter Git repository URL (https://...git)"),
    Prompt(PromptKey.ACCESS_TOKEN, "Enter Personal Access Token (PAT)", secret=True),
    Prompt(PromptKey.BRANCH, "Enter branch name"),
    Prompt(PromptKey.REMOTE_USER, "Enter remote server username"),
    Prompt(PromptKey.REMOTE_HOST, "Enter remote server IP or hostname"),
    Prompt(PromptKey.SSH_KEY, "Enter path to SSH private key (absolute or ~/...)"),
    Prompt(PromptKey.APP_PORT, "Enter application internal port (container)"),
)


@dataclass(frozen=True)
class DeployConfig:
    repo_url: str
    access_token: str
    branch: str
    remote_user: str
    remote_host: str
    ssh_key: str
    app_port: int

    @property
    def ssh_key_path(self) -> Path:
        return expand_key_path(self.ssh_key)

    @property
    def target(self) -> str:
        return f"{self.remote_user}@{self.remote_host}"

    @property
    def remote_app_dir(self) -> str:
        return REMOTE_APP_DIR


def expand_key_path(raw: str) -> Path:
    return Path(str(raw or "").strip()).expanduser()


def read_dotenv_key(*, dotenv_path: Path, key: str) -> str:
    if not dotenv_path.exists():
        return ""
    raw = dotenv_values(dotenv_path)
    return str(raw.get(key) or "").strip()


def resolve_prompt_defaults(cwd: Path, env: Mapping[str, str] | None = None) -> dict[PromptKey, str]:
    """Resolution per key: process env -> .env.deploy(.secrets) -> built-in default."""
    env = os.environ if env is None else env
    defaults: dict[PromptKey, str] = {
        PromptKey.BRANCH: DEFAULT_BRANCH,
        PromptKey.REMOTE_USER: DEFAULT_REMOTE_USER,
        PromptKey.APP_PORT: str(DEFAULT_APP_PORT),
    }
    for key in PromptKey:
        dotenv_name = ".env.deploy.secrets" if key in SECRET_KEYS else ".env.deploy"
        value = str(env.get(key.value) or "").strip()
        if not value:
            value = read_dotenv_key(dotenv_path=cwd / dotenv_name, key=key.value)
        if value:
            defaults[key] = value
    return defaults


def collect_inputs(
    *,
    input_fn: Callable[[str], str],
    secret_fn: Callable[[str], str],
    defaults: Mapping[PromptKey, str],
) -> dict[PromptKey, str]:
    raw: dict[PromptKey, str] = {}
    for prompt in PROMPTS:
        default = str(defaults.get(prompt.key) or "")
        if prompt.secret:
            shown = " [saved]" if default else ""
        else:
            shown = f" [{default}]" if default else ""
        reader = secret_fn if prompt.secret else input_fn
        answer = str(reader(f"{prompt.label}{shown}: ") or "").strip()
        raw[prompt.key] = answer or default
    return raw


def parse_port(value: str) -> int | None:
    try:
        port = int(str(value).strip())
    except ValueError:
        return None
    if port < 1 or port > 65535:
        return None
    return port


def validate_inputs(raw: Mapping[PromptKey, str]) -> DeployConfig:
    """Single validation pass; every problem is reported at once."""

    def value(key: PromptKey) -> str:
        return str(raw.get(key) or "").strip()

    problems: list[str] = []
    if not value(PromptKey.REPO_URL):
        problems.append("Repo URL is required")
    if not value(PromptKey.ACCESS_TOKEN):
        problems.append("Personal Access Token is required")
    if not value(PromptKey.REMOTE_HOST):
        problems.append("Remote host is required")

    ssh_key = value(PromptKey.SSH_KEY)
    if not ssh_key:
        problems.append("SSH key path is required")
    elif not expand_key_path(ssh_key).is_file():
        problems.append(f"SSH key file not found: {ssh_key}")

    port_raw = value(PromptKey.APP_PORT) or str(DEFAULT_APP_PORT)
    port = parse_port(port_raw)
    if port is None:
        problems.append(f"Application port must be an integer in range 1-65535, got: {port_raw}")

    if problems:
        raise InputValidationError(problems=problems)

    return DeployConfig(
        repo_url=value(PromptKey.REPO_URL),
        access_token=value(PromptKey.ACCESS_TOKEN),
        branch=value(PromptKey.BRANCH) or DEFAULT_BRANCH,
        remote_user=value(PromptKey.REMOTE_USER) or DEFAULT_REMOTE_USER,
        remote_host=value(PromptKey.REMOTE_HOST),
        ssh_key=ssh_key,
        app_port=port,
    )


def summarize(config: DeployConfig) -> list[str]:
    return [
        "Summary of inputs:",
        f"  Repo: {config.repo_url}",
        f"  Branch: {config.branch}",
        f"  Remote: {config.target}",
        f"  SSH key: {config.ssh_key_path}",
        f"  App port: {config.app_port}",
    ]
