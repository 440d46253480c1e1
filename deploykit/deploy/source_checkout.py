"""Authenticated clone / update of the project repository."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from deploykit.deploy.deploy_config import DeployConfig
from deploykit.deploy.errors import RemoteCommandError, SourceCheckoutError
from deploykit.deploy.shell_utils import Runner


def quote_token(token: str) -> str:
    return quote(token, safe="")


def build_authenticated_url(repo_url: str, token: str) -> str:
    """Embed the token for HTTPS remotes; SSH-style URLs are returned unchanged."""
    parts = urlsplit(repo_url.strip())
    if parts.scheme != "https" or not token:
        return repo_url.strip()
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"{quote_token(token)}@{host}", parts.path, parts.query, parts.fragment))


def repo_dir_name(repo_url: str) -> str:
    name = repo_url.strip().rstrip("/").rsplit("/", 1)[-1]
    name = name.rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "app"


def clone_cmds(*, url: str, branch: str, dest: Path) -> list[list[str]]:
    return [["git", "clone", "--branch", branch, url, str(dest)]]


def update_cmds(*, url: str, branch: str, dest: Path) -> list[list[str]]:
    git = ["git", "-C", str(dest)]
    return [
        [*git, "remote", "set-url", "origin", url],
        [*git, "fetch", "--all", "--prune"],
        [*git, "checkout", branch],
        [*git, "reset", "--hard", f"origin/{branch}"],
    ]


def restore_remote_cmd(*, plain_url: str, dest: Path) -> list[str]:
    return ["git", "-C", str(dest), "remote", "set-url", "origin", plain_url]


def checkout_source(config: DeployConfig, runner: Runner, work_root: Path) -> Path:
    """Clone on first run, fast-forward to origin/<branch> afterwards.

    Whatever happens to the git commands, a checkout left on disk never keeps
    the token-bearing URL in its .git/config.
    """
    work_root.mkdir(parents=True, exist_ok=True)
    dest = work_root / repo_dir_name(config.repo_url)
    url = build_authenticated_url(config.repo_url, config.access_token)
    plain_url = config.repo_url.strip()

    if (dest / ".git").is_dir():
        cmds = update_cmds(url=url, branch=config.branch, dest=dest)
    else:
        cmds = clone_cmds(url=url, branch=config.branch, dest=dest)

    try:
        for cmd in cmds:
            runner.run(cmd)
    except RemoteCommandError as exc:
        raise SourceCheckoutError(
            f"Failed to check out branch '{config.branch}' of {config.repo_url} (exit code {exc.returncode})"
        ) from exc
    finally:
        if url != plain_url and (dest / ".git").is_dir():
            runner.run(restore_remote_cmd(plain_url=plain_url, dest=dest), check=False)
    return dest
