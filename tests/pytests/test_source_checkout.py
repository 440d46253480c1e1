from __future__ import annotations

from pathlib import Path

import pytest

from deploykit.deploy.deploy_config import DeployConfig
from deploykit.deploy.errors import SourceCheckoutError
from deploykit.deploy.source_checkout import (
    build_authenticated_url,
    checkout_source,
    repo_dir_name,
)
from deploykit.deploy.shell_utils import redact


def _config(**overrides) -> DeployConfig:
    values = dict(
        repo_url="https://github.com/acme/shop.git",
        access_token="ghp_secret",
        branch="release",
        remote_user="ubuntu",
        remote_host="host.example",
        ssh_key="/keys/id_test",
        app_port=80,
    )
    values.update(overrides)
    return DeployConfig(**values)


def test_build_authenticated_url_https():
    assert build_authenticated_url("https://github.com/acme/shop.git", "ghp_x") == "https://ghp_x@github.com/acme/shop.git"
    assert (
        build_authenticated_url("https://old@git.example:8443/acme/shop.git", "ghp_x")
        == "https://ghp_x@git.example:8443/acme/shop.git"
    )


def test_build_authenticated_url_quotes_reserved_characters():
    url = build_authenticated_url("https://github.com/acme/shop.git", "a@b/c:d%")
    assert url == "https://a%40b%2Fc%3Ad%25@github.com/acme/shop.git"


def test_build_authenticated_url_leaves_ssh_remotes():
    assert build_authenticated_url("git@github.com:acme/shop.git", "ghp_x") == "git@github.com:acme/shop.git"


def test_repo_dir_name():
    assert repo_dir_name("https://github.com/acme/shop.git") == "shop"
    assert repo_dir_name("git@github.com:acme/shop.git") == "shop"
    assert repo_dir_name("https://github.com/acme/shop/") == "shop"


def _clone_creates_repo(cmd: list[str]) -> None:
    if cmd[:2] == ["git", "clone"]:
        (Path(cmd[-1]) / ".git").mkdir(parents=True)


def test_checkout_source_clones_then_restores_plain_url(tmp_path: Path, fake_runner):
    fake_runner.on_run = _clone_creates_repo
    dest = checkout_source(_config(), fake_runner, tmp_path / "work")
    assert dest == tmp_path / "work" / "shop"
    assert fake_runner.calls[0]["cmd"] == [
        "git",
        "clone",
        "--branch",
        "release",
        "https://ghp_secret@github.com/acme/shop.git",
        str(dest),
    ]
    assert fake_runner.calls[-1]["cmd"] == ["git", "-C", str(dest), "remote", "set-url", "origin", "https://github.com/acme/shop.git"]


def test_checkout_source_updates_existing_clone(tmp_path: Path, fake_runner):
    (tmp_path / "work" / "shop" / ".git").mkdir(parents=True)
    checkout_source(_config(), fake_runner, tmp_path / "work")
    commands = fake_runner.commands
    assert not any(" clone " in c for c in commands)
    assert any(c.endswith("fetch --all --prune") for c in commands)
    assert any(c.endswith("reset --hard origin/release") for c in commands)
    assert commands[-1].endswith("remote set-url origin https://github.com/acme/shop.git")


def test_failed_fetch_still_restores_plain_url(tmp_path: Path, fake_runner):
    dest = tmp_path / "work" / "shop"
    (dest / ".git").mkdir(parents=True)
    fake_runner.fail_when("fetch --all", 1)

    with pytest.raises(SourceCheckoutError):
        checkout_source(_config(), fake_runner, tmp_path / "work")

    commands = fake_runner.commands
    token_set = commands.index(f"git -C {dest} remote set-url origin https://ghp_secret@github.com/acme/shop.git")
    assert commands[-1] == f"git -C {dest} remote set-url origin https://github.com/acme/shop.git"
    assert fake_runner.calls[-1]["check"] is False
    assert not any("ghp_secret" in c for c in commands[token_set + 1 :])


def test_interrupted_update_still_restores_plain_url(tmp_path: Path, fake_runner):
    dest = tmp_path / "work" / "shop"
    (dest / ".git").mkdir(parents=True)

    def interrupt(cmd: list[str]) -> None:
        if "checkout" in cmd:
            raise KeyboardInterrupt

    fake_runner.on_run = interrupt
    with pytest.raises(KeyboardInterrupt):
        checkout_source(_config(), fake_runner, tmp_path / "work")
    assert fake_runner.commands[-1] == f"git -C {dest} remote set-url origin https://github.com/acme/shop.git"


def test_failed_clone_without_repo_skips_restore(tmp_path: Path, fake_runner):
    fake_runner.fail_when("git clone", 128)
    with pytest.raises(SourceCheckoutError):
        checkout_source(_config(), fake_runner, tmp_path / "work")
    assert len(fake_runner.calls) == 1


def test_checkout_source_failure_is_wrapped(tmp_path: Path, fake_runner):
    fake_runner.fail_when("git clone", 128)
    with pytest.raises(SourceCheckoutError) as exc:
        checkout_source(_config(), fake_runner, tmp_path / "work")
    assert "ghp_secret" not in str(exc.value)


def test_redact_masks_token():
    assert redact("cloning https://ghp_secret@github.com", ["ghp_secret", ""]) == "cloning https://***@github.com"
