"""Mirror the local project tree into the remote app directory."""

from __future__ import annotations

import tarfile
import tempfile
from pathlib import Path

from deploykit.deploy.deploy_logging import StepLogger
from deploykit.deploy.remote_scripts import REMOTE_ARCHIVE, extract_archive_remote_cmd
from deploykit.deploy.ssh_helpers import RemoteHost, build_rsync_cmd


EXCLUDED_NAMES = frozenset({".git"})


def _exclude_vcs(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo | None:
    parts = Path(tarinfo.name).parts
    if any(part in EXCLUDED_NAMES for part in parts):
        return None
    return tarinfo


def build_archive(source_dir: Path, archive_path: Path) -> Path:
    """Gzip tarball of `source_dir` contents (paths relative to it), without .git."""
    with tarfile.open(archive_path, "w:gz") as tar:
        for child in sorted(source_dir.iterdir()):
            tar.add(str(child), arcname=child.name, filter=_exclude_vcs)
    return archive_path


def transfer_files(remote: RemoteHost, source_dir: Path, *, log: StepLogger | None = None) -> str:
    """Returns the method used: "rsync" or "archive"."""
    log = log or StepLogger()
    remote_dir = remote.config.remote_app_dir

    if remote.runner.which("rsync"):
        log.info("Using rsync for delta transfer")
        remote.runner.run(build_rsync_cmd(config=remote.config, source_dir=source_dir, remote_dir=remote_dir))
        return "rsync"

    log.info("rsync not found; falling back to tar + scp")
    with tempfile.TemporaryDirectory(prefix="deploykit-") as tmp:
        archive_path = build_archive(source_dir, Path(tmp) / "deploy_archive.tar.gz")
        remote.copy(archive_path, REMOTE_ARCHIVE)
        remote.run(extract_archive_remote_cmd(remote_dir))
    return "archive"
