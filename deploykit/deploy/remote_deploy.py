#!/usr/bin/env python3
"""Deploy a Dockerized application to a single Ubuntu server over SSH.

Prompts for repository / server details, validates them, then:
prepares the host (Docker Engine, Buildx, Compose plugin, Nginx), clones the
requested branch locally and mirrors it to `~/app`, builds and runs it (Compose
if a manifest is present, otherwise a single `deployed_app` container), puts
Nginx in front of it on port 80 and runs a few health checks.

`--cleanup` tears all of that down again instead.

Exit codes: 0 ok, 1 unexpected failure, 2 invalid input, 3 SSH unreachable,
130 interrupted.

Security note: this script shells out to `ssh`, `scp`, `rsync` and `git`.
"""

from __future__ import annotations

import argparse
import getpass
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import requests

from deploykit.deploy.compose_helpers import describe_plan
from deploykit.deploy.deploy_config import (
    DeployConfig,
    collect_inputs,
    resolve_prompt_defaults,
    summarize,
    validate_inputs,
)
from deploykit.deploy.deploy_logging import LOG_PREFIX, StepLogger, logger, setup_logging
from deploykit.deploy.errors import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    DeployError,
    InputValidationError,
)
from deploykit.deploy.nginx_helpers import configure_nginx
from deploykit.deploy.remote_scripts import cleanup_script, deploy_script, prepare_script, validation_checks
from deploykit.deploy.shell_utils import CommandRunner, Runner
from deploykit.deploy.source_checkout import checkout_source, quote_token
from deploykit.deploy.ssh_helpers import RemoteHost
from deploykit.deploy.transfer import transfer_files


BANNER = "=" * 42
WORK_DIR_NAME = ".deploykit"


@dataclass
class ValidationReport:
    checks: dict[str, bool] = field(default_factory=dict)

    @property
    def all_passed(self) -> bool:
        return all(self.checks.values())

    def failed(self) -> list[str]:
        return [name for name, ok in self.checks.items() if not ok]


def check_public_endpoint(host: str, *, timeout: float = 10.0) -> bool:
    url = f"http://{host}/"
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.warning("%s public check %s failed: %s", LOG_PREFIX, url, exc)
        return False
    logger.info("%s public check %s -> HTTP %s", LOG_PREFIX, url, response.status_code)
    return response.ok


def validate_deployment(
    remote: RemoteHost,
    config: DeployConfig,
    *,
    http_check: Callable[[str], bool] = check_public_endpoint,
) -> ValidationReport:
    """Diagnostics only: a failing check is reported, never raised."""
    report = ValidationReport()
    for name, command in validation_checks(config.app_port):
        result = remote.run(command, check=False)
        report.checks[name] = result.ok
    report.checks["public_http"] = http_check(config.remote_host)

    for name in report.failed():
        logger.warning("%s [WARN] check '%s' did not pass", LOG_PREFIX, name)
    return report


def run_cleanup(remote: RemoteHost, log: StepLogger) -> None:
    log.step("Removing containers, images, app directory and Nginx site")
    remote.run_script(cleanup_script())
    log.ok("Remote cleanup completed.")


def run_deploy(
    config: DeployConfig,
    remote: RemoteHost,
    log: StepLogger,
    *,
    work_root: Path,
    http_check: Callable[[str], bool] = check_public_endpoint,
) -> ValidationReport:
    log.step(f"Checking out branch '{config.branch}'")
    source_dir = checkout_source(config, remote.runner, work_root)
    try:
        for line in describe_plan(source_dir):
            log.info(line)
    except (FileNotFoundError, RuntimeError) as exc:
        raise DeployError(str(exc)) from exc

    log.step("Preparing remote host (Docker, Buildx, Compose plugin, Nginx)")
    remote.run_script(prepare_script())
    log.ok("Remote host prepared.")

    log.step(f"Transferring project files to {config.remote_app_dir}")
    transfer_files(remote, source_dir, log=log)
    log.ok(f"Files transferred to {config.remote_app_dir} on remote host.")

    log.step("Building and starting the application")
    remote.run_script(deploy_script(), env={"APP_PORT": str(config.app_port), "BRANCH": config.branch})
    log.ok("Remote deployment commands executed.")

    log.step(f"Configuring Nginx reverse proxy (80 -> 127.0.0.1:{config.app_port})")
    configure_nginx(remote, config.app_port)
    log.ok("Nginx configured and reloaded.")

    log.step("Validating deployment")
    report = validate_deployment(remote, config, http_check=http_check)
    if report.all_passed:
        log.ok("All validation checks passed.")
    else:
        log.warning("Some validation checks failed: " + ", ".join(report.failed()))
    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Deploy a Dockerized app to a remote Ubuntu server over SSH. "
            "All inputs are prompted for interactively."
        )
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Remove the deployed containers, images, app directory and Nginx site from the remote host",
    )
    return parser


def main(
    argv: list[str] | None = None,
    *,
    runner: Runner | None = None,
    input_fn: Callable[[str], str] = input,
    secret_fn: Callable[[str], str] = getpass.getpass,
    cwd: Path | None = None,
    http_check: Callable[[str], bool] = check_public_endpoint,
) -> int:
    args = build_parser().parse_args(argv)
    cwd = cwd or Path.cwd()
    log_path = setup_logging(cwd / "logs")
    log = StepLogger()

    logger.info(BANNER)
    logger.info("Automated deployment (%s)", "cleanup" if args.cleanup else "deploy")
    logger.info("Logs: %s", log_path)
    logger.info(BANNER)

    try:
        log.step("Collecting inputs")
        raw = collect_inputs(input_fn=input_fn, secret_fn=secret_fn, defaults=resolve_prompt_defaults(cwd))
        config = validate_inputs(raw)
        for line in summarize(config):
            logger.info(line)

        runner = runner or CommandRunner(secrets=[config.access_token, quote_token(config.access_token)])
        remote = RemoteHost(config, runner)

        log.step(f"Checking SSH connectivity to {config.target}")
        remote.check_connectivity()
        log.ok("SSH connectivity verified.")

        if args.cleanup:
            run_cleanup(remote, log)
            logger.info("Cleanup finished.")
            return EXIT_OK

        run_deploy(config, remote, log, work_root=cwd / WORK_DIR_NAME, http_check=http_check)
    except InputValidationError as exc:
        logger.error(exc.format())
        return exc.exit_code
    except DeployError as exc:
        log.error(str(exc))
        log.error(f"See {log_path}")
        return exc.exit_code
    except KeyboardInterrupt:
        log.error("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception:
        logger.exception("%s [ERROR] Unexpected failure. See %s", LOG_PREFIX, log_path)
        return EXIT_FAILURE

    logger.info(BANNER)
    logger.info("Deployment finished. Access your app at: http://%s", config.remote_host)
    logger.info("Logs saved to: %s", log_path)
    logger.info(BANNER)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
