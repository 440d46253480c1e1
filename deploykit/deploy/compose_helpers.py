import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

# Names `docker compose` picks up without -f, in its own lookup order.
COMPOSE_FILENAMES = ("compose.yaml", "compose.yml", "docker-compose.yml", "docker-compose.yaml")
DOCKERFILE_NAME = "Dockerfile"

# Regex to match ${VAR:-default} or ${VAR}
INTERPOLATION_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


class DeployMode(str, Enum):
    COMPOSE = "compose"
    DOCKERFILE = "dockerfile"


def interpolate_value(value: str, env: Optional[Mapping[str, str]] = None) -> str:
    """
    Interpolates environment variables in a string.
    Supports ${VAR} and ${VAR:-default}.
    """
    if not isinstance(value, str):
        return value
    source = os.environ if env is None else env

    def replace_match(match):
        var_name = match.group(1)
        default_value = match.group(2)
        env_val = source.get(var_name)
        if env_val is not None:
            return env_val
        return default_value if default_value is not None else ""

    return INTERPOLATION_PATTERN.sub(replace_match, value)


def interpolate_dict(data: Any, env: Optional[Mapping[str, str]] = None) -> Any:
    """Recursively interpolates strings in a dictionary or list."""
    if isinstance(data, dict):
        return {k: interpolate_dict(v, env) for k, v in data.items()}
    elif isinstance(data, list):
        return [interpolate_dict(v, env) for v in data]
    elif isinstance(data, str):
        return interpolate_value(data, env)
    else:
        return data


def find_compose_file(project_dir: Path) -> Optional[Path]:
    for name in COMPOSE_FILENAMES:
        candidate = project_dir / name
        if candidate.is_file():
            return candidate
    return None


def load_compose_config(compose_path: Path, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Parses a Compose manifest using PyYAML and interpolates variables.
    Returns the parsed configuration dictionary.
    """
    if not compose_path.exists():
        raise FileNotFoundError(f"Compose file not found: {compose_path}")

    try:
        with open(compose_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RuntimeError(f"Failed to parse {compose_path.name}: {e}") from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise RuntimeError(f"{compose_path.name} is not a valid mapping")
    return interpolate_dict(raw_config, env)


def list_services(compose_config: Dict[str, Any]) -> list[str]:
    services = compose_config.get("services") or {}
    if not isinstance(services, dict):
        return []
    return [str(name) for name in services.keys()]


def get_service_config(compose_config: Dict[str, Any], service_name: str) -> Dict[str, Any]:
    """Retrieve the configuration for a specific service."""
    services = compose_config.get("services", {})
    if service_name not in services:
        raise ValueError(f"Service '{service_name}' not found in compose services.")
    return services[service_name]


def get_ports(service_config: Dict[str, Any]) -> list:
    """Get the published ports for a service (raw short or long syntax)."""
    ports = service_config.get("ports", [])
    if ports is None:
        return []
    return ports


def get_build_context(service_config: Dict[str, Any]) -> Optional[str]:
    """Get the build context path."""
    build = service_config.get("build")
    if not build:
        return None
    if isinstance(build, str):
        return build
    if isinstance(build, dict):
        return build.get("context")
    return None


def detect_deploy_mode(project_dir: Path) -> DeployMode:
    """
    A Compose manifest wins over a lone Dockerfile, mirroring the remote-side
    decision in `remote_scripts.deploy_script()`.
    """
    if find_compose_file(project_dir) is not None:
        return DeployMode.COMPOSE
    if (project_dir / DOCKERFILE_NAME).is_file():
        return DeployMode.DOCKERFILE
    raise FileNotFoundError(
        f"No compose manifest ({', '.join(COMPOSE_FILENAMES)}) or {DOCKERFILE_NAME} found in {project_dir}"
    )


def describe_plan(project_dir: Path) -> list[str]:
    """Human-readable lines describing how the project will be run remotely."""
    mode = detect_deploy_mode(project_dir)
    if mode is DeployMode.DOCKERFILE:
        return [f"Deploy mode: {mode.value} (single container from {DOCKERFILE_NAME})"]

    compose_path = find_compose_file(project_dir)
    assert compose_path is not None
    config = load_compose_config(compose_path)
    lines = [f"Deploy mode: {mode.value} ({compose_path.name})"]
    for name in list_services(config):
        service = get_service_config(config, name) or {}
        source = get_build_context(service) or service.get("image") or "?"
        ports = ", ".join(str(p) for p in get_ports(service)) or "-"
        lines.append(f"  service {name}: {source} ports: {ports}")
    return lines
