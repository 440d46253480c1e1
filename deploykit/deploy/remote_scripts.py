"""Remote shell scripts for prepare / deploy / validate / cleanup.

Each script runs in a single SSH invocation. Steps that remove something which
may not exist are suffixed with `|| true` so repeated runs converge.
"""

from __future__ import annotations

from textwrap import dedent

from deploykit.deploy.compose_helpers import COMPOSE_FILENAMES
from deploykit.deploy.nginx_helpers import SITES_AVAILABLE, SITES_ENABLED


APP_NAME = "deployed_app"
REMOTE_ARCHIVE = "~/deploy_archive.tar.gz"

DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
    "nginx",
]
PREREQ_PACKAGES = ["ca-certificates", "curl", "gnupg", "lsb-release", "apt-transport-https"]


def prepare_script() -> str:
    return dedent(
        f"""\
        set -e
        sudo apt-get update -y
        sudo apt-get install -y {" ".join(PREREQ_PACKAGES)}
        sudo install -m 0755 -d /etc/apt/keyrings
        curl -fsSL https://download.docker.com/linux/ubuntu/gpg | sudo gpg --dearmor --yes -o /etc/apt/keyrings/docker.gpg
        echo "deb [arch=$(dpkg --print-architecture) signed-by=/etc/apt/keyrings/docker.gpg] https://download.docker.com/linux/ubuntu $(. /etc/os-release; echo "$VERSION_CODENAME") stable" | sudo tee /etc/apt/sources.list.d/docker.list >/dev/null
        sudo apt-get update -y
        sudo apt-get install -y {" ".join(DOCKER_PACKAGES)}
        sudo systemctl enable --now docker
        sudo systemctl enable --now nginx
        sudo usermod -aG docker "$USER"
        mkdir -p ~/app
        """
    )


def _compose_test_expr() -> str:
    return " || ".join(f"[ -f {name} ]" for name in COMPOSE_FILENAMES)


def deploy_script() -> str:
    """Expects APP_PORT (and optionally BRANCH) in the remote environment."""
    return dedent(
        f"""\
        set -e
        cd ~/app
        if {_compose_test_expr()}; then
          echo "[deploykit] compose manifest found; rebuilding stack"
          sudo --preserve-env=APP_PORT,BRANCH docker compose down --remove-orphans || true
          sudo --preserve-env=APP_PORT,BRANCH docker compose up -d --build
        else
          echo "[deploykit] no compose manifest; building {APP_NAME} from Dockerfile"
          sudo docker build -t {APP_NAME} .
          sudo docker rm -f {APP_NAME} >/dev/null 2>&1 || true
          sudo docker run -d --name {APP_NAME} --restart unless-stopped -p "127.0.0.1:${{APP_PORT}}:${{APP_PORT}}" {APP_NAME}
        fi
        """
    )


def extract_archive_remote_cmd(remote_dir: str = "~/app") -> str:
    return (
        f"rm -rf {remote_dir} && mkdir -p {remote_dir} "
        f"&& tar -xzf {REMOTE_ARCHIVE} -C {remote_dir} && rm -f {REMOTE_ARCHIVE}"
    )


def validation_checks(app_port: int) -> list[tuple[str, str]]:
    """(name, remote command) pairs; each is read-only and judged by exit status."""
    return [
        ("docker", "sudo systemctl is-active --quiet docker && echo 'docker:running' || { echo 'docker:failed'; exit 1; }"),
        ("containers", "sudo docker ps --format 'table {{.Names}}\\t{{.Status}}\\t{{.Ports}}'"),
        (
            "app_http",
            f"out=$(curl -sS -I http://127.0.0.1:{int(app_port)}) && printf '%s\\n' \"$out\" | head -n 5",
        ),
        ("nginx", "sudo systemctl is-active --quiet nginx && echo 'nginx:running' || { echo 'nginx:failed'; exit 1; }"),
    ]


def cleanup_script() -> str:
    return dedent(
        f"""\
        set -e
        cd ~/app 2>/dev/null || cd ~
        sudo docker compose down --rmi all --volumes || true
        sudo docker rm -f {APP_NAME} || true
        sudo docker image rm -f {APP_NAME} || true
        cd ~
        sudo rm -rf ~/app || true
        sudo rm -f {SITES_AVAILABLE} || true
        sudo rm -f {SITES_ENABLED} || true
        sudo nginx -t || true
        sudo systemctl reload nginx || true
        """
    )
