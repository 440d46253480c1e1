from deploykit.deploy.remote_scripts import (
    APP_NAME,
    cleanup_script,
    deploy_script,
    extract_archive_remote_cmd,
    prepare_script,
    validation_checks,
)


def test_prepare_script_installs_docker_stack_and_nginx():
    out = prepare_script()
    assert out.startswith("set -e\n")
    assert "sudo apt-get update -y" in out
    assert "docker-buildx-plugin" in out
    assert "docker-compose-plugin" in out
    assert "nginx" in out
    assert "gpg --dearmor --yes" in out
    assert "sudo systemctl enable --now docker" in out
    assert "sudo systemctl enable --now nginx" in out
    assert 'sudo usermod -aG docker "$USER"' in out
    assert "mkdir -p ~/app" in out


def test_deploy_script_prefers_compose_over_dockerfile():
    out = deploy_script()
    compose_at = out.index("docker compose up -d --build")
    build_at = out.index(f"docker build -t {APP_NAME} .")
    assert compose_at < build_at
    assert "[ -f docker-compose.yml ]" in out
    assert "[ -f compose.yaml ]" in out
    assert "sudo --preserve-env=APP_PORT,BRANCH docker compose down --remove-orphans || true" in out
    assert "sudo --preserve-env=APP_PORT,BRANCH docker compose up -d --build" in out


def test_deploy_script_fallback_is_idempotent_and_localhost_bound():
    out = deploy_script()
    assert f"sudo docker rm -f {APP_NAME} >/dev/null 2>&1 || true" in out
    assert '-p "127.0.0.1:${APP_PORT}:${APP_PORT}"' in out
    assert f"--name {APP_NAME}" in out


def test_extract_archive_clears_remote_dir_first():
    out = extract_archive_remote_cmd("~/app")
    assert out.startswith("rm -rf ~/app && mkdir -p ~/app")
    assert out.endswith("rm -f ~/deploy_archive.tar.gz")


def test_validation_checks_cover_services_and_port():
    checks = dict(validation_checks(8080))
    assert list(checks) == ["docker", "containers", "app_http", "nginx"]
    assert "http://127.0.0.1:8080" in checks["app_http"]
    assert "docker:failed" in checks["docker"]
    assert "nginx:running" in checks["nginx"]


def test_cleanup_script_tolerates_absence():
    out = cleanup_script()
    destructive = [
        "sudo docker compose down --rmi all --volumes",
        f"sudo docker rm -f {APP_NAME}",
        f"sudo docker image rm -f {APP_NAME}",
        "sudo rm -rf ~/app",
        "sudo rm -f /etc/nginx/sites-available/deployed_app",
        "sudo rm -f /etc/nginx/sites-enabled/deployed_app",
        "sudo systemctl reload nginx",
    ]
    for step in destructive:
        assert f"{step} || true" in out
