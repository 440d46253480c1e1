"""Nginx reverse-proxy site rendering and installation."""

from __future__ import annotations

from textwrap import dedent
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from deploykit.deploy.ssh_helpers import RemoteHost


SITE_NAME = "deployed_app"
SITES_AVAILABLE = f"/etc/nginx/sites-available/{SITE_NAME}"
SITES_ENABLED = f"/etc/nginx/sites-enabled/{SITE_NAME}"
DEFAULT_SITE_ENABLED = "/etc/nginx/sites-enabled/default"

# Braces are doubled for str.format; only {port} is substituted.
SITE_TEMPLATE = dedent(
    """\
    server {{
        listen 80 default_server;
        server_name _;

        location / {{
            proxy_set_header Host $host;
            proxy_set_header X-Real-IP $remote_addr;
            proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
            proxy_set_header X-Forwarded-Proto $scheme;
            proxy_pass http://127.0.0.1:{port};
        }}
    }}
    """
)


def render_nginx_site(app_port: int) -> str:
    if isinstance(app_port, bool) or not isinstance(app_port, int):
        raise ValueError(f"app_port must be an int, got {type(app_port).__name__}")
    if app_port < 1 or app_port > 65535:
        raise ValueError(f"app_port must be in range 1-65535, got {app_port}")
    return SITE_TEMPLATE.format(port=app_port)


def enable_site_remote_cmd() -> str:
    return f"sudo ln -sf {SITES_AVAILABLE} {SITES_ENABLED}"


def disable_default_site_remote_cmd() -> str:
    # The stock site also claims default_server on port 80.
    return f"sudo rm -f {DEFAULT_SITE_ENABLED}"


def reload_remote_cmd() -> str:
    # Reload only once the configuration has passed `nginx -t`.
    return "sudo nginx -t && sudo systemctl reload nginx"


def configure_nginx(remote: RemoteHost, app_port: int) -> None:
    remote.write_file(SITES_AVAILABLE, render_nginx_site(app_port))
    remote.run(enable_site_remote_cmd())
    remote.run(disable_default_site_remote_cmd())
    remote.run(reload_remote_cmd())
