import os
from typing import Iterable, List, Optional, Union

PLUGIN_VERSION = "1.0.0"

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
DEFAULT_PLUGIN_SOCKET = "/run/docker/plugins/img-authz-plugin.sock"


def _as_list(value: Union[Iterable[str], str, None], env_name: str) -> List[str]:
    """Accepts an explicit list, a comma separated string, or falls back to env."""
    if value is None:
        value = os.getenv(env_name, "")
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [v.strip() for v in value if v and v.strip()]


class PluginSettings:
    """Configuration for the image authorization plugin."""

    def __init__(
        self,
        docker_host: str = None,
        plugin_socket: str = None,
        socket_group: str = None,
        authorized_registries: Optional[Union[List[str], str]] = None,
        authorized_images: Optional[Union[List[str], str]] = None,
        metrics_port: int = None,
        log_level: str = None,
        build: str = None,
    ):
        self.docker_host = docker_host or os.getenv("DOCKER_HOST", DEFAULT_DOCKER_HOST)
        self.plugin_socket = plugin_socket or os.getenv(
            "PLUGIN_SOCKET", DEFAULT_PLUGIN_SOCKET
        )
        self.socket_group = socket_group or os.getenv("PLUGIN_SOCKET_GROUP", "root")

        self.authorized_registries = _as_list(
            authorized_registries, "AUTHORIZED_REGISTRIES"
        )
        self.authorized_images = _as_list(authorized_images, "AUTHORIZED_IMAGES")

        try:
            self.metrics_port = int(
                metrics_port if metrics_port is not None else os.getenv("METRICS_PORT", 0)
            )
        except (ValueError, TypeError):
            self.metrics_port = 0

        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.version = PLUGIN_VERSION
        self.build = build or os.getenv("PLUGIN_BUILD", "dev")
