import logging

import docker
from docker.constants import DEFAULT_DOCKER_API_VERSION
from docker.errors import DockerException

logger = logging.getLogger(__name__)


class DaemonClient:
    """
    Infrastructure client for the Docker daemon the plugin is attached to.
    Only used for health reporting; authorization decisions never call it.
    """

    def __init__(self, docker_host: str, client: docker.DockerClient = None):
        """
        Initializes the daemon client.

        Args:
            docker_host: Daemon endpoint (e.g. unix:///var/run/docker.sock).
            client: Pre-built SDK client, mainly for tests.

        Raises:
            DockerException: If the SDK client cannot be constructed.
        """
        self.docker_host = docker_host
        # A pinned API version keeps construction from contacting the daemon.
        self.client = client or docker.DockerClient(
            base_url=docker_host, version=DEFAULT_DOCKER_API_VERSION
        )

    def ping(self) -> bool:
        """Returns True if the daemon answered, False on any API/transport error."""
        try:
            return bool(self.client.ping())
        except (DockerException, OSError) as e:
            logger.warning(f"Docker daemon at {self.docker_host} unreachable: {e}")
            return False

    def close(self):
        self.client.close()
