"""
Docker Image Authorization Plugin

Docker authz plugin that only lets images be fetched from a whitelist of
authorized registries and images. Served over the plugin unix socket.
"""

import asyncio
import grp
import logging
import os
import socket

import click
import uvicorn
from dependency_injector.wiring import Provide, inject
from docker.errors import DockerException
from prometheus_client import start_http_server

from img_authz.containers import Container
from img_authz.domain.policy import AuthorizationPolicy
from img_authz.interfaces.plugin.handler import AuthZPluginHandler
from img_authz.settings import (
    DEFAULT_DOCKER_HOST,
    DEFAULT_PLUGIN_SOCKET,
    PluginSettings,
)

logger = logging.getLogger(__name__)


def bind_plugin_socket(path: str, group: str) -> socket.socket:
    """
    Binds the plugin unix socket, replacing a stale socket file if present.

    The socket is handed to the given group with mode 0660 so only the
    daemon (running as that group) can talk to the plugin.
    """
    gid = grp.getgrnam(group).gr_gid

    socket_dir = os.path.dirname(path)
    if socket_dir:
        os.makedirs(socket_dir, exist_ok=True)
    if os.path.exists(path):
        os.remove(path)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chown(path, -1, gid)
        os.chmod(path, 0o660)
    except OSError:
        sock.close()
        raise
    return sock


def log_policy(settings: PluginSettings, policy: AuthorizationPolicy):
    logger.info(f"Plugin Version: {settings.version} Build: {settings.build}")
    for registry in sorted(policy.authorized_registries):
        logger.info(f"Authorized registry: {registry}")
    logger.info(f"No. of authorized registries: {len(policy.authorized_registries)}")
    for image in sorted(policy.authorized_images):
        logger.info(f"Authorized image: {image}")
    logger.info(f"No. of authorized images: {len(policy.authorized_images)}")


@inject
def serve(
    handler: AuthZPluginHandler = Provide[Container.plugin_handler],
    settings: PluginSettings = Provide[Container.settings],
):
    """Starts the authz plugin HTTP server on the plugin unix socket."""
    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Prometheus metrics server started on port {settings.metrics_port}")

    try:
        sock = bind_plugin_socket(settings.plugin_socket, settings.socket_group)
    except KeyError:
        logger.error(f"Unknown socket group: {settings.socket_group}")
        raise SystemExit(1)
    except OSError as e:
        logger.error(f"Failed to bind plugin socket {settings.plugin_socket}: {e}")
        raise SystemExit(1)

    config = uvicorn.Config(handler.create_app(), log_level="warning")
    server = uvicorn.Server(config)

    logger.info(f"Image authorization plugin listening on {settings.plugin_socket}")
    try:
        asyncio.run(server.serve(sockets=[sock]))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        sock.close()
        if handler.daemon is not None:
            handler.daemon.close()


@click.command()
@click.option(
    "--host",
    "docker_host",
    envvar="DOCKER_HOST",
    default=DEFAULT_DOCKER_HOST,
    help="Specifies the host where docker daemon is running",
)
@click.option(
    "--registry",
    "registries",
    multiple=True,
    help="Specifies the authorized image registries (repeatable)",
)
@click.option(
    "--image",
    "images",
    multiple=True,
    help="Specifies the authorized images (repeatable)",
)
@click.option(
    "--socket",
    "plugin_socket",
    envvar="PLUGIN_SOCKET",
    default=DEFAULT_PLUGIN_SOCKET,
    help="Path of the authz plugin unix socket",
)
@click.option(
    "--socket-group",
    envvar="PLUGIN_SOCKET_GROUP",
    default="root",
    help="Group owning the plugin unix socket",
)
@click.option(
    "--metrics-port",
    envvar="METRICS_PORT",
    default=0,
    type=int,
    help="Expose Prometheus metrics on this TCP port (0 disables)",
)
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
def main(
    docker_host,
    registries,
    images,
    plugin_socket,
    socket_group,
    metrics_port,
    log_level,
):
    logging.basicConfig(
        level=log_level.upper(), format="%(asctime)s - %(levelname)s - %(message)s"
    )

    container = Container()
    container.config.from_dict(
        {
            "docker_host": docker_host,
            "plugin_socket": plugin_socket,
            "socket_group": socket_group,
            # Empty tuples fall back to AUTHORIZED_REGISTRIES / AUTHORIZED_IMAGES
            "authorized_registries": list(registries) or None,
            "authorized_images": list(images) or None,
            "metrics_port": metrics_port,
            "log_level": log_level,
        }
    )
    container.wire(modules=[__name__])

    log_policy(container.settings(), container.policy())

    try:
        container.daemon_client()
    except DockerException:
        logger.exception(f"Failed to create docker client for {docker_host}")
        raise SystemExit(1)

    serve()


if __name__ == "__main__":
    main()
