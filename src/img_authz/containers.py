from dependency_injector import containers, providers

from img_authz.application.service import AuthorizationService
from img_authz.domain.classifier import RequestClassifier
from img_authz.domain.policy import AuthorizationPolicy
from img_authz.infrastructure.docker_client import DaemonClient
from img_authz.interfaces.plugin.handler import AuthZPluginHandler
from img_authz.settings import PluginSettings


class Container(containers.DeclarativeContainer):
    config = providers.Configuration()

    settings = providers.Singleton(
        PluginSettings,
        docker_host=config.docker_host,
        plugin_socket=config.plugin_socket,
        socket_group=config.socket_group,
        authorized_registries=config.authorized_registries,
        authorized_images=config.authorized_images,
        metrics_port=config.metrics_port,
        log_level=config.log_level,
    )

    # Domain
    policy = providers.Singleton(
        AuthorizationPolicy,
        authorized_registries=settings.provided.authorized_registries,
        authorized_images=settings.provided.authorized_images,
    )

    classifier = providers.Singleton(RequestClassifier)

    # Infrastructure
    daemon_client = providers.Singleton(
        DaemonClient, docker_host=settings.provided.docker_host
    )

    # Application
    authorization_service = providers.Singleton(
        AuthorizationService,
        classifier=classifier,
        policy=policy,
    )

    # Interface
    plugin_handler = providers.Singleton(
        AuthZPluginHandler,
        service=authorization_service,
        daemon=daemon_client,
    )
