import asyncio
import logging
import time

from litestar import Litestar, Request, Response, asgi, get, post
from litestar.types import Receive, Scope, Send
from prometheus_client import make_asgi_app

from img_authz.application.service import AuthorizationService
from img_authz.domain.models import AuthZRequest, EnvelopeError
from img_authz.infrastructure.docker_client import DaemonClient
from img_authz.metrics import ENVELOPE_ERRORS_TOTAL

logger = logging.getLogger(__name__)

ACTIVATE_PATH = "/Plugin.Activate"
AUTHZ_REQUEST_PATH = "/AuthZPlugin.AuthZReq"
AUTHZ_RESPONSE_PATH = "/AuthZPlugin.AuthZRes"


class AuthZPluginHandler:
    """
    HTTP interface implementing the Docker authorization plugin protocol.
    The daemon POSTs JSON envelopes to it over the plugin unix socket.
    """

    def __init__(self, service: AuthorizationService, daemon: DaemonClient = None):
        self.service = service
        self.daemon = daemon

    def _error_response(self, endpoint: str, error: EnvelopeError) -> Response:
        logger.error(f"Rejecting malformed {endpoint} envelope: {error}")
        ENVELOPE_ERRORS_TOTAL.labels(endpoint=endpoint).inc()
        return Response(content={"Err": str(error)}, status_code=500)

    async def _decode(self, request: Request) -> AuthZRequest:
        return AuthZRequest.from_json(await request.body())

    def create_app(self) -> Litestar:
        handler = self
        metrics_app = make_asgi_app()

        @post(ACTIVATE_PATH, status_code=200)
        async def activate() -> Response:
            logger.info("Plugin activated by docker daemon")
            return Response(content={"Implements": ["authz"]})

        @post(AUTHZ_REQUEST_PATH, status_code=200)
        async def authz_request(request: Request) -> Response:
            try:
                req = await handler._decode(request)
            except EnvelopeError as e:
                return handler._error_response("AuthZReq", e)
            decision = handler.service.authorize_request(req)
            return Response(content=decision.to_response())

        @post(AUTHZ_RESPONSE_PATH, status_code=200)
        async def authz_response(request: Request) -> Response:
            try:
                req = await handler._decode(request)
            except EnvelopeError as e:
                return handler._error_response("AuthZRes", e)
            decision = handler.service.authorize_response(req)
            return Response(content=decision.to_response())

        @get("/health")
        async def health_check() -> dict:
            """Liveness endpoint; also reports whether the daemon answers pings."""
            daemon_ok = None
            if handler.daemon is not None:
                # docker SDK is synchronous
                daemon_ok = await asyncio.to_thread(handler.daemon.ping)
            return {"status": "ok", "timestamp": time.time(), "daemon": daemon_ok}

        @asgi("/metrics", is_mount=True, copy_scope=True)
        async def metrics(scope: Scope, receive: Receive, send: Send) -> None:
            await metrics_app(scope, receive, send)

        return Litestar(
            route_handlers=[
                activate,
                authz_request,
                authz_response,
                health_check,
                metrics,
            ],
        )
