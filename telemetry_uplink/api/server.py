"""
Status Server - aiohttp endpoint exposing uplink health on localhost.
"""

from typing import Optional

from aiohttp import web

from ..core.logging_utils import get_module_logger
from .controller import StatusController
from .middleware import error_handling_middleware, localhost_only_middleware
from .routes import setup_status_routes

logger = get_module_logger("StatusServer")


class StatusServer:
    """Read-only REST server running on the uplink's event loop."""

    def __init__(
        self,
        controller: StatusController,
        host: str = "127.0.0.1",
        port: int = 8765,
        localhost_only: bool = True,
    ):
        self.controller = controller
        self.host = host
        self.port = port
        self.localhost_only = localhost_only

        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

    def create_app(self) -> web.Application:
        middlewares = [error_handling_middleware]
        if self.localhost_only:
            middlewares.insert(0, localhost_only_middleware)

        app = web.Application(middlewares=middlewares)
        app["controller"] = self.controller
        setup_status_routes(app)
        return app

    async def start(self) -> None:
        if self._running:
            logger.warning("Status server already running")
            return

        self._runner = web.AppRunner(self.create_app(), access_log=None)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info("Status API listening on %s", self.url)

    async def stop(self) -> None:
        if not self._running:
            return

        if self._site:
            await self._site.stop()
            self._site = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._running = False
        logger.info("Status API stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


__all__ = ["StatusServer"]
