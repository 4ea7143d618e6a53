"""
Uplink application - builds every component from an ``UplinkConfig`` and
runs them for the lifetime of one supervisor run.
"""

from __future__ import annotations

import contextlib
from typing import Optional

from .api import StatusController, StatusServer
from .config import UplinkConfig
from .core.asyncio_utils import create_logged_task
from .core.event_logger import EventLogger
from .core.logging_utils import get_module_logger
from .fix.base_source import BaseFixSource
from .fix.gpsd_source import GpsdFixSource
from .fix.serial_source import SerialFixSource
from .paths.monitor import PathMonitor
from .paths.probe import PathProbe, TcpConnectProbe
from .paths.types import NetworkPath, PathState
from .supervisor import Supervisor, SupervisorReport
from .uplink.backoff import BackoffConfig, ExponentialBackoff
from .uplink.retry_buffer import RetryBuffer
from .uplink.session import UplinkSession
from .uplink.transport import BaseUplinkTransport, StreamUplinkTransport

logger = get_module_logger("UplinkApp")


def build_source(config: UplinkConfig) -> BaseFixSource:
    if config.source == "serial":
        return SerialFixSource(
            config.serial_port,
            baudrate=config.baud_rate,
            min_quality=config.min_quality,
        )
    return GpsdFixSource(
        config.gpsd_host,
        config.gpsd_port,
        min_quality=config.min_quality,
    )


class UplinkApp:
    """Owns the fix source, path monitor, uplink session and status API.

    Components can be injected (tests use fakes); anything not supplied is
    built from ``config``. Constructing the app with no paths configured raises
    ``NoPathsConfigured``.
    """

    def __init__(
        self,
        config: UplinkConfig,
        *,
        source: Optional[BaseFixSource] = None,
        transport: Optional[BaseUplinkTransport] = None,
        probe: Optional[PathProbe] = None,
    ):
        self.config = config

        probe_host, probe_port = config.probe_target
        self.monitor = PathMonitor(
            config.paths,
            probe=probe or TcpConnectProbe(probe_host, probe_port, timeout=config.probe_timeout),
            interval=config.probe_interval,
            down_after=config.down_after,
        )
        self.event_logger = EventLogger(config.event_log)
        self.source = source or build_source(config)
        self.transport = transport or StreamUplinkTransport(
            config.endpoint_host,
            config.endpoint_port,
            mptcp=config.mptcp,
            connect_timeout=config.connect_timeout,
        )
        self.session = UplinkSession(
            self.transport,
            self.monitor,
            RetryBuffer(config.buffer_capacity),
            backoff=ExponentialBackoff(BackoffConfig(
                base_delay=config.backoff_base,
                max_delay=config.backoff_max,
                backoff_factor=config.backoff_factor,
                jitter=config.backoff_jitter,
            )),
            send_timeout=config.send_timeout,
            precision=config.precision,
            event_logger=self.event_logger,
        )
        self.supervisor = Supervisor(
            self.source,
            self.session,
            drain_timeout=config.drain_timeout,
            event_logger=self.event_logger,
        )
        self.status_server: Optional[StatusServer] = None
        if config.status_api:
            self.status_server = StatusServer(
                StatusController(self.monitor, self.session, self.supervisor, config),
                host=config.status_host,
                port=config.status_port,
            )

    def request_shutdown(self, reason: str = "signal") -> None:
        self.supervisor.request_shutdown(reason)

    async def run(self) -> SupervisorReport:
        await self.event_logger.initialize()
        self.monitor.add_listener(self._log_path_change)

        try:
            await self.monitor.start()
            await self.session.start()
            await self._start_status_server()
            return await self.supervisor.run()
        finally:
            await self._shutdown()

    async def _start_status_server(self) -> None:
        if self.status_server is None:
            return
        try:
            await self.status_server.start()
        except OSError as exc:
            # The uplink is still useful without its status endpoint
            logger.error("Status API unavailable on port %d: %s", self.status_server.port, exc)

    async def _shutdown(self) -> None:
        if self.status_server is not None:
            await self.status_server.stop()
        await self.session.close()
        await self.monitor.stop()
        self.monitor.remove_listener(self._log_path_change)
        with contextlib.suppress(OSError):
            await self.source.close()

    def _log_path_change(self, path: NetworkPath, old_state: PathState) -> None:
        if not self.event_logger.enabled:
            return
        create_logged_task(
            self.event_logger.log_path_state(path.id, old_state.value, path.state.value),
            logger=logger,
            name=f"event:path:{path.id}",
        )


__all__ = ["UplinkApp", "build_source"]
