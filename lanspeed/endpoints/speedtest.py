"""
Speed Test WebSocket Endpoint
============================

One control connection = one session. The connection's read loop handles
`start`/`stop` commands while a supervised driver task samples throughput
and reports back over the same WebSocket.
"""

import asyncio
import logging
import time
from typing import Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from websockets.exceptions import ConnectionClosed

from lanspeed.bulk import BulkTransferServer
from lanspeed.channel import DeliveryChannel
from lanspeed.config import SpeedTestConfig
from lanspeed.driver import SpeedTestDriver
from lanspeed.errors import DecodeError, TransportError
from lanspeed.messages import START, STOP, SpeedTestMessage, decode_message
from lanspeed.payload import PayloadGenerator
from lanspeed.samplers import BulkDownloadSampler, WebSocketPushSampler
from lanspeed.session import SpeedTestSession

logger = logging.getLogger(__name__)


class SpeedTestService:
    """Process-wide collaborators shared by all control connections"""

    def __init__(self, config: SpeedTestConfig, payload: Optional[PayloadGenerator] = None,
                 bulk_server: Optional[BulkTransferServer] = None):
        self.config = config
        self.payload = payload or PayloadGenerator(config.chunk_size, reuse=config.reuse_payload)
        self.bulk_server = bulk_server or BulkTransferServer(config, self.payload)
        self.connections: Dict[str, 'SpeedTestConnection'] = {}
        self.stats = {
            'connections': 0,
            'rejected': 0,
            'start_time': time.time(),
        }

    def create_sampler(self, channel: DeliveryChannel):
        if self.config.measurement_mode == 'push':
            return WebSocketPushSampler(self.config, self.payload, channel)
        return BulkDownloadSampler(self.config, lambda: self.bulk_server.address)

    def has_capacity(self) -> bool:
        return len(self.connections) < self.config.max_connections

    def running_tests(self) -> int:
        return len([c for c in self.connections.values() if c.session.running])

    async def start(self):
        if self.config.measurement_mode == 'pull':
            await self.bulk_server.start()

    async def shutdown(self):
        """Stop every active run, then the bulk listener"""
        for connection in list(self.connections.values()):
            await connection.close()
        await self.bulk_server.stop()


class SpeedTestConnection:
    """Control read loop plus driver supervision for one WebSocket"""

    def __init__(self, connection_id: str, websocket: WebSocket, service: SpeedTestService):
        self.connection_id = connection_id
        self.service = service
        self.config = service.config
        self.logger_prefix = f"[{connection_id}] "
        self.session = SpeedTestSession()
        self.channel = DeliveryChannel(websocket, self.config.send_timeout, self.logger_prefix)
        self.driver = SpeedTestDriver(
            self.session,
            self.channel,
            service.create_sampler(self.channel),
            sample_interval=self.config.sample_interval,
            logger_prefix=self.logger_prefix,
        )
        self._driver_task: Optional[asyncio.Task] = None

    async def handle_message(self, message: SpeedTestMessage):
        if message.type == START:
            await self.start_run(message.duration or 0)
        elif message.type == STOP:
            await self.stop_run()
        else:
            logger.debug(f"{self.logger_prefix}📨 Ignoring message type: {message.type}")

    async def start_run(self, requested_duration: int):
        # A start during an active run completes that run first
        if self.session.running:
            logger.info(f"{self.logger_prefix}🔄 Start received during active run, finishing it first")
            await self.driver.finish()
        await self._join_driver()

        duration = self.config.resolve_duration(requested_duration)
        token = self.session.start()
        self._driver_task = asyncio.create_task(
            self.driver.run(token, duration),
            name=f"speedtest-driver-{self.connection_id}-{token.run_id}",
        )

    async def stop_run(self):
        if await self.driver.finish():
            logger.info(f"{self.logger_prefix}🛑 Run stopped by client")
        else:
            logger.debug(f"{self.logger_prefix}🛑 Stop received with no active run")

    async def _join_driver(self):
        task, self._driver_task = self._driver_task, None
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(task, timeout=self.config.transfer_timeout + self.config.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.logger_prefix}⚠️ Driver did not exit in time, cancelled")

    async def close(self):
        """Connection teardown: stop the run without reporting and join the driver"""
        self.session.stop()
        await self._join_driver()

    async def serve(self):
        """Read control frames until the client disconnects"""
        websocket = self.channel.websocket
        message_count = 0

        while True:
            try:
                raw_message = await websocket.receive()
            except (WebSocketDisconnect, ConnectionClosed):
                logger.info(f"{self.logger_prefix}📡 WebSocket disconnected after {message_count} messages")
                break
            except RuntimeError as e:
                # Starlette raises this once a disconnect has been received
                logger.info(f"{self.logger_prefix}📡 WebSocket receive ended: {e}")
                break

            if raw_message["type"] == "websocket.disconnect":
                logger.info(f"{self.logger_prefix}📡 Disconnect message after {message_count} messages")
                break

            if raw_message["type"] != "websocket.receive":
                continue

            message_count += 1
            text = raw_message.get("text")
            if text is None:
                logger.debug(f"{self.logger_prefix}📥 Ignoring binary frame")
                continue

            try:
                message = decode_message(text)
            except DecodeError as e:
                logger.warning(f"{self.logger_prefix}JSON unmarshal error: {e}")
                continue

            try:
                await self.handle_message(message)
            except TransportError as e:
                logger.warning(f"{self.logger_prefix}📡 Write error while handling {message.type}: {e}")
                break


def create_speedtest_endpoint(app, service: SpeedTestService, path: str = "/ws"):
    """
    Register the speed test WebSocket endpoint on a FastAPI app.

    Args:
        app: FastAPI application instance
        service: shared collaborators (config, payload, bulk server)
        path: WebSocket route
    """

    @app.websocket(path)
    async def speedtest_websocket(websocket: WebSocket):
        connection_id = f"ws_{int(time.time() * 1000)}_{service.stats['connections']}"
        service.stats['connections'] += 1

        if not service.has_capacity():
            service.stats['rejected'] += 1
            logger.warning(f"⚠️ Maximum connections ({service.config.max_connections}) reached, "
                           f"rejecting {connection_id}")
            await websocket.close(code=1013, reason="Server capacity exceeded")
            return

        # Registered before accept so the capacity check sees it immediately
        connection = SpeedTestConnection(connection_id, websocket, service)
        service.connections[connection_id] = connection

        try:
            await websocket.accept()
            logger.info(f"🔌 Speed test connection: {connection_id}")
            await connection.serve()
        finally:
            await connection.close()
            service.connections.pop(connection_id, None)
            logger.info(f"🧹 Connection cleaned up: {connection_id}")
