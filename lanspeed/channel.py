"""
Delivery Channel
===============

Wraps the control WebSocket of one connection. Every outbound frame goes
through a single asyncio lock so the driver task and the control read loop
never write concurrently, and so a check-then-send (record a sample, finish
a run) happens atomically with respect to other writers.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from websockets.exceptions import ConnectionClosed

from lanspeed.errors import TransportError
from lanspeed.messages import SpeedTestMessage

logger = logging.getLogger(__name__)

# Failures that mean the peer is gone or the socket is unusable
SEND_ERRORS = (WebSocketDisconnect, ConnectionClosed, RuntimeError, OSError, asyncio.TimeoutError)


class DeliveryChannel:
    """Serialized sender for one WebSocket"""

    def __init__(self, websocket: WebSocket, send_timeout: float = 10.0, logger_prefix: str = ""):
        self.websocket = websocket
        self.send_timeout = send_timeout
        self.logger_prefix = logger_prefix
        self.messages_sent = 0
        self.bytes_sent = 0
        self._send_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self.websocket.client_state == WebSocketState.CONNECTED

    async def _write_text(self, text: str):
        if not self.connected:
            raise TransportError(f"WebSocket not connected: {self.websocket.client_state}")
        try:
            await asyncio.wait_for(self.websocket.send_text(text), timeout=self.send_timeout)
        except SEND_ERRORS as e:
            logger.debug(f"{self.logger_prefix}📡 Send failed after {self.messages_sent} messages: {e!r}")
            raise TransportError(f"Write error: {type(e).__name__}: {e}") from e
        self.messages_sent += 1

    async def send(self, message: SpeedTestMessage):
        """Send one message; raises TransportError"""
        async with self._send_lock:
            await self._write_text(message.to_json())

    async def send_if(self, build: Callable[[], Optional[SpeedTestMessage]]) -> bool:
        """
        Build and send a message while holding the send lock.

        Args:
            build: called under the lock; returns the message to send, or
                None to send nothing

        Returns:
            True if a message was sent
        """
        async with self._send_lock:
            message = build()
            if message is None:
                return False
            await self._write_text(message.to_json())
            return True

    async def send_bytes(self, data: bytes, timeout: Optional[float] = None) -> float:
        """
        Send one binary frame; raises TransportError.

        Returns:
            Seconds spent in the send call itself, excluding lock wait
        """
        async with self._send_lock:
            if not self.connected:
                raise TransportError(f"WebSocket not connected: {self.websocket.client_state}")
            send_start = time.perf_counter()
            try:
                await asyncio.wait_for(self.websocket.send_bytes(data), timeout=timeout or self.send_timeout)
            except SEND_ERRORS as e:
                raise TransportError(f"Binary write error: {type(e).__name__}: {e}") from e
            send_duration = time.perf_counter() - send_start
            self.bytes_sent += len(data)
            return send_duration
