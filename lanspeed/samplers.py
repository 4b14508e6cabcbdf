"""
Throughput Samplers
==================

One sample = one timed payload block transfer, converted to Mbps.

- BulkDownloadSampler (pull): dial the bulk listener, read until EOF
- WebSocketPushSampler (push): send one binary frame over the control channel
"""

import asyncio
import logging
import time
from typing import Callable, Tuple

from lanspeed.channel import DeliveryChannel
from lanspeed.config import SpeedTestConfig
from lanspeed.errors import TransportError
from lanspeed.measurement import measure_speed
from lanspeed.payload import PayloadGenerator

logger = logging.getLogger(__name__)

READ_SIZE = 256 * 1024


class BulkDownloadSampler:
    """Times one full block download from the bulk transfer server"""

    def __init__(self, config: SpeedTestConfig, address: Callable[[], Tuple[str, int]]):
        """
        Args:
            config: process configuration (block size, timeouts)
            address: returns the (host, port) to dial, resolved per sample
        """
        self.config = config
        self.address = address

    async def sample(self) -> float:
        host, port = self.address()
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.config.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Cannot connect to bulk server {host}:{port}: {e}") from e

        try:
            total_bytes, elapsed = await asyncio.wait_for(
                self._drain(reader),
                timeout=self.config.transfer_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Bulk transfer exceeded {self.config.transfer_timeout}s deadline") from e
        except OSError as e:
            raise TransportError(f"Bulk transfer failed: {e}") from e
        finally:
            writer.close()

        if total_bytes < self.config.chunk_size:
            raise TransportError(f"Short bulk transfer: {total_bytes}/{self.config.chunk_size} bytes")

        return measure_speed(total_bytes, elapsed)

    @staticmethod
    async def _drain(reader: asyncio.StreamReader) -> Tuple[int, float]:
        # Clock starts at the first byte so server-side block generation is not timed
        total_bytes = 0
        start = None
        while True:
            chunk = await reader.read(READ_SIZE)
            if not chunk:
                elapsed = time.perf_counter() - start if start is not None else 0.0
                return total_bytes, elapsed
            if start is None:
                start = time.perf_counter()
            total_bytes += len(chunk)


class WebSocketPushSampler:
    """Times one binary frame sent to the client over the control channel"""

    def __init__(self, config: SpeedTestConfig, payload: PayloadGenerator, channel: DeliveryChannel):
        self.config = config
        self.payload = payload
        self.channel = channel

    async def sample(self) -> float:
        data = await asyncio.to_thread(self.payload.block)
        send_duration = await self.channel.send_bytes(data, timeout=self.config.transfer_timeout)
        logger.debug(f"📤 PUSH: {len(data)} bytes in {send_duration * 1000:.1f}ms")
        return measure_speed(len(data), send_duration)
