"""
Bulk Transfer Server
===================

Raw TCP listener for pull-based sampling. Each accepted connection receives
exactly one generated payload block, written once under a deadline, and is
then closed by the sender; the receiver detects completion via EOF.
"""

import asyncio
import logging
from typing import Optional, Tuple

from lanspeed.config import SpeedTestConfig
from lanspeed.errors import GenerationError
from lanspeed.payload import PayloadGenerator

logger = logging.getLogger(__name__)


class BulkTransferServer:
    """asyncio listener that hands out one payload block per connection"""

    def __init__(self, config: SpeedTestConfig, payload: PayloadGenerator):
        self.config = config
        self.payload = payload
        self._server: Optional[asyncio.AbstractServer] = None
        self.stats = {
            'connections': 0,
            'blocks_sent': 0,
            'bytes_sent': 0,
            'failures': 0,
        }

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) the driver should dial; resolves port 0 to the bound port"""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("Bulk transfer server is not running")
        port = self._server.sockets[0].getsockname()[1]
        return self.config.bulk_target_host, port

    async def start(self):
        if self._server is not None:
            return
        self._server = await asyncio.start_server(
            self._handle_connection,
            host=self.config.bulk_host,
            port=self.config.bulk_port,
        )
        logger.info(f"🚀 BULK: Speed test TCP server listening on "
                    f"{self.config.bulk_host}:{self.address[1]} "
                    f"({self.config.chunk_size / 1048576:.1f}MB blocks)")

    async def stop(self):
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("🛑 BULK: Speed test TCP server stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info('peername')
        self.stats['connections'] += 1
        try:
            try:
                # Multi-megabyte urandom calls stay off the event loop
                data = await asyncio.to_thread(self.payload.block)
            except GenerationError as e:
                self.stats['failures'] += 1
                logger.error(f"❌ BULK: Not sending to {peer}: {e}")
                return

            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self.config.transfer_timeout)
            self.stats['blocks_sent'] += 1
            self.stats['bytes_sent'] += len(data)
            logger.debug(f"📤 BULK: Sent {len(data)} bytes to {peer}")

        except (OSError, asyncio.TimeoutError) as e:
            self.stats['failures'] += 1
            logger.warning(f"⚠️ BULK: Error sending test data to {peer}: {type(e).__name__}: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
