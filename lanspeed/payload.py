"""
Payload generation for throughput samples
Random bytes so transport-level compression cannot shrink the transfer
"""

import logging
import os
import threading
from typing import Optional

from lanspeed.errors import GenerationError

logger = logging.getLogger(__name__)


class PayloadGenerator:
    """Produces fixed-size blocks of incompressible test data"""

    def __init__(self, block_size: int, reuse: bool = False):
        if block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        self.block_size = block_size
        self.reuse = reuse
        self._pool: Optional[bytes] = None
        self._pool_lock = threading.Lock()

    def generate(self, size: int) -> bytes:
        """Return `size` fresh random bytes or raise GenerationError"""
        if size < 0:
            raise GenerationError(f"Cannot generate a negative payload size: {size}")
        try:
            return os.urandom(size)
        except (OSError, NotImplementedError) as e:
            logger.error(f"❌ PAYLOAD: Randomness source unavailable: {e}")
            raise GenerationError(f"Error generating test data: {e}") from e

    def block(self) -> bytes:
        """One block of the configured size, pre-generated once when reuse is on"""
        if not self.reuse:
            return self.generate(self.block_size)

        with self._pool_lock:
            if self._pool is None:
                logger.info(f"📦 PAYLOAD: Generating {self.block_size / 1048576:.1f}MB reusable data pool")
                self._pool = self.generate(self.block_size)
            return self._pool
