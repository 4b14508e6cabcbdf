"""pytest configuration and fixtures for lanspeed tests.

Provides:
- FakeWebSocket: records frames sent through a DeliveryChannel
- ScriptedSampler: returns preset speeds, optionally slow or failing
- fast_config: small blocks, short intervals, ephemeral bulk port
- Markers for unit vs integration tests
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi import WebSocketDisconnect
from starlette.websockets import WebSocketState

from lanspeed.config import SpeedTestConfig


class FakeWebSocket:
    """Stand-in for a Starlette WebSocket that records outbound frames.

    Set fail_after to make the Nth text send (0-based) raise as if the
    client had gone away.
    """

    def __init__(self, fail_after: Optional[int] = None) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.sent: List[Dict[str, Any]] = []
        self.binary: List[int] = []
        self.fail_after = fail_after

    async def send_text(self, text: str) -> None:
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            self.client_state = WebSocketState.DISCONNECTED
            raise WebSocketDisconnect(code=1006)
        self.sent.append(json.loads(text))

    async def send_bytes(self, data: bytes) -> None:
        self.binary.append(len(data))

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]

    def speeds(self) -> List[float]:
        return [m["speed"] for m in self.sent if m["type"] == "speed"]

    def finals(self) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["type"] == "final"]


class ScriptedSampler:
    """Sampler returning preset speeds in order (cycling), after an optional delay."""

    def __init__(self, speeds: Sequence[float] = (100.0,), delay: float = 0.0,
                 error: Optional[Exception] = None) -> None:
        self.speeds = list(speeds)
        self.delay = delay
        self.error = error
        self.calls = 0
        self.cancelled = 0

    async def sample(self) -> float:
        index = self.calls
        self.calls += 1
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        return self.speeds[index % len(self.speeds)]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (opens local sockets)")


@pytest.fixture
def fast_config() -> SpeedTestConfig:
    """Config tuned for tests: 64KB blocks, 50ms interval, ephemeral loopback bulk port."""
    return SpeedTestConfig(
        host="127.0.0.1",
        bulk_host="127.0.0.1",
        bulk_port=0,
        chunk_size=64 * 1024,
        sample_interval=0.05,
        connect_timeout=2.0,
        transfer_timeout=2.0,
        send_timeout=2.0,
    )
