#!/usr/bin/env python3
"""
Speed Test Client
Runs one test against a lanspeed server and prints each sample
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import aiohttp

from lanspeed.errors import DecodeError
from lanspeed.messages import FINAL, SPEED, SpeedTestMessage, decode_message

logger = logging.getLogger(__name__)


@dataclass
class SpeedTestResult:
    """Everything the client observed during one run"""
    speeds: List[float] = field(default_factory=list)
    average: Optional[float] = None
    final_count: int = 0
    pushed_bytes: int = 0
    stop_sent: bool = False
    elapsed_seconds: float = 0.0

    @property
    def completed(self) -> bool:
        return self.final_count > 0

    def apply(self, message: SpeedTestMessage) -> bool:
        """Record one server message; True once the run is complete"""
        if message.type == SPEED:
            self.speeds.append(message.speed or 0.0)
        elif message.type == FINAL:
            self.average = message.average or 0.0
            self.final_count += 1
            return True
        return False


async def run_speed_test(url: str, duration: Optional[int] = None, stop_after: Optional[int] = None,
                         timeout: float = 60.0,
                         on_speed: Optional[Callable[[float], None]] = None) -> SpeedTestResult:
    """
    Connect, start a run and collect messages until the final result.

    Args:
        url: control WebSocket URL, e.g. ws://localhost:8080/ws
        duration: requested run length in seconds (server default when None)
        stop_after: send `stop` after this many speed samples
        timeout: overall client-side deadline in seconds
        on_speed: callback for each speed sample
    """
    result = SpeedTestResult()
    started = time.perf_counter()

    async with aiohttp.ClientSession() as http:
        async with http.ws_connect(url, max_msg_size=0) as ws:
            await ws.send_str(SpeedTestMessage.start(duration).to_json())

            async with asyncio.timeout(timeout):
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.BINARY:
                        result.pushed_bytes += len(msg.data)
                        continue
                    if msg.type != aiohttp.WSMsgType.TEXT:
                        break

                    try:
                        message = decode_message(msg.data)
                    except DecodeError as e:
                        logger.warning(f"Ignoring malformed server frame: {e}")
                        continue

                    if result.apply(message):
                        break
                    if message.type == SPEED:
                        if on_speed:
                            on_speed(message.speed or 0.0)
                        if stop_after and not result.stop_sent and len(result.speeds) >= stop_after:
                            await ws.send_str(SpeedTestMessage.stop().to_json())
                            result.stop_sent = True

    result.elapsed_seconds = time.perf_counter() - started
    return result


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="LAN Speed Test Client")
    parser.add_argument("--url", default="ws://localhost:8080/ws", help="Control WebSocket URL")
    parser.add_argument("--duration", type=int, help="Test duration in seconds")
    parser.add_argument("--stop-after", type=int, help="Stop after this many samples")
    parser.add_argument("--unit", choices=["bits", "bytes"], default="bits", help="Display unit")
    args = parser.parse_args(argv)

    divisor = 8 if args.unit == "bytes" else 1
    label = "MB/s" if args.unit == "bytes" else "Mbps"

    def show(speed: float):
        print(f"📊 {speed / divisor:8.1f} {label}")

    print(f"🧪 Running speed test against {args.url}")
    try:
        result = asyncio.run(run_speed_test(args.url, args.duration, args.stop_after, on_speed=show))
    except (aiohttp.ClientError, OSError, TimeoutError) as e:
        print(f"❌ Speed test failed: {e}")
        return 1

    if not result.completed:
        print("❌ Connection ended without a final result")
        return 1

    print("=" * 40)
    print(f"✅ Average: {result.average / divisor:.1f} {label} "
          f"({len(result.speeds)} samples in {result.elapsed_seconds:.1f}s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
