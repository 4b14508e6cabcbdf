"""
Speed Test Driver
================

Runs one test: sample, record, report, pace, until the duration elapses or
the run is cancelled, then report the average.

Exactly one `final` message is sent per run. Both the driver (on timeout)
and the stop handler finish a run through `finish()`, which calls
`Session.stop()` under the channel's send lock; only the caller that
actually moved the session from running to stopped sends `final`.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol

from lanspeed.channel import DeliveryChannel
from lanspeed.errors import GenerationError, RunCancelled, TransportError
from lanspeed.messages import SpeedTestMessage
from lanspeed.session import RunToken, SpeedTestSession

logger = logging.getLogger(__name__)


class Sampler(Protocol):
    async def sample(self) -> float:
        ...


async def run_until_cancelled(token: RunToken, awaitable) -> float:
    """
    Await `awaitable`, abandoning it as soon as `token` is cancelled.

    Raises:
        RunCancelled: the token was cancelled before the awaitable finished
    """
    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait_cancelled())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.wait({task})
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Abandoned sample failed after cancellation: {task.exception()}")
    raise RunCancelled(f"Run #{token.run_id} stopped during sample")


class SpeedTestDriver:
    """Sampling loop for one connection's session"""

    def __init__(self, session: SpeedTestSession, channel: DeliveryChannel, sampler: Sampler,
                 sample_interval: float = 1.0, logger_prefix: str = ""):
        self.session = session
        self.channel = channel
        self.sampler = sampler
        self.sample_interval = sample_interval
        self.logger_prefix = logger_prefix

    async def run(self, token: RunToken, duration: float):
        """Drive one run; returns when the run completes, is stopped or fails"""
        loop = asyncio.get_running_loop()
        end_time = loop.time() + duration
        sample_count = 0
        logger.info(f"{self.logger_prefix}▶️ RUN #{token.run_id}: Starting {duration}s speed test")

        try:
            while loop.time() < end_time and self.session.is_current(token):
                speed = await run_until_cancelled(token, self.sampler.sample())

                recorded = await self.channel.send_if(
                    lambda: SpeedTestMessage.speed_update(speed)
                    if self.session.add_speed(speed, token) else None
                )
                if not recorded:
                    break
                sample_count += 1
                logger.debug(f"{self.logger_prefix}📊 RUN #{token.run_id}: Sample {sample_count}: {speed:.2f} Mbps")

                if await token.wait(self.sample_interval):
                    break

        except RunCancelled:
            logger.info(f"{self.logger_prefix}🛑 RUN #{token.run_id}: Sample interrupted by stop")
            return
        except TransportError as e:
            logger.warning(f"{self.logger_prefix}📡 RUN #{token.run_id}: Transport error, aborting run: {e}")
            return
        except GenerationError as e:
            logger.error(f"{self.logger_prefix}❌ RUN #{token.run_id}: Payload generation failed, aborting run: {e}")
            return

        try:
            await self.finish(token)
        except TransportError as e:
            logger.warning(f"{self.logger_prefix}📡 RUN #{token.run_id}: Could not send final result: {e}")

    async def finish(self, token: Optional[RunToken] = None) -> bool:
        """
        Stop the run and report its average if this caller ended it.

        Args:
            token: the driver's own token; None finishes whatever run is current

        Returns:
            True if the final message was sent by this call
        """
        summary = {}

        def build_final() -> Optional[SpeedTestMessage]:
            # Captured under the send lock, before a following start() can reset the session
            started_at = self.session.started_at
            if not self.session.stop(token):
                return None
            summary['elapsed'] = time.time() - started_at if started_at else 0.0
            summary['samples'] = len(self.session.samples)
            summary['average'] = self.session.average()
            return SpeedTestMessage.final_result(summary['average'])

        sent = await self.channel.send_if(build_final)
        if sent:
            logger.info(f"{self.logger_prefix}🏁 RUN: Completed after {summary['elapsed']:.1f}s, "
                        f"{summary['samples']} samples, average {summary['average']:.2f} Mbps")
        return sent
