"""
RelaySession ties one configuration to its forwarder and stats aggregator.
The HTTP layer reaches everything through a session, never through globals.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from .config import RelayConfig
from .forwarder import Forwarder
from .stats import StatsAggregator, stats_ticker

logger = logging.getLogger("tcup.session")


class RelaySession:
    def __init__(self, config: RelayConfig):
        self.config = config
        self.forwarder = Forwarder(
            config.out,
            mode=config.forward_mode,
            chunk_size=config.stream_chunk_size,
            dial_timeout=config.dial_timeout,
        )
        self.stats = StatsAggregator(track_latency=config.track_latency)
        self._ticker: Optional[asyncio.Task] = None

    def open(self):
        """Dial the destination. Raises StartupFailure."""
        self.forwarder.open()

    def start_ticker(self):
        """Start the periodic flush task on the running loop, if enabled"""
        if not self.config.stats_enabled or self._ticker is not None:
            return
        self._ticker = asyncio.create_task(stats_ticker(self.stats, self.config.stats_interval))
        logger.info("Stats flush every %ss", self.config.stats_interval)

    async def close(self):
        """Stop the ticker, flush what is left, and close the socket"""
        if self._ticker is not None:
            self._ticker.cancel()
            with suppress(asyncio.CancelledError):
                await self._ticker
            self._ticker = None
            self.stats.flush()
        self.forwarder.close()
