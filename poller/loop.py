"""
Poll loop for the Crypto Quote Poller.

A single background task that repeatedly fetches quotes, formats them,
optionally records history and renders charts, and publishes the result
to the configured Telegram channel.

States:
    CREATED -> RUNNING -> STOPPING -> STOPPED

The stop signal is only checked between cycles, never mid-fetch or
mid-publish. Waiting between cycles ends early when the signal arrives,
so run() returns within one interval of stop() being called.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from telegram import Chat

from bot.telegram_bot import TelegramPublisher
from charts.renderer import ChartRenderer
from config import PollVariant, Settings
from connectors.quote_fetcher import QuoteFetcher
from errors import TransientError
from schemas import QuoteRecord
from storage.history import HistoryStore
from transforms.formatter import format_cycle, format_record

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Lifecycle states of the poll loop."""

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


# =============================================================================
# POLL LOOP CLASS
# =============================================================================


class PollLoop:
    """
    Fetch -> format -> (history/chart) -> publish, on a fixed interval.

    Cycles are strictly sequential. Blocking work (HTTP, file I/O,
    rendering) runs in a worker thread so the Telegram receive loop
    sharing the event loop keeps running, but the next step never starts
    before the previous one finishes.

    Error policy:
        fail_fast=True: any QuotePollerError escapes run()
        fail_fast=False: TransientErrors skip the cycle, PermanentErrors escape
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: QuoteFetcher,
        publisher: TelegramPublisher,
        history: Optional[HistoryStore] = None,
        renderer: Optional[ChartRenderer] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self.publisher = publisher
        self.clock = clock

        if settings.variant is PollVariant.CHART:
            history = history or HistoryStore(settings.data_dir)
            renderer = renderer or ChartRenderer(settings.data_dir)
        self.history = history
        self.renderer = renderer

        self.state = LoopState.CREATED
        self.destination: Optional[Chat] = None
        self.cycles = 0
        self._stop_signal = asyncio.Event()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def stop_requested(self) -> bool:
        return self._stop_signal.is_set()

    def stop(self) -> None:
        """Request a graceful stop; safe to call more than once."""
        if not self._stop_signal.is_set():
            logger.warning("Stop requested")
            self._stop_signal.set()

    async def start(self) -> Chat:
        """
        Resolve the destination and enter RUNNING.

        Raises:
            ConfigurationError: if the channel cannot be resolved
        """
        self.destination = await self.publisher.resolve_destination(self.settings.channel_id)
        self.state = LoopState.RUNNING
        logger.info(
            f"Poll loop running: variant={self.settings.variant.value}, "
            f"interval={self.settings.poll_interval}s, assets={','.join(self.settings.asset_ids)}"
        )
        return self.destination

    async def run(self) -> int:
        """
        Run cycles until stopped.

        Returns:
            Number of cycles completed
        """
        if self.destination is None:
            await self.start()

        try:
            while not self.stop_requested:
                await self._guarded_cycle()
                if await self._wait(self.settings.poll_interval):
                    break
            self.state = LoopState.STOPPING
        finally:
            self.state = LoopState.STOPPED
            logger.warning(f"Poll loop stopped after {self.cycles} cycles")

        return self.cycles

    async def run_once(self) -> int:
        """Resolve the destination, run exactly one cycle, and stop."""
        try:
            if self.destination is None:
                await self.start()
            return await self.run_cycle()
        finally:
            self.state = LoopState.STOPPED

    async def _wait(self, seconds: float) -> bool:
        """Sleep between cycles; True if the stop signal arrived meanwhile."""
        try:
            await asyncio.wait_for(self._stop_signal.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _guarded_cycle(self) -> None:
        try:
            await self.run_cycle()
        except TransientError as e:
            if self.settings.fail_fast:
                raise
            logger.warning(f"Cycle skipped after {type(e).__name__}: {e}")

    # =========================================================================
    # CYCLE
    # =========================================================================

    async def run_cycle(self) -> int:
        """
        Perform one fetch -> format -> publish pass.

        Returns:
            Number of messages delivered
        """
        response = await asyncio.to_thread(
            self.fetcher.fetch, self.settings.asset_ids, self.settings.currency
        )
        if not response.is_ok:
            logger.warning(
                f"Pricing API error {response.status.error_code}: "
                f"{response.status.error_message or 'no message'}"
            )

        records = response.records(self.settings.currency)
        if self.settings.variant is PollVariant.CHART:
            delivered = await self._publish_charts(records)
        else:
            delivered = await self._publish_text(records)

        self.cycles += 1
        return delivered

    async def _publish_text(self, records: list[QuoteRecord]) -> int:
        text = format_cycle(records)
        if not text:
            logger.warning("No quotes to publish this cycle")
            return 0
        return int(await self.publisher.send_text(self.destination, text))

    async def _publish_charts(self, records: list[QuoteRecord]) -> int:
        now = self.clock()
        delivered = 0
        for record in records:
            caption = format_record(record)
            chart_path = await asyncio.to_thread(self._record_and_render, record, now)
            if await self.publisher.send_photo(self.destination, chart_path, caption):
                delivered += 1
        if not records:
            logger.warning("No quotes to publish this cycle")
        return delivered

    def _record_and_render(self, record: QuoteRecord, now: datetime) -> str:
        """Append the latest sample, reload the trimmed series, and plot it."""
        self.history.append_sample(record.asset_id, now, record.current_price)
        points = self.history.read_series(record.asset_id)
        return self.renderer.render(record.asset_id, record.name, points)
