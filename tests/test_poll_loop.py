"""
Tests for the poll loop: cycle behaviour, stop semantics and error policy.

Fetcher and publisher are mocks; history and chart rendering use real
files under tmp_path.
"""

import asyncio
import logging
import time
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from config import PollVariant
from errors import ConfigurationError, PersistenceError, PublishError, TransportError
from poller.loop import LoopState, PollLoop
from schemas import create_response_payload, parse_api_response


def stop_after(poll_loop, calls=1):
    """Side effect that stops the loop once `calls` sends have happened."""
    state = {"count": 0}

    async def side_effect(*args, **kwargs):
        state["count"] += 1
        if state["count"] >= calls:
            poll_loop.stop()
        return True

    return side_effect


# =============================================================================
# TEST 1: Text Variant Cycle
# =============================================================================


class TestTextCycle:
    """Test one text-variant cycle."""

    def test_publishes_one_message_in_key_order(self, settings, fetcher, publisher, chat):
        poll_loop = PollLoop(settings, fetcher, publisher)

        async def scenario():
            await poll_loop.start()
            return await poll_loop.run_cycle()

        assert asyncio.run(scenario()) == 1

        fetcher.fetch.assert_called_once_with(settings.asset_ids, "USD")
        destination, text = publisher.send_text.await_args.args
        assert destination is chat
        assert text.index("Ethereum:") < text.index("Pip:") < text.index("Solana:")
        assert text.count("🟩") + text.count("🟥") == 9

    def test_error_status_with_empty_data_publishes_nothing(
        self, settings, fetcher, publisher, caplog
    ):
        """A non-zero error code is logged; the empty cycle does not raise."""
        fetcher.fetch.return_value = parse_api_response(
            create_response_payload([], error_code=1002, error_message="API key missing.")
        )
        poll_loop = PollLoop(settings, fetcher, publisher)

        async def scenario():
            await poll_loop.start()
            return await poll_loop.run_cycle()

        with caplog.at_level(logging.WARNING):
            assert asyncio.run(scenario()) == 0

        publisher.send_text.assert_not_awaited()
        assert "1002" in caplog.text
        assert poll_loop.cycles == 1

    def test_failed_send_counts_as_undelivered(self, settings, fetcher, publisher):
        publisher.send_text.return_value = False
        poll_loop = PollLoop(settings, fetcher, publisher)

        async def scenario():
            await poll_loop.start()
            return await poll_loop.run_cycle()

        assert asyncio.run(scenario()) == 0


# =============================================================================
# TEST 2: Chart Variant Cycle
# =============================================================================


class TestChartCycle:
    """Test one chart-variant cycle with real history files and charts."""

    def test_records_history_renders_and_sends_photos(
        self, chart_settings, fetcher, publisher, tmp_path
    ):
        poll_loop = PollLoop(
            chart_settings, fetcher, publisher, clock=lambda: datetime(2024, 1, 15, 10, 30)
        )

        async def scenario():
            await poll_loop.start()
            return await poll_loop.run_cycle()

        assert asyncio.run(scenario()) == 3

        sent = [call.args for call in publisher.send_photo.await_args_list]
        assert [path for _, path, _ in sent] == [
            str(tmp_path / "1027.png"),
            str(tmp_path / "34625.png"),
            str(tmp_path / "5426.png"),
        ]
        assert sent[0][2].startswith("Ethereum: 2534.57\n")

        assert (tmp_path / ".data.1027").read_text() == "2024-01-15 10:00:00|2534.57\n"
        assert (tmp_path / "5426.png").read_bytes().startswith(b"\x89PNG")

    def test_history_grows_across_cycles(self, chart_settings, fetcher, publisher, tmp_path):
        poll_loop = PollLoop(chart_settings, fetcher, publisher)

        async def scenario():
            await poll_loop.start()
            for _ in range(3):
                await poll_loop.run_cycle()

        asyncio.run(scenario())

        assert len((tmp_path / ".data.5426").read_text().splitlines()) == 3


# =============================================================================
# TEST 3: Lifecycle
# =============================================================================


class TestLifecycle:
    """Test states and cooperative stopping."""

    def test_states(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)
        publisher.send_text.side_effect = stop_after(poll_loop)
        assert poll_loop.state is LoopState.CREATED

        async def scenario():
            await poll_loop.start()
            assert poll_loop.state is LoopState.RUNNING
            return await poll_loop.run()

        assert asyncio.run(scenario()) == 1
        assert poll_loop.state is LoopState.STOPPED

    def test_no_cycles_after_stop(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)
        publisher.send_text.side_effect = stop_after(poll_loop, calls=2)

        cycles = asyncio.run(poll_loop.run())

        assert cycles == 2
        assert fetcher.fetch.call_count == 2
        assert publisher.send_text.await_count == 2

    def test_stop_before_run_skips_all_cycles(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)
        poll_loop.stop()

        assert asyncio.run(poll_loop.run()) == 0
        fetcher.fetch.assert_not_called()
        assert poll_loop.state is LoopState.STOPPED

    def test_stop_interrupts_the_wait(self, settings, fetcher, publisher):
        """run() returns promptly when stopped during a long interval."""
        poll_loop = PollLoop(settings.with_overrides(interval_seconds=3600), fetcher, publisher)

        async def scenario():
            asyncio.get_running_loop().call_later(0.05, poll_loop.stop)
            return await asyncio.wait_for(poll_loop.run(), timeout=5)

        started = time.monotonic()
        assert asyncio.run(scenario()) == 1
        assert time.monotonic() - started < 5

    def test_stop_is_idempotent(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)
        poll_loop.stop()
        poll_loop.stop()
        assert poll_loop.stop_requested

    def test_unresolvable_destination_is_fatal(self, settings, fetcher, publisher):
        publisher.resolve_destination.side_effect = ConfigurationError("Chat not found")
        poll_loop = PollLoop(settings, fetcher, publisher)

        with pytest.raises(ConfigurationError):
            asyncio.run(poll_loop.run())
        fetcher.fetch.assert_not_called()

    def test_run_once(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)

        assert asyncio.run(poll_loop.run_once()) == 1
        assert poll_loop.cycles == 1
        assert poll_loop.state is LoopState.STOPPED


# =============================================================================
# TEST 4: Error Policy
# =============================================================================


class TestErrorPolicy:
    """Test fail-fast and hardened modes."""

    def test_fail_fast_aborts_on_transport_error(self, settings, fetcher, publisher):
        fetcher.fetch.side_effect = TransportError("connection refused")
        poll_loop = PollLoop(settings, fetcher, publisher)

        with pytest.raises(TransportError):
            asyncio.run(poll_loop.run())
        assert poll_loop.state is LoopState.STOPPED

    def test_hardened_mode_skips_transient_errors(
        self, settings, fetcher, publisher, api_response
    ):
        fetcher.fetch.side_effect = [TransportError("connection refused"), api_response]
        poll_loop = PollLoop(settings.with_overrides(fail_fast=False), fetcher, publisher)
        publisher.send_text.side_effect = stop_after(poll_loop)

        assert asyncio.run(poll_loop.run()) == 1
        assert fetcher.fetch.call_count == 2

    def test_hardened_mode_skips_strict_publish_errors(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings.with_overrides(fail_fast=False), fetcher, publisher)
        calls = {"count": 0}

        async def flaky_send(*args):
            calls["count"] += 1
            if calls["count"] == 1:
                raise PublishError("Failed to send message")
            poll_loop.stop()
            return True

        publisher.send_text.side_effect = flaky_send

        assert asyncio.run(poll_loop.run()) == 1
        assert fetcher.fetch.call_count == 2

    def test_hardened_mode_still_aborts_on_permanent_errors(
        self, chart_settings, fetcher, publisher
    ):
        history = MagicMock()
        history.append_sample.side_effect = PersistenceError("disk full")
        poll_loop = PollLoop(
            chart_settings.with_overrides(fail_fast=False), fetcher, publisher, history=history
        )

        with pytest.raises(PersistenceError):
            asyncio.run(poll_loop.run())
        publisher.send_photo.assert_not_awaited()


class TestVariantWiring:
    """Test collaborators created per variant."""

    def test_text_variant_has_no_history(self, settings, fetcher, publisher):
        poll_loop = PollLoop(settings, fetcher, publisher)
        assert poll_loop.history is None
        assert poll_loop.renderer is None

    def test_chart_variant_builds_history_and_renderer(
        self, chart_settings, fetcher, publisher, tmp_path
    ):
        poll_loop = PollLoop(chart_settings, fetcher, publisher)

        assert chart_settings.variant is PollVariant.CHART
        assert poll_loop.history.path_for("1") == str(tmp_path / ".data.1")
        assert poll_loop.renderer.path_for("1") == str(tmp_path / "1.png")
