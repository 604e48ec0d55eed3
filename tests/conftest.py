"""Shared fixtures for the Crypto Quote Poller tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from config import PollVariant, Settings
from schemas import create_quote_payload, create_response_payload, parse_api_response


@pytest.fixture
def quote_entries():
    """Three tracked coins, listed out of key order on purpose."""
    return [
        create_quote_payload("5426", "Solana", "SOL", 98.7654, 0.5, -2.25, 10.0),
        create_quote_payload("34625", "Pip", "PIP", 0.01234, -0.1, 0.0, 3.333),
        create_quote_payload("1027", "Ethereum", "ETH", 2534.567, 0.1234, -1.5, 0.0),
    ]


@pytest.fixture
def quotes_payload(quote_entries):
    return create_response_payload(quote_entries)


@pytest.fixture
def api_response(quotes_payload):
    return parse_api_response(quotes_payload)


@pytest.fixture
def settings():
    return Settings(
        bot_token="123:ABC",
        channel_id=-1001234567890,
        api_key="cmc-key",
        interval_seconds=0.01,
    )


@pytest.fixture
def chart_settings(settings, tmp_path):
    return settings.with_overrides(variant=PollVariant.CHART, data_dir=str(tmp_path))


@pytest.fixture
def chat():
    destination = MagicMock()
    destination.id = -1001234567890
    destination.title = "Crypto Prices"
    return destination


@pytest.fixture
def publisher(chat):
    """Publisher double whose sends all succeed."""
    mock = MagicMock()
    mock.resolve_destination = AsyncMock(return_value=chat)
    mock.send_text = AsyncMock(return_value=True)
    mock.send_photo = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def fetcher(api_response):
    mock = MagicMock()
    mock.fetch.return_value = api_response
    return mock
