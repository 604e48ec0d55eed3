"""
Startup configuration for the Crypto Quote Poller.

Configuration is read once from the process environment (populated from
a local `.env` file) into an immutable Settings object that is passed
explicitly to the poll loop.

Environment variables:
    BOT_TOKEN          Telegram bot token (required)
    CHANNEL_ID         Numeric Telegram channel id (required)
    CMC_TOKEN          CoinMarketCap Pro API key (required)
    CONVERT_CURRENCY   Quote currency (default: USD)
    ASSET_IDS          Comma-separated CoinMarketCap ids (default: ETH, SOL, PIP)
    POLL_VARIANT       "text" or "chart" (default: text)
    POLL_INTERVAL      Seconds between cycles (default: 300 text, 900 chart)
    DATA_DIR           Directory for history files and charts (default: .)
    REQUEST_TIMEOUT    HTTP timeout in seconds (default: 10)
    FAIL_FAST          Abort on any error, "true"/"false" (default: true)
    STRICT_DELIVERY    Treat failed sends as errors (default: false)
    LOG_LEVEL          Logging level name (default: WARNING)
    CMC_API_BASE       Pricing API base URL
"""

import logging
import math
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULTS
# =============================================================================

# CoinMarketCap ids of the tracked coins
ETH_ID = "1027"
SOL_ID = "5426"
PIP_ID = "34625"
DEFAULT_ASSET_IDS = (ETH_ID, SOL_ID, PIP_ID)

DEFAULT_CURRENCY = "USD"
DEFAULT_API_BASE = "https://pro-api.coinmarketcap.com"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_ENV_FILE = ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class PollVariant(Enum):
    """What the poll loop publishes each cycle."""

    TEXT = "text"  # one text summary for all assets
    CHART = "chart"  # one chart image per asset, summary as caption

    @property
    def default_interval(self) -> int:
        """Default seconds between cycles."""
        return 5 * 60 if self is PollVariant.TEXT else 15 * 60


# =============================================================================
# SETTINGS
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """Read-only startup configuration."""

    bot_token: str
    channel_id: int
    api_key: str
    currency: str = DEFAULT_CURRENCY
    asset_ids: tuple[str, ...] = DEFAULT_ASSET_IDS
    variant: PollVariant = PollVariant.TEXT
    interval_seconds: Optional[float] = None
    data_dir: str = "."
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    fail_fast: bool = True
    strict_delivery: bool = False
    log_level: str = "WARNING"
    api_base_url: str = DEFAULT_API_BASE

    @property
    def poll_interval(self) -> float:
        """Effective seconds between cycles."""
        if self.interval_seconds is not None:
            return self.interval_seconds
        return float(self.variant.default_interval)

    def with_overrides(self, **changes) -> "Settings":
        """Copy with CLI overrides applied; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build Settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: if a required variable is missing or a
                value cannot be parsed
        """
        env = os.environ if environ is None else environ

        bot_token = _required(env, "BOT_TOKEN")
        api_key = _required(env, "CMC_TOKEN")
        raw_channel = _required(env, "CHANNEL_ID")
        try:
            channel_id = int(raw_channel)
        except ValueError:
            raise ConfigurationError(
                f"CHANNEL_ID must be an integer, got {raw_channel!r}"
            ) from None

        raw_ids = env.get("ASSET_IDS", "")
        asset_ids = tuple(i.strip() for i in raw_ids.split(",") if i.strip())
        if not asset_ids:
            asset_ids = DEFAULT_ASSET_IDS

        raw_variant = env.get("POLL_VARIANT", PollVariant.TEXT.value).strip().lower()
        try:
            variant = PollVariant(raw_variant)
        except ValueError:
            raise ConfigurationError(
                f"POLL_VARIANT must be 'text' or 'chart', got {raw_variant!r}"
            ) from None

        raw_interval = env.get("POLL_INTERVAL")
        interval = _positive_float("POLL_INTERVAL", raw_interval) if raw_interval else None

        return cls(
            bot_token=bot_token,
            channel_id=channel_id,
            api_key=api_key,
            currency=env.get("CONVERT_CURRENCY", DEFAULT_CURRENCY).strip().upper()
            or DEFAULT_CURRENCY,
            asset_ids=asset_ids,
            variant=variant,
            interval_seconds=interval,
            data_dir=env.get("DATA_DIR", ".") or ".",
            request_timeout=_positive_float(
                "REQUEST_TIMEOUT",
                env.get("REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)),
            ),
            fail_fast=_boolean("FAIL_FAST", env.get("FAIL_FAST", "true")),
            strict_delivery=_boolean(
                "STRICT_DELIVERY", env.get("STRICT_DELIVERY", "false")
            ),
            log_level=_log_level(env.get("LOG_LEVEL", "WARNING")),
            api_base_url=env.get("CMC_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        )


# =============================================================================
# LOADING
# =============================================================================


def load_env_file(path: str = DEFAULT_ENV_FILE) -> None:
    """
    Load variables from an env file into the process environment.

    Variables already set in the environment are not overridden.

    Raises:
        ConfigurationError: if the file does not exist
    """
    if not os.path.isfile(path):
        raise ConfigurationError(f"Error loading {path} file")
    load_dotenv(path)
    logger.debug(f"Loaded environment from {path}")


def load_settings(env_file: str = DEFAULT_ENV_FILE) -> Settings:
    """Load the env file, then build Settings from the environment."""
    load_env_file(env_file)
    return Settings.from_env()


# =============================================================================
# PARSING HELPERS
# =============================================================================


def _required(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} is required")
    return value


def _positive_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _boolean(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be true or false, got {raw!r}")


def _log_level(raw: str) -> str:
    level = raw.strip().upper() or "WARNING"
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got {raw!r}")
    return level
