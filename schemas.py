"""
Core data schemas for the Crypto Quote Poller.

Defines typed records for the CoinMarketCap quotes envelope, the
per-asset quote snapshot consumed by the formatter, and the price
history samples persisted for charting.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from errors import DecodeError, PersistenceError

# =============================================================================
# CONSTANTS
# =============================================================================

# Separator between timestamp and price in a history line
HISTORY_SEPARATOR = "|"


# =============================================================================
# API ENVELOPE
# =============================================================================


@dataclass(frozen=True)
class ApiStatus:
    """The `status` block every quotes response carries."""

    timestamp: str
    error_code: int = 0
    error_message: Optional[str] = None
    elapsed: int = 0
    credit_count: int = 0
    notice: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    """One currency-denominated quote for an asset."""

    price: float = 0.0
    volume_24h: float = 0.0
    volume_change_24h: float = 0.0
    percent_change_1h: float = 0.0
    percent_change_24h: float = 0.0
    percent_change_7d: float = 0.0
    percent_change_30d: float = 0.0
    percent_change_60d: float = 0.0
    percent_change_90d: float = 0.0
    market_cap: float = 0.0
    market_cap_dominance: float = 0.0
    fully_diluted_market_cap: float = 0.0
    last_updated: str = ""


@dataclass(frozen=True)
class QuoteRecord:
    """
    Immutable snapshot of one asset from one API response.

    This is what the formatter and the history store consume; it is
    discarded at the end of the cycle.
    """

    asset_id: str
    name: str
    symbol: str
    current_price: float
    percent_change_1h: float
    percent_change_24h: float
    percent_change_7d: float
    last_updated: str


@dataclass(frozen=True)
class CryptoData:
    """Asset entry of the `data` mapping (superset of QuoteRecord)."""

    id: int
    name: str
    symbol: str
    slug: str = ""
    cmc_rank: int = 0
    last_updated: str = ""
    quote: dict[str, Quote] = field(default_factory=dict)

    def to_record(self, currency: str) -> QuoteRecord:
        """
        Project this entry onto a QuoteRecord for one currency.

        A currency missing from `quote` yields zero values, the same as
        decoding an absent JSON object.
        """
        quote = self.quote.get(currency.upper(), Quote())
        return QuoteRecord(
            asset_id=str(self.id),
            name=self.name,
            symbol=self.symbol,
            current_price=quote.price,
            percent_change_1h=quote.percent_change_1h,
            percent_change_24h=quote.percent_change_24h,
            percent_change_7d=quote.percent_change_7d,
            last_updated=quote.last_updated or self.last_updated,
        )


@dataclass(frozen=True)
class ApiResponse:
    """Decoded `quotes/latest` response."""

    status: ApiStatus
    data: dict[str, CryptoData] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status.error_code == 0

    def sorted_keys(self) -> list[str]:
        """Asset keys in ascending string order, independent of payload order."""
        return sorted(self.data)

    def records(self, currency: str) -> list[QuoteRecord]:
        """QuoteRecords for every asset, in key-sorted order."""
        return [self.data[key].to_record(currency) for key in self.sorted_keys()]


# =============================================================================
# HISTORY
# =============================================================================


@dataclass(frozen=True)
class HistorySample:
    """One persisted price sample: hour-granularity timestamp and price."""

    timestamp: str
    price: float

    def to_line(self) -> str:
        return f"{self.timestamp}{HISTORY_SEPARATOR}{self.price:.2f}\n"

    @classmethod
    def from_line(cls, line: str) -> "HistorySample":
        """
        Parse a `<timestamp>|<price>` line.

        Raises:
            PersistenceError: if the line has no separator or the price
                is not a float
        """
        timestamp, sep, raw_price = line.rstrip("\n").partition(HISTORY_SEPARATOR)
        if not sep:
            raise PersistenceError(f"Malformed history line: {line!r}")
        try:
            price = float(raw_price)
        except ValueError as e:
            raise PersistenceError(f"Malformed price in history line {line!r}: {e}") from e
        return cls(timestamp=timestamp, price=price)


@dataclass(frozen=True)
class ChartPoint:
    """A plotted point: X is the sample position, Y the price."""

    x: float
    y: float


# =============================================================================
# DECODING
# =============================================================================


def _number(value: Any) -> float:
    """JSON number or null -> float (null decodes to zero)."""
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Expected a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise DecodeError(f"Expected a finite number, got {value}")
    return float(value)


def _integer(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"Expected an integer, got {type(value).__name__}")
    if not math.isfinite(value):
        raise DecodeError(f"Expected a finite integer, got {value}")
    return int(value)


def _parse_status(payload: Any) -> ApiStatus:
    if not isinstance(payload, dict):
        raise DecodeError("Response is missing the 'status' object")
    return ApiStatus(
        timestamp=str(payload.get("timestamp") or ""),
        error_code=_integer(payload.get("error_code")),
        error_message=payload.get("error_message"),
        elapsed=_integer(payload.get("elapsed")),
        credit_count=_integer(payload.get("credit_count")),
        notice=payload.get("notice"),
    )


def _parse_quote(payload: Any) -> Quote:
    if not isinstance(payload, dict):
        raise DecodeError(f"Quote must be an object, got {type(payload).__name__}")
    return Quote(
        price=_number(payload.get("price")),
        volume_24h=_number(payload.get("volume_24h")),
        volume_change_24h=_number(payload.get("volume_change_24h")),
        percent_change_1h=_number(payload.get("percent_change_1h")),
        percent_change_24h=_number(payload.get("percent_change_24h")),
        percent_change_7d=_number(payload.get("percent_change_7d")),
        percent_change_30d=_number(payload.get("percent_change_30d")),
        percent_change_60d=_number(payload.get("percent_change_60d")),
        percent_change_90d=_number(payload.get("percent_change_90d")),
        market_cap=_number(payload.get("market_cap")),
        market_cap_dominance=_number(payload.get("market_cap_dominance")),
        fully_diluted_market_cap=_number(payload.get("fully_diluted_market_cap")),
        last_updated=str(payload.get("last_updated") or ""),
    )


def _parse_crypto_data(key: str, payload: Any) -> CryptoData:
    if not isinstance(payload, dict):
        raise DecodeError(f"Entry '{key}' must be an object, got {type(payload).__name__}")

    quotes = payload.get("quote") or {}
    if not isinstance(quotes, dict):
        raise DecodeError(f"Entry '{key}' has a non-object 'quote'")

    # Fall back to the mapping key, which is the asset id
    asset_id = payload.get("id")
    if asset_id is None and key.isdigit():
        asset_id = int(key)

    return CryptoData(
        id=_integer(asset_id),
        name=str(payload.get("name") or ""),
        symbol=str(payload.get("symbol") or ""),
        slug=str(payload.get("slug") or ""),
        cmc_rank=_integer(payload.get("cmc_rank")),
        last_updated=str(payload.get("last_updated") or ""),
        quote={currency: _parse_quote(q) for currency, q in quotes.items()},
    )


def parse_api_response(payload: Any) -> ApiResponse:
    """
    Decode a `quotes/latest` JSON body into an ApiResponse.

    The error code is not acted upon here; a non-zero code usually comes
    with `data` absent or null, which decodes to an empty mapping.

    Args:
        payload: The parsed JSON body

    Returns:
        ApiResponse with typed status and data

    Raises:
        DecodeError: if the envelope does not have the expected shape
    """
    if not isinstance(payload, dict):
        raise DecodeError(f"Response body must be an object, got {type(payload).__name__}")

    status = _parse_status(payload.get("status"))

    raw_data = payload.get("data")
    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise DecodeError(f"'data' must be an object, got {type(raw_data).__name__}")

    data = {str(key): _parse_crypto_data(str(key), value) for key, value in raw_data.items()}
    return ApiResponse(status=status, data=data)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def create_quote_payload(
    asset_id: str,
    name: str,
    symbol: str,
    price: float,
    percent_change_1h: float = 0.0,
    percent_change_24h: float = 0.0,
    percent_change_7d: float = 0.0,
    currency: str = "USD",
    last_updated: str = "2024-01-15T10:30:00.000Z",
) -> dict[str, Any]:
    """
    Create one `data` entry shaped like the pricing API's.

    Useful for creating test data or replaying captured responses.

    Returns:
        Dictionary in the API's CryptoData shape
    """
    return {
        "id": int(asset_id),
        "name": name,
        "symbol": symbol,
        "slug": name.lower().replace(" ", "-"),
        "last_updated": last_updated,
        "quote": {
            currency: {
                "price": price,
                "percent_change_1h": percent_change_1h,
                "percent_change_24h": percent_change_24h,
                "percent_change_7d": percent_change_7d,
                "last_updated": last_updated,
            }
        },
    }


def create_response_payload(
    entries: list[dict[str, Any]],
    error_code: int = 0,
    error_message: Optional[str] = None,
    timestamp: str = "2024-01-15T10:30:00.000Z",
) -> dict[str, Any]:
    """
    Wrap data entries in a full response envelope.

    An empty entry list with a non-zero error code mirrors how the API
    reports failures (`data` is omitted).
    """
    payload: dict[str, Any] = {
        "status": {
            "timestamp": timestamp,
            "error_code": error_code,
            "error_message": error_message,
            "elapsed": 10,
            "credit_count": 1,
            "notice": None,
        }
    }
    if entries or error_code == 0:
        payload["data"] = {str(entry["id"]): entry for entry in entries}
    return payload
