"""
Quote Fetcher for the Crypto Quote Poller.

Fetches the latest quotes for a fixed set of assets from the
CoinMarketCap Pro API and decodes the response envelope into typed
records.
"""

import logging
from typing import Iterable, Optional

import requests

from errors import DecodeError, TransportError
from schemas import ApiResponse, parse_api_response

# =============================================================================
# LOGGING
# =============================================================================

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CMC_API_BASE = "https://pro-api.coinmarketcap.com"
QUOTES_LATEST_PATH = "/v1/cryptocurrency/quotes/latest"
API_KEY_HEADER = "X-CMC_PRO_API_KEY"

DEFAULT_TIMEOUT = 10  # seconds


# =============================================================================
# QUOTE FETCHER
# =============================================================================


class QuoteFetcher:
    """
    Fetches cryptocurrency quotes from the CoinMarketCap API.

    One call per poll cycle; there is no caching and no retry. Failures
    are raised as TransportError or DecodeError and the caller decides
    whether they are fatal.

    Example:
        >>> fetcher = QuoteFetcher(api_key="...")
        >>> response = fetcher.fetch({"1027", "5426"}, "USD")
        >>> [r.name for r in response.records("USD")]
        ['Ethereum', 'Solana']
    """

    def __init__(
        self,
        api_key: str,
        api_base_url: str = CMC_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the quote fetcher.

        Args:
            api_key: CoinMarketCap Pro API key
            api_base_url: API base URL (override for sandbox/testing)
            timeout: Request timeout in seconds
            session: Optional requests session to reuse
        """
        self.api_key = api_key
        self.api_base = api_base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        logger.info(f"QuoteFetcher initialized: base={self.api_base}, timeout={timeout}s")

    @property
    def url(self) -> str:
        return f"{self.api_base}{QUOTES_LATEST_PATH}"

    def build_params(self, asset_ids: Iterable[str], currency: str) -> dict[str, str]:
        """Query parameters for a quotes request; ids are sorted for a stable URL."""
        return {
            "id": ",".join(sorted(set(asset_ids))),
            "convert": currency.upper(),
        }

    def build_headers(self) -> dict[str, str]:
        return {
            "Accepts": "application/json",
            API_KEY_HEADER: self.api_key,
        }

    def fetch(self, asset_ids: Iterable[str], currency: str) -> ApiResponse:
        """
        Fetch the latest quotes for the given assets.

        The API's `status.error_code` is not checked here.

        Args:
            asset_ids: CoinMarketCap asset ids
            currency: Conversion currency (e.g., "USD")

        Returns:
            Decoded ApiResponse

        Raises:
            TransportError: on network failure or an HTTP error without
                a quotes envelope
            DecodeError: if the body is not valid JSON or not an envelope
        """
        params = self.build_params(asset_ids, currency)
        logger.warning(f"GET {self.url} id={params['id']} convert={params['convert']}")

        try:
            response = self.session.get(
                self.url,
                params=params,
                headers=self.build_headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Error sending request to pricing API: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            if not response.ok:
                raise TransportError(
                    f"Pricing API returned HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from e
            raise DecodeError(f"Could not decode response body: {e}") from e

        try:
            result = parse_api_response(payload)
        except DecodeError:
            if not response.ok:
                raise TransportError(
                    f"Pricing API returned HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from None
            raise

        logger.debug(
            f"Fetched {len(result.data)} quotes "
            f"(error_code={result.status.error_code}, credits={result.status.credit_count})"
        )
        return result

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
