"""
Connectors module for the Crypto Quote Poller.

Provides clients for external data sources:
- Quote fetcher (CoinMarketCap quotes/latest API)
"""

from connectors.quote_fetcher import QuoteFetcher

__all__ = ["QuoteFetcher"]
