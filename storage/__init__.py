"""Per-asset price history persistence."""

from storage.history import MAX_SAMPLES, HistoryStore, PriceHistory

__all__ = ["MAX_SAMPLES", "HistoryStore", "PriceHistory"]
