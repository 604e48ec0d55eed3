"""
Price history storage for chart rendering.

Keeps the last N price samples per asset. The retention policy lives in
PriceHistory (a bounded ring buffer); HistoryStore only maps it onto one
append-only text file per asset:

    .data.<assetId>      one "<YYYY-MM-DD HH:00:00>|<price>" line per sample

Appending never reads the file. Reading trims the file back to the
retained samples, so the file prunes itself once per cycle.

Only the poll loop's single task touches these files, so there is no
locking.
"""

import logging
import os
from collections import deque
from datetime import datetime
from typing import Iterable, Iterator

from errors import PersistenceError
from schemas import ChartPoint, HistorySample

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

MAX_SAMPLES = 100
TIMESTAMP_FORMAT = "%Y-%m-%d %H:00:00"
FILE_PREFIX = ".data."


def format_timestamp(moment: datetime) -> str:
    """Hour-granularity timestamp used in history lines."""
    return moment.strftime(TIMESTAMP_FORMAT)


# =============================================================================
# RING BUFFER
# =============================================================================


class PriceHistory:
    """
    Bounded, ordered series of price samples.

    Appending beyond capacity drops the oldest sample first.
    """

    def __init__(self, max_samples: int = MAX_SAMPLES):
        if max_samples <= 0:
            raise ValueError("max_samples must be positive")
        self.max_samples = max_samples
        self._samples: deque[HistorySample] = deque(maxlen=max_samples)

    def append(self, sample: HistorySample) -> None:
        self._samples.append(sample)

    def extend(self, samples: Iterable[HistorySample]) -> None:
        self._samples.extend(samples)

    def samples(self) -> list[HistorySample]:
        return list(self._samples)

    def points(self) -> list[ChartPoint]:
        """Samples as chart points: X is the 0-based position, Y the price."""
        return [
            ChartPoint(x=float(i), y=sample.price)
            for i, sample in enumerate(self._samples)
        ]

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[HistorySample]:
        return iter(self._samples)


# =============================================================================
# FILE STORE
# =============================================================================


class HistoryStore:
    """
    File-backed per-asset price history.

    Example:
        >>> store = HistoryStore("/tmp/prices")
        >>> store.append_sample("1027", datetime(2024, 1, 15, 10, 30), 2534.123)
        >>> store.read_series("1027")
        [ChartPoint(x=0.0, y=2534.12)]
    """

    def __init__(self, data_dir: str = ".", max_samples: int = MAX_SAMPLES):
        self.data_dir = data_dir
        self.max_samples = max_samples

    def path_for(self, asset_id: str) -> str:
        return os.path.join(self.data_dir, f"{FILE_PREFIX}{asset_id}")

    def append_sample(self, asset_id: str, timestamp: datetime, price: float) -> HistorySample:
        """
        Append one sample to the asset's history file, creating it if needed.

        Raises:
            PersistenceError: if the file cannot be opened or written
        """
        sample = HistorySample(timestamp=format_timestamp(timestamp), price=price)
        path = self.path_for(asset_id)
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(sample.to_line())
        except OSError as e:
            raise PersistenceError(f"Could not append to {path}: {e}") from e

        logger.debug(f"Appended {sample} to {path}")
        return sample

    def load(self, asset_id: str) -> PriceHistory:
        """
        Read the retained samples (at most max_samples, newest last).

        A missing file is an empty history.

        Raises:
            PersistenceError: if the file cannot be read or a line is malformed
        """
        history = PriceHistory(self.max_samples)
        path = self.path_for(asset_id)
        try:
            with open(path, encoding="utf-8") as f:
                history.extend(
                    HistorySample.from_line(line) for line in f if line.strip()
                )
        except FileNotFoundError:
            return history
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(f"Could not read {path}: {e}") from e
        return history

    def save(self, asset_id: str, history: PriceHistory) -> None:
        """Rewrite the asset's file with exactly the samples in `history`."""
        path = self.path_for(asset_id)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.writelines(sample.to_line() for sample in history)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Could not rewrite {path}: {e}") from e

    def read_series(self, asset_id: str) -> list[ChartPoint]:
        """
        Load the asset's series, trim the file to it, and return chart points.

        Returns:
            Points with X = 0..n-1 (after trimming) and Y = price
        """
        history = self.load(asset_id)
        self.save(asset_id, history)
        logger.debug(f"Read {len(history)} samples for {asset_id}")
        return history.points()
