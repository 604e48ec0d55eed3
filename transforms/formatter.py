"""
Quote formatting for the Crypto Quote Poller.

Turns quote records into the plain-text summary published to the
channel: the rounded price followed by 1h/24h/7d percent changes, each
marked with a green (up) or red (flat or down) square.
"""

import math
from typing import Iterable

from schemas import QuoteRecord

# =============================================================================
# MARKERS
# =============================================================================

POSITIVE_MARKER = "🟩"
NEGATIVE_MARKER = "🟥"

PRICE_PRECISION = 2


# =============================================================================
# ROUNDING
# =============================================================================


def round_to_precision(num: float, precision: int) -> float:
    """
    Round to `precision` decimal places, ties away from zero.

    Python's round() uses banker's rounding, so the scaled value is
    rounded by hand instead.

    Example:
        >>> round_to_precision(1234.567, 2)
        1234.57
        >>> round_to_precision(0.125, 2)
        0.13
    """
    factor = 10.0**precision
    scaled = abs(num * factor)
    # compare the fraction instead of adding 0.5, which can itself round up
    rounded = math.floor(scaled)
    if scaled - rounded >= 0.5:
        rounded += 1
    return math.copysign(rounded, num) / factor


def change_marker(change: float) -> str:
    """Green square if the change is strictly positive, otherwise red."""
    return POSITIVE_MARKER if change > 0 else NEGATIVE_MARKER


# =============================================================================
# FORMATTING
# =============================================================================


def build_price_string(
    name: str,
    price: float,
    change_1h: float,
    change_24h: float,
    change_7d: float,
) -> str:
    """
    Build the display block for one asset.

    Layout (kept byte-for-byte stable):
        <name>: <price>
        <marker> 1h:
        <pct>%
        <marker> 24h:
        <pct>%
        <marker> 7d:
        <pct>%
        <blank line>

    Args:
        name: Asset display name
        price: Current price
        change_1h: 1 hour percent change
        change_24h: 24 hour percent change
        change_7d: 7 day percent change

    Returns:
        Formatted multi-line string ending in a blank line
    """
    parts = [f"{name}: {round_to_precision(price, PRICE_PRECISION):.2f}\n"]
    for label, change in (("1h", change_1h), ("24h", change_24h), ("7d", change_7d)):
        parts.append(
            f"{change_marker(change)} {label}:\n"
            f"{round_to_precision(change, PRICE_PRECISION):.2f}%\n"
        )
    parts.append("\n")
    return "".join(parts)


def format_record(record: QuoteRecord) -> str:
    """Format one QuoteRecord."""
    return build_price_string(
        record.name,
        record.current_price,
        record.percent_change_1h,
        record.percent_change_24h,
        record.percent_change_7d,
    )


def format_cycle(records: Iterable[QuoteRecord]) -> str:
    """
    Format a whole cycle's records into one message.

    Records are expected in key-sorted order (see ApiResponse.records).
    No records yields an empty string.
    """
    return "".join(format_record(record) for record in records)
