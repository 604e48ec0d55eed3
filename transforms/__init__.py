"""
Transforms module for the Crypto Quote Poller.

Contains the pure formatting step of a poll cycle:
- round_to_precision: half-away-from-zero rounding
- build_price_string: per-asset summary block with change markers
- format_cycle: all assets of one response, in key order
"""

from transforms.formatter import (
    NEGATIVE_MARKER,
    POSITIVE_MARKER,
    build_price_string,
    change_marker,
    format_cycle,
    format_record,
    round_to_precision,
)

__all__ = [
    "NEGATIVE_MARKER",
    "POSITIVE_MARKER",
    "build_price_string",
    "change_marker",
    "format_cycle",
    "format_record",
    "round_to_precision",
]
