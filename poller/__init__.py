"""
Poll loop module for the Crypto Quote Poller.

Runs fetch -> format -> publish cycles until a stop is requested.
"""

from poller.loop import LoopState, PollLoop

__all__ = ["LoopState", "PollLoop"]
