"""Price chart rendering."""

from charts.renderer import ChartRenderer

__all__ = ["ChartRenderer"]
