"""
Chart rendering for the Crypto Quote Poller.

Plots an asset's retained price history as a line with point markers
and saves it as `<assetId>.png`, overwriting the previous cycle's image.
"""

import logging
import os
from typing import Sequence

import matplotlib

matplotlib.use("Agg")

from matplotlib import pyplot as plt  # noqa: E402

from errors import PersistenceError  # noqa: E402
from schemas import ChartPoint  # noqa: E402

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_SIZE_INCHES = 6
DEFAULT_DPI = 100
ACCENT_COLOR = "#00ff00"

X_LABEL = "Time"
Y_LABEL = "Price, USD"


class ChartRenderer:
    """Renders square line-plus-points price charts."""

    def __init__(
        self,
        output_dir: str = ".",
        size_inches: float = DEFAULT_SIZE_INCHES,
        color: str = ACCENT_COLOR,
        dpi: int = DEFAULT_DPI,
    ):
        self.output_dir = output_dir
        self.size_inches = size_inches
        self.color = color
        self.dpi = dpi

    def path_for(self, asset_id: str) -> str:
        return os.path.join(self.output_dir, f"{asset_id}.png")

    def render(self, asset_id: str, title: str, points: Sequence[ChartPoint]) -> str:
        """
        Render `points` to the asset's image file.

        Args:
            asset_id: Asset identifier, used for the file name
            title: Chart title (asset display name)
            points: Series to plot; may be empty

        Returns:
            Path of the written image

        Raises:
            PersistenceError: if the image cannot be saved
        """
        path = self.path_for(asset_id)
        fig, ax = plt.subplots(figsize=(self.size_inches, self.size_inches))
        try:
            ax.plot(
                [p.x for p in points],
                [p.y for p in points],
                color=self.color,
                marker="o",
                markersize=3,
                linewidth=1.5,
            )
            ax.set_title(title)
            ax.set_xlabel(X_LABEL)
            ax.set_ylabel(Y_LABEL)
            ax.grid(True, alpha=0.3)
            fig.tight_layout()

            os.makedirs(self.output_dir, exist_ok=True)
            fig.savefig(path, format="png", dpi=self.dpi)
        except OSError as e:
            raise PersistenceError(f"Could not save chart {path}: {e}") from e
        finally:
            plt.close(fig)

        logger.debug(f"Rendered {len(points)} points to {path}")
        return path
