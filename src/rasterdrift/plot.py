"""Quicklook figure of the colored difference raster."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Patch

from .classify import BANDS
from .errors import OutputWriteError
from .stats import RunStats


def _legend_handles():
    handles = []
    for band in BANDS:
        r, g, b, a = band.rgba
        face = (r / 255, g / 255, b / 255, max(a, 40) / 255)
        handles.append(Patch(facecolor=face, edgecolor="0.3", label=f"{band.name}: {band.label}"))
    return handles


def plot_color_diff(
    rgba: np.ndarray,
    width: int,
    height: int,
    *,
    stats: Optional[RunStats] = None,
    title: str = "Relative difference",
    save_path: Optional[Union[Path, str]] = None,
    dpi: int = 150,
    figsize: Tuple[int, int] = (10, 6),
) -> plt.Figure:
    """
    Plot (and optionally save) the RGBA severity raster with a band legend.

    Parameters
    ----------
    rgba : np.ndarray
        uint8 array of shape (4, height*width) or (4, height, width).
    width, height : int
    stats : RunStats, optional
        Adds bad and nonzero shares to the title.
    title : str
    save_path : Path or str, optional
        If provided, save the figure there.
    dpi : int
    figsize : tuple

    Returns
    -------
    matplotlib.figure.Figure
    """
    image = np.moveaxis(np.asarray(rgba, dtype=np.uint8).reshape(4, height, width), 0, -1)

    if stats is not None:
        title = (
            f"{title}\nbad: {stats.bad_pct:.4f}%  nonzero: {stats.nonzero_pct:.4f}%"
        )
        if stats.avg_ppm is not None:
            title += f"  avg: {stats.avg_ppm:.3f} ppm"

    fig, ax = plt.subplots(figsize=figsize)
    ax.set_facecolor("white")
    ax.imshow(image, interpolation="nearest")
    ax.legend(
        handles=_legend_handles(),
        loc="center left",
        bbox_to_anchor=(1.02, 0.5),
        fontsize="small",
        frameon=False,
    )
    ax.axis("off")
    ax.set_title(title)
    plt.tight_layout()

    if save_path is not None:
        save_path = Path(save_path)
        try:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(save_path, dpi=dpi, bbox_inches="tight")
        except OSError as exc:
            plt.close(fig)
            raise OutputWriteError(str(save_path), exc.strerror or str(exc)) from exc

    return fig
