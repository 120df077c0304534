import enum
from typing import Optional

import numpy as np

from .grains import Grain
from .mpg import MinimumPlanarGraph


class RasterView(enum.Enum):
    """What to draw from a graph: patch ids, core cells of patches, cells
    crossed by links, or the tessellation of a grain."""

    PATCHES = "patches"
    CORES = "cores"
    LINKS = "links"
    TESSELLATION = "tessellation"


def rasterize(
    view: RasterView, graph: MinimumPlanarGraph, grain: Optional[Grain] = None
) -> np.ndarray:
    """Raster aligned with the grid of `graph`, ready to be displayed.

    - `PATCHES`: patch id, `0` elsewhere.
    - `CORES`: patch id on core cells, `0` elsewhere.
    - `LINKS`: 1-based position of the link crossing the cell in
      `graph.links` (or `grain.links` when a grain is given), `0` elsewhere.
      Where links overlap, the cheapest one wins.
    - `TESSELLATION`: component id of `grain`.
    """
    view = RasterView(view)
    labels = graph.patch_labels
    if view is RasterView.PATCHES:
        return labels.copy()
    if view is RasterView.CORES:
        return np.where(graph.patch_map.core_mask, labels, 0)
    if view is RasterView.LINKS:
        links = graph.links if grain is None else grain.links
        out = np.zeros(labels.shape, dtype=np.int64)
        order = sorted(range(len(links)), key=lambda k: links[k].weight, reverse=True)
        for k in order:
            for i, j in links[k].path:
                if labels[i, j] == 0:
                    out[i, j] = k + 1
        return out
    if grain is None:
        raise ValueError("The tessellation view requires a grain")
    return grain.tessellation.copy()
