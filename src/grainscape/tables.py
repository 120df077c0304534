from collections.abc import Iterable

import pandas as pd

from .mpg import MinimumPlanarGraph
from .threshold import ThresholdResult


def node_table(graph: MinimumPlanarGraph) -> pd.DataFrame:
    """One row per patch. Areas are in cells, `*_ground` columns in squared
    ground units."""
    cell_area = graph.grid.cell_area
    return pd.DataFrame(
        {
            "patch_id": [p.id for p in graph.patches],
            "area": [p.area for p in graph.patches],
            "core_area": [p.core_area for p in graph.patches],
            "area_ground": [p.area * cell_area for p in graph.patches],
            "core_area_ground": [p.core_area * cell_area for p in graph.patches],
            "centroid_row": [p.centroid[0] for p in graph.patches],
            "centroid_col": [p.centroid[1] for p in graph.patches],
        }
    )


def link_table(graph: MinimumPlanarGraph) -> pd.DataFrame:
    """One row per link: endpoints, least-cost weight and path length."""
    return pd.DataFrame(
        {
            "source": [l.source for l in graph.links],
            "target": [l.target for l in graph.links],
            "weight": [l.weight for l in graph.links],
            "length": [l.length for l in graph.links],
            "n_cells": [len(l.path) for l in graph.links],
        },
        columns=["source", "target", "weight", "length", "n_cells"],
    )


def threshold_table(results: Iterable[ThresholdResult]) -> pd.DataFrame:
    """Summary of a sweep, one row per cutoff.

    !!! example

        ```python
        threshold_table(threshold_sweep(mpg, 10))
        ```
    """
    rows = [
        {
            "cutoff": r.cutoff,
            "n_components": r.n_components,
            "n_links": len(r.links),
        }
        for r in results
    ]
    return pd.DataFrame(rows, columns=["cutoff", "n_components", "n_links"])


def component_table(results: Iterable[ThresholdResult]) -> pd.DataFrame:
    """Aggregated attributes of every component, at every cutoff."""
    rows = [
        {
            "cutoff": r.cutoff,
            "component_id": c.id,
            "n_patches": c.count,
            "area": c.area,
            "core_area": c.core_area,
        }
        for r in results
        for c in r.components
    ]
    return pd.DataFrame(
        rows, columns=["cutoff", "component_id", "n_patches", "area", "core_area"]
    )
