from collections.abc import Callable
from typing import Union

import equinox as eqx
import numpy as np
from jax import Array
from scipy import ndimage

from .errors import InvalidGridError
from .graph import as_contiguity, contiguity_structure, ResistanceGrid


class Patch(eqx.Module):
    """A node of the graph: a maximal connected region of focal cells.

    `area` and `core_area` are cell counts, `centroid` is `(row, col)` in
    cell coordinates.
    """

    id: int
    area: int
    core_area: int
    centroid: tuple[float, float]


class PatchMap(eqx.Module):
    """Result of a labelling pass.

    **Attributes:**

    - `labels`: integer raster, `0` outside patches, patch id otherwise.
    - `patches`: patches ordered by id.
    - `neighbors`: contiguity used for labelling.
    """

    labels: np.ndarray
    patches: tuple[Patch, ...]
    neighbors: Array

    @property
    def n_patches(self) -> int:
        return len(self.patches)

    @property
    def core_mask(self) -> np.ndarray:
        return core_cells(self.labels, self.neighbors)


def focal_mask(
    grid: ResistanceGrid, focal: Union[None, Array, Callable[[np.ndarray], np.ndarray]]
) -> np.ndarray:
    """Boolean raster of focal cells. By default, cells at the minimum finite
    resistance of the grid."""
    resistance = np.asarray(grid.grid)
    if focal is None:
        finite = np.isfinite(resistance)
        if not finite.any():
            raise InvalidGridError("Every cell of the grid is impassable.")
        return finite & (resistance == resistance[finite].min())
    if callable(focal):
        mask = np.asarray(focal(resistance), dtype=bool)
    else:
        mask = np.asarray(focal, dtype=bool)
    if mask.shape != resistance.shape:
        raise InvalidGridError(
            f"Focal mask of shape {mask.shape} does not match grid of shape {resistance.shape}."
        )
    return mask


def core_cells(labels: np.ndarray, neighbors: Array) -> np.ndarray:
    """Cells whose whole neighbourhood lies in the same patch. Cells on the
    raster edge are never core."""
    footprint = contiguity_structure(neighbors)
    lo = ndimage.minimum_filter(labels, footprint=footprint, mode="constant", cval=0)
    hi = ndimage.maximum_filter(labels, footprint=footprint, mode="constant", cval=0)
    return (labels > 0) & (lo == labels) & (hi == labels)


def label_patches(
    grid: ResistanceGrid,
    focal: Union[None, Array, Callable[[np.ndarray], np.ndarray]] = None,
    neighbors: Union[None, int, Array] = None,
    min_area: int = 1,
) -> PatchMap:
    """Identify patches, the nodes of the minimum planar graph.

    **Arguments:**

    - `grid`: the resistance surface.
    - `focal`: boolean mask, or function of the resistance array returning
      one. Defaults to the cells at the minimum resistance.
    - `neighbors`: contiguity rule, defaults to the one of `grid`.
    - `min_area`: patches with fewer cells are discarded.

    **Returns:**

    A `PatchMap`. Ids are consecutive, starting at 1, in raster-scan order of
    the first cell of each patch.

    !!! example

        ```python
        grid = ResistanceGrid(resistance)
        patch_map = label_patches(grid, focal=lambda r: r == 1, neighbors=4)
        patch_map.n_patches
        ```
    """
    assert isinstance(min_area, int) and min_area >= 1
    neighbors = grid.neighbors if neighbors is None else as_contiguity(neighbors)
    mask = focal_mask(grid, focal)
    if not mask.any():
        raise InvalidGridError("No focal cells: the graph would have no nodes.")
    impassable = mask & ~grid.passable
    if impassable.any():
        i, j = np.argwhere(impassable)[0]
        raise InvalidGridError(f"Focal cell ({i}, {j}) is impassable.")

    labels, n = ndimage.label(mask, structure=contiguity_structure(neighbors))
    areas = np.bincount(labels.ravel(), minlength=n + 1)

    if min_area > 1:
        # renumber surviving patches, keeping raster-scan order
        keep = areas >= min_area
        keep[0] = False
        remap = np.zeros(n + 1, dtype=labels.dtype)
        remap[keep] = np.arange(1, keep.sum() + 1)
        labels = remap[labels]
        n = int(keep.sum())
        if n == 0:
            raise InvalidGridError(f"No patch has at least {min_area} cells.")
        areas = np.bincount(labels.ravel(), minlength=n + 1)

    cores = np.bincount(
        labels[core_cells(labels, neighbors)].ravel(), minlength=n + 1
    )
    ids = np.arange(1, n + 1)
    centroids = ndimage.center_of_mass(mask, labels, ids)

    patches = tuple(
        Patch(
            id=int(pid),
            area=int(areas[pid]),
            core_area=int(cores[pid]),
            centroid=(float(c[0]), float(c[1])),
        )
        for pid, c in zip(ids, centroids)
    )
    return PatchMap(labels=labels, patches=patches, neighbors=neighbors)
