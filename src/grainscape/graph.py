import abc
from collections.abc import Mapping
from typing import Union

import equinox as eqx
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.experimental.sparse import BCOO

from .errors import InvalidGridError


class AbstractGraph(eqx.Module):
    """
    Abstract base class for graphs.
    """

    @property
    @abc.abstractmethod
    def nv(self) -> int:
        """Get the number of vertices."""
        pass

    @abc.abstractmethod
    def get_adjacency_matrix(self) -> BCOO:
        """Get the adjacency matrix of the graph."""
        pass


# Neighboring indices for ResistanceGrid, 4-adjacency
ROOK_CONTIGUITY = jnp.array(
    [
        (1, 0),  # down
        (-1, 0),  # up
        (0, 1),  # right
        (0, -1),  # left
    ]
)

# Neighboring indices for ResistanceGrid, 8-adjacency
QUEEN_CONTIGUITY = jnp.array(
    [
        (1, 0),  # down
        (-1, 0),  # up
        (0, 1),  # right
        (0, -1),  # left
        (1, 1),  # down-right
        (1, -1),  # down-left
        (-1, 1),  # up-right
        (-1, -1),  # up-left
    ]
)


def as_contiguity(neighbors: Union[int, Array]) -> Array:
    """Accepts `4`, `8` or an array of `(di, dj)` offsets."""
    if isinstance(neighbors, (int, np.integer)):
        if neighbors == 4:
            return ROOK_CONTIGUITY
        if neighbors == 8:
            return QUEEN_CONTIGUITY
        raise ValueError("`neighbors` must be 4, 8 or an array of offsets")
    neighbors = jnp.asarray(neighbors)
    assert neighbors.ndim == 2 and neighbors.shape[1] == 2, "offsets should be (n, 2)"
    return neighbors


def contiguity_structure(neighbors: Array) -> np.ndarray:
    """3x3 boolean structuring element equivalent to the contiguity offsets,
    as expected by `scipy.ndimage`."""
    structure = np.zeros((3, 3), dtype=bool)
    structure[1, 1] = True
    for di, dj in np.asarray(neighbors):
        structure[1 + di, 1 + dj] = True
    return structure


def is_queen(neighbors: Array) -> bool:
    return bool(np.any(np.all(np.abs(np.asarray(neighbors)) == 1, axis=1)))


class ResistanceGrid(eqx.Module):
    """
    Raster of per-cell movement cost.

    **Arguments:**

    - `grid` is a 2D array of shape `(height, width)` with non-negative
      resistance values. `inf` marks impassable cells.
    - `resolution` is the linear size of a cell, in ground units.
    - `neighbors` defines the contiguity pattern, either `ROOK_CONTIGUITY`
      (or `4`) or `QUEEN_CONTIGUITY` (or `8`).

    !!! example

        ```python
        import jax.numpy as jnp
        from grainscape import ResistanceGrid

        grid = ResistanceGrid(jnp.ones((10, 10)), resolution=30.0)
        ```
    """

    grid: Array
    neighbors: Array
    resolution: float = eqx.field(static=True)

    def __init__(
        self,
        grid: Array,
        resolution: float = 1.0,
        neighbors: Union[int, Array] = QUEEN_CONTIGUITY,
    ):
        grid = jnp.asarray(grid)
        if not jnp.issubdtype(grid.dtype, jnp.floating):
            grid = grid.astype(jnp.float32)
        assert grid.ndim == 2, "`grid` should be 2D array"
        if grid.size == 0:
            raise InvalidGridError("`grid` is empty")
        if not resolution > 0:
            raise ValueError("`resolution` must be strictly positive")

        values = np.asarray(grid)
        invalid = np.isnan(values) | (values < 0)
        if invalid.any():
            i, j = np.argwhere(invalid)[0]
            raise InvalidGridError(
                f"Invalid resistance {values[i, j]} at cell ({i}, {j}); "
                "resistance must be non-negative, or inf for impassable cells."
            )

        self.grid = grid
        self.resolution = float(resolution)
        self.neighbors = as_contiguity(neighbors)

    def __repr__(self) -> str:
        return f"ResistanceGrid of size {self.height}x{self.width}"

    @property
    def height(self) -> int:
        """Get the height of the grid (number of rows)."""
        return self.grid.shape[0]

    @property
    def width(self) -> int:
        """Get the width of the grid (number of columns)."""
        return self.grid.shape[1]

    @property
    def nv(self) -> int:
        """Get the number of cells."""
        return self.width * self.height

    @property
    def cell_area(self) -> float:
        return self.resolution**2

    @property
    def passable(self) -> np.ndarray:
        """Boolean mask of cells with finite resistance."""
        return np.isfinite(np.asarray(self.grid))

    def coord_to_index(self, i, j):
        """Convert (i, j) grid coordinates to the associated cell index."""
        return i * self.width + j

    def index_to_coord(self, v):
        """Convert cell index `v` to (i, j) grid coordinates."""
        i = v // self.width
        j = v % self.width
        return jnp.column_stack((i, j))

    def node_values_to_array(self, values: Array) -> Array:
        """Reshapes the 1D array of cell values to the underlying 2D grid."""
        return values.reshape(*self.grid.shape)

    def array_to_node_values(self, array: Array) -> Array:
        """Flattens a 2D raster aligned with the grid."""
        return array.ravel()


def reclassify(
    landcover: Array,
    table: Mapping,
    resolution: float = 1.0,
    neighbors: Union[int, Array] = QUEEN_CONTIGUITY,
) -> ResistanceGrid:
    """Build a `ResistanceGrid` from a categorical land cover raster.

    **Arguments:**

    - `landcover`: 2D array of integer class codes.
    - `table`: mapping `class -> resistance`. `None` or `inf` makes a class
      impassable.

    Raises `InvalidGridError` if the raster holds a class that is not in
    `table`.

    !!! example

        ```python
        landcover = jnp.array([[1, 1, 2], [3, 2, 1]])
        grid = reclassify(landcover, {1: 1.0, 2: 10.0, 3: None})
        ```
    """
    landcover = np.asarray(landcover)
    assert landcover.ndim == 2, "`landcover` should be 2D array"
    resistance = np.full(landcover.shape, np.nan)
    for cls in np.unique(landcover):
        mask = landcover == cls
        if cls.item() not in table:
            i, j = np.argwhere(mask)[0]
            raise InvalidGridError(
                f"Land cover class {cls.item()} at cell ({i}, {j}) is missing from the reclassification table."
            )
        value = table[cls.item()]
        resistance[mask] = np.inf if value is None else value
    return ResistanceGrid(resistance, resolution=resolution, neighbors=neighbors)
