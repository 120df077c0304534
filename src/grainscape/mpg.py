import math
import warnings
from collections.abc import Callable, Iterable
from typing import Optional, Union

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.experimental.sparse import BCOO

from .errors import DisconnectedGridError, InconsistentGraphError
from .graph import AbstractGraph, ResistanceGrid
from .lcp_links import Link, shortest_paths
from .patches import label_patches, Patch, PatchMap


class MinimumPlanarGraph(AbstractGraph):
    """
    Minimum planar graph: patches as nodes, least-cost links as edges.

    Instances are built by [`build_mpg`][grainscape.mpg.build_mpg] or
    [`minimum_planar_graph`][grainscape.mpg.minimum_planar_graph] and are not
    modified afterwards; thresholding derives new views from them.

    **Attributes:**

    - `grid`: the resistance surface.
    - `patch_map`: patch label raster and patch attributes.
    - `links`: links sorted by `(source, target)`.
    - `voronoi`: nearest patch id of every cell (`0` when unreachable).
    - `cost_distance`: cumulative cost from every cell to its nearest patch.
    - `isolated`: ids of patches without any link.
    - `positions`: patch id -> node position.
    - `by_pair`: `(source, target)` -> link.
    - `adjacency`: patch id -> sorted ids of linked patches.
    """

    grid: ResistanceGrid
    patch_map: PatchMap
    links: tuple[Link, ...]
    voronoi: Optional[np.ndarray]
    cost_distance: Optional[np.ndarray]
    isolated: tuple[int, ...]
    positions: dict
    by_pair: dict
    adjacency: dict

    def __repr__(self) -> str:
        return f"MinimumPlanarGraph with {self.nv} nodes and {self.ne} links"

    @property
    def patches(self) -> tuple[Patch, ...]:
        return self.patch_map.patches

    @property
    def patch_labels(self) -> np.ndarray:
        return self.patch_map.labels

    @property
    def nv(self) -> int:
        """Get the number of nodes."""
        return len(self.patches)

    @property
    def ne(self) -> int:
        """Get the number of links."""
        return len(self.links)

    @property
    def ids(self) -> np.ndarray:
        return np.array([p.id for p in self.patches], dtype=int)

    @property
    def weights(self) -> np.ndarray:
        return np.array([l.weight for l in self.links], dtype=float)

    def node(self, patch_id: int) -> Patch:
        return self.patches[self.positions[patch_id]]

    def link(self, a: int, b: int) -> Link:
        """Link between patches `a` and `b`, in any order. Raises `KeyError`
        when the patches are not linked."""
        pair = (min(a, b), max(a, b))
        if pair not in self.by_pair:
            raise KeyError(f"No link between patches {a} and {b}")
        return self.by_pair[pair]

    def neighbors_of(self, patch_id: int) -> list[int]:
        return list(self.adjacency[patch_id])

    def link_arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Node positions of link endpoints, and link weights."""
        sources = np.array([self.positions[l.source] for l in self.links], dtype=np.int32)
        targets = np.array([self.positions[l.target] for l in self.links], dtype=np.int32)
        return sources, targets, self.weights

    def get_adjacency_matrix(self) -> BCOO:
        """
        Symmetric adjacency matrix holding link weights (least-cost distances),
        indexed by node position (patch id - 1 for a labelled patch map).

        Weights are stored in JAX's default float type: `float32`, or
        `float64` when `jax_enable_x64` is set.
        """
        sources, targets, weights = self.link_arrays()
        rows = np.concatenate([sources, targets])
        cols = np.concatenate([targets, sources])
        indices = jnp.stack([jnp.asarray(rows), jnp.asarray(cols)], axis=1).reshape(-1, 2)
        dtype = jax.dtypes.canonicalize_dtype(np.float64)
        data = jnp.asarray(np.concatenate([weights, weights]).astype(dtype))
        return BCOO((data, indices), shape=(self.nv, self.nv))


def _oriented(link: Link) -> Link:
    if link.source < link.target:
        return link
    return Link(
        source=link.target,
        target=link.source,
        weight=link.weight,
        path=tuple(reversed(link.path)),
        length=link.length,
    )


def build_mpg(
    grid: ResistanceGrid,
    patch_map: PatchMap,
    links: Iterable[Link],
    voronoi: Optional[np.ndarray] = None,
    cost_distance: Optional[np.ndarray] = None,
) -> MinimumPlanarGraph:
    """Assemble patches and links into a `MinimumPlanarGraph`.

    Links may be given in any orientation. When the same pair of patches is
    linked more than once, the cheapest link is kept (the first one on ties).

    Raises `InconsistentGraphError` if a link joins a patch to itself,
    references an unknown patch, or has a negative or non-finite weight.
    Patches left without links trigger a `DisconnectedGridError` warning and
    remain in the graph as isolated nodes.
    """
    positions = {p.id: k for k, p in enumerate(patch_map.patches)}
    if len(positions) != len(patch_map.patches):
        raise InconsistentGraphError("Patch ids are not unique.")

    best = {}
    for link in links:
        if link.source == link.target:
            raise InconsistentGraphError(
                f"Link ({link.source}, {link.target}) joins a patch to itself."
            )
        for end in (link.source, link.target):
            if end not in positions:
                raise InconsistentGraphError(
                    f"Link ({link.source}, {link.target}) references unknown patch {end}."
                )
        if not (math.isfinite(link.weight) and link.weight >= 0):
            raise InconsistentGraphError(
                f"Link ({link.source}, {link.target}) has invalid weight {link.weight}."
            )
        link = _oriented(link)
        if link.pair not in best or link.weight < best[link.pair].weight:
            best[link.pair] = link

    by_pair = {pair: best[pair] for pair in sorted(best)}
    neighbors = {p.id: [] for p in patch_map.patches}
    for a, b in by_pair:
        neighbors[a].append(b)
        neighbors[b].append(a)
    adjacency = {k: tuple(sorted(v)) for k, v in neighbors.items()}

    isolated = tuple(k for k, v in adjacency.items() if not v)
    if isolated and len(patch_map.patches) > 1:
        warnings.warn(
            f"{len(isolated)} patch(es) cannot reach any other patch and are kept "
            f"as isolated nodes: {list(isolated)}",
            DisconnectedGridError,
            stacklevel=2,
        )

    return MinimumPlanarGraph(
        grid=grid,
        patch_map=patch_map,
        links=tuple(by_pair.values()),
        voronoi=voronoi,
        cost_distance=cost_distance,
        isolated=isolated,
        positions=positions,
        by_pair=by_pair,
        adjacency=adjacency,
    )


def minimum_planar_graph(
    grid: ResistanceGrid,
    focal: Union[None, Array, Callable[[np.ndarray], np.ndarray]] = None,
    neighbors: Union[None, int, Array] = None,
    min_area: int = 1,
) -> MinimumPlanarGraph:
    """Label patches, link them and assemble the minimum planar graph.

    **Arguments:**

    - `grid`: the resistance surface.
    - `focal`: focal cell mask or predicate, see
      [`label_patches`][grainscape.patches.label_patches].
    - `neighbors`: contiguity rule used both for patches and for the
      least-cost expansion. Defaults to the contiguity of `grid`.
    - `min_area`: minimum patch size, in cells.

    !!! example

        ```python
        from grainscape import ResistanceGrid, minimum_planar_graph

        grid = ResistanceGrid(resistance, resolution=30.0)
        mpg = minimum_planar_graph(grid, focal=lambda r: r == 1)
        ```
    """
    patch_map = label_patches(grid, focal=focal, neighbors=neighbors, min_area=min_area)
    expansion = shortest_paths(grid, patch_map)
    return build_mpg(
        grid,
        patch_map,
        expansion.links,
        voronoi=expansion.voronoi,
        cost_distance=expansion.cost_distance,
    )
