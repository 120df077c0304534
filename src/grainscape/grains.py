import heapq
from collections.abc import Iterator, Sequence

import equinox as eqx
import numpy as np
from tqdm import tqdm

from .errors import IndexOutOfRangeError
from .lcp_links import Link
from .mpg import MinimumPlanarGraph
from .threshold import ThresholdResult, ThresholdSweep, threshold_sweep


class Grain(eqx.Module):
    """The landscape coarsened at one threshold of a sweep.

    **Attributes:**

    - `index`: 1-based position in the sweep.
    - `result`: the `ThresholdResult` of the threshold.
    - `tessellation`: raster of component ids; each cell belongs to the
      component of its nearest patch, `0` where no patch is reachable.
    - `centroids`: component id -> area weighted centroid `(row, col)` of its
      patches.
    - `links`: links between components, the cheapest removed link per pair
      of components, with component ids as endpoints.
    """

    index: int
    result: ThresholdResult
    tessellation: np.ndarray
    centroids: dict
    links: tuple[Link, ...]

    @property
    def cutoff(self) -> float:
        return self.result.cutoff

    @property
    def n_components(self) -> int:
        return self.result.n_components

    def component_at(self, coords) -> np.ndarray:
        """Component id of the cells at `coords`, an `(i, j)` pair or an
        `(n, 2)` array of cell coordinates."""
        coords = np.asarray(coords, dtype=int)
        if coords.ndim == 1:
            return self.tessellation[coords[0], coords[1]]
        return self.tessellation[coords[:, 0], coords[:, 1]]


def _grain(graph: MinimumPlanarGraph, result: ThresholdResult, index: int) -> Grain:
    lookup = np.zeros(int(graph.ids.max()) + 1, dtype=np.int64)
    for patch_id, component_id in result.membership.items():
        lookup[patch_id] = component_id
    tessellation = lookup[graph.voronoi]

    centroids = {}
    for component in result.components:
        patches = [graph.node(i) for i in component.members]
        areas = np.array([p.area for p in patches], dtype=float)
        xy = np.array([p.centroid for p in patches], dtype=float)
        row, col = (areas[:, None] * xy).sum(axis=0) / areas.sum()
        centroids[component.id] = (float(row), float(col))

    coarse = {}
    for link in graph.links:
        a = result.membership[link.source]
        b = result.membership[link.target]
        if a == b:
            continue
        pair = (min(a, b), max(a, b))
        if pair not in coarse or link.weight < coarse[pair].weight:
            coarse[pair] = Link(
                source=pair[0],
                target=pair[1],
                weight=link.weight,
                path=link.path if a < b else tuple(reversed(link.path)),
                length=link.length,
            )

    return Grain(
        index=index,
        result=result,
        tessellation=tessellation,
        centroids=centroids,
        links=tuple(coarse[pair] for pair in sorted(coarse)),
    )


class GrainsOfConnectivity(Sequence):
    """Grains of connectivity: one `Grain` per cutoff of a threshold sweep.

    Grains are built on first access, on top of the (cheaper) sweep, and
    cached. Indexing is 0-based as for any sequence; use
    [`select_grain`][grainscape.grains.select_grain] or `select` for the
    1-based selection by sweep position.
    """

    def __init__(self, graph: MinimumPlanarGraph, sweep: ThresholdSweep):
        if graph.voronoi is None:
            raise ValueError(
                "`graph` has no tessellation; build it with `minimum_planar_graph`"
            )
        self.graph = graph
        self.sweep = sweep
        self._grains = {}

    def __len__(self) -> int:
        return len(self.sweep)

    @property
    def cutoffs(self) -> np.ndarray:
        return self.sweep.cutoffs

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError(f"Grain index {index} out of range")
        if index not in self._grains:
            self._grains[index] = _grain(self.graph, self.sweep[index], index + 1)
        return self._grains[index]

    def __iter__(self) -> Iterator[Grain]:
        for i in range(len(self)):
            yield self[i]

    def select(self, index: int) -> Grain:
        return select_grain(self, index)

    def materialize(self) -> list[Grain]:
        """Build every grain, reporting progress."""
        return [
            self[i]
            for i in tqdm(range(len(self)), desc="Grains", total=len(self))
        ]


def build_grains(graph: MinimumPlanarGraph, n_thresh: int) -> GrainsOfConnectivity:
    """Grains of connectivity over `n_thresh` evenly spaced cutoffs.

    !!! example

        ```python
        grains = build_grains(mpg, 20)
        grain = select_grain(grains, 5)
        grain.tessellation  # raster of component ids
        ```
    """
    return GrainsOfConnectivity(graph, threshold_sweep(graph, n_thresh))


def select_grain(grains: GrainsOfConnectivity, index: int) -> Grain:
    """Grain at 1-based position `index` of the sweep.

    Raises `IndexOutOfRangeError` when `index` is outside `[1, len(grains)]`.
    """
    if (
        isinstance(index, bool)
        or not isinstance(index, (int, np.integer))
        or not 1 <= index <= len(grains)
    ):
        raise IndexOutOfRangeError(
            f"Grain index {index} is outside [1, {len(grains)}]"
        )
    return grains[int(index) - 1]


class Corridor(eqx.Module):
    """Cheapest chain of components between two cells of a grain.

    `components` is empty and `weight` is `inf` when the cells are not
    connected by the grain links.
    """

    start: tuple[int, int]
    end: tuple[int, int]
    components: tuple[int, ...]
    weight: float


def corridor(grain: Grain, start, end) -> Corridor:
    """Least-cost route across a grain between the components containing the
    cells `start` and `end`.

    Moving within a component is free; crossing from one component to another
    costs the weight of the link joining them.

    !!! example

        ```python
        grain = select_grain(grains, 3)
        route = corridor(grain, (0, 0), (99, 120))
        route.components, route.weight
        ```
    """
    start = tuple(int(v) for v in start)
    end = tuple(int(v) for v in end)
    source = int(grain.component_at(start))
    target = int(grain.component_at(end))
    for cell, component in ((start, source), (end, target)):
        if component == 0:
            raise ValueError(f"Cell {cell} is not reachable from any patch")

    adjacency = {}
    for link in grain.links:
        adjacency.setdefault(link.source, []).append((link.target, link.weight))
        adjacency.setdefault(link.target, []).append((link.source, link.weight))

    best = {source: 0.0}
    previous = {}
    heap = [(0.0, source)]
    while heap:
        d, node = heapq.heappop(heap)
        if node == target:
            break
        if d > best[node]:
            continue
        for neighbor, weight in adjacency.get(node, []):
            nd = d + weight
            if nd < best.get(neighbor, np.inf):
                best[neighbor] = nd
                previous[neighbor] = node
                heapq.heappush(heap, (nd, neighbor))

    if target not in best:
        return Corridor(start=start, end=end, components=(), weight=float("inf"))
    chain = [target]
    while chain[-1] != source:
        chain.append(previous[chain[-1]])
    return Corridor(
        start=start,
        end=end,
        components=tuple(reversed(chain)),
        weight=float(best[target]),
    )
