import math
from collections.abc import Iterator, Sequence

import equinox as eqx
import numpy as np

from .lcp_links import Link
from .mpg import MinimumPlanarGraph
from .utils import connected_component_labels, consecutive_labels, link_adjacency


class Component(eqx.Module):
    """Patches connected by links surviving a threshold, with their summed
    area and core area (in cells)."""

    id: int
    members: tuple[int, ...]
    area: int
    core_area: int

    @property
    def count(self) -> int:
        return len(self.members)


class ThresholdResult(eqx.Module):
    """Partition of the patches of a graph after removing every link whose
    weight is greater than or equal to `cutoff`.

    **Attributes:**

    - `cutoff`: the threshold.
    - `components`: components ordered by smallest member patch id, with ids
      `1..n_components`.
    - `membership`: patch id -> component id.
    - `links`: links of the graph that survive the threshold.
    """

    cutoff: float
    components: tuple[Component, ...]
    membership: dict
    links: tuple[Link, ...]

    @property
    def n_components(self) -> int:
        return len(self.components)

    def component_of(self, patch_id: int) -> Component:
        return self.components[self.membership[patch_id] - 1]


def threshold(graph: MinimumPlanarGraph, cutoff: float) -> ThresholdResult:
    """Components of `graph` once links with `weight >= cutoff` are removed.

    The graph itself is left untouched.

    !!! example

        ```python
        result = threshold(mpg, 250.0)
        result.n_components
        [c.area for c in result.components]
        ```
    """
    cutoff = float(cutoff)
    if math.isnan(cutoff):
        raise ValueError("`cutoff` must not be NaN")
    sources, targets, weights = graph.link_arrays()
    active = weights < cutoff
    A = link_adjacency(sources, targets, active, graph.nv)
    labels = consecutive_labels(connected_component_labels(A))

    ids = graph.ids
    areas = np.array([p.area for p in graph.patches], dtype=int)
    cores = np.array([p.core_area for p in graph.patches], dtype=int)
    components = []
    for k in range(1, int(labels.max()) + 1):
        in_k = labels == k
        components.append(
            Component(
                id=k,
                members=tuple(int(i) for i in ids[in_k]),
                area=int(areas[in_k].sum()),
                core_area=int(cores[in_k].sum()),
            )
        )
    return ThresholdResult(
        cutoff=cutoff,
        components=tuple(components),
        membership={int(i): int(k) for i, k in zip(ids, labels)},
        links=tuple(l for l, keep in zip(graph.links, active) if keep),
    )


def sweep_cutoffs(graph: MinimumPlanarGraph, n_thresh: int) -> np.ndarray:
    """`n_thresh` strictly increasing cutoffs spanning the link weights of
    `graph`.

    Cutoffs are evenly spaced from `0`, where every node is isolated, to just
    above the largest link weight, where every link is kept. A graph without
    links, or whose largest weight is too close to zero for `n_thresh`
    distinct values, gets the cutoffs `0, 1, ..., n_thresh - 1`.
    """
    if not isinstance(n_thresh, (int, np.integer)) or n_thresh < 1:
        raise ValueError("`n_thresh` must be a positive integer")
    if graph.ne == 0:
        return np.arange(n_thresh, dtype=float)
    upper = np.nextafter(graph.weights.max(), np.inf)
    if n_thresh == 1:
        return np.array([upper])
    cutoffs = np.linspace(0.0, upper, n_thresh)
    if not np.all(np.diff(cutoffs) > 0):
        # weights too close to zero to be told apart
        return np.arange(n_thresh, dtype=float)
    return cutoffs


class ThresholdSweep(Sequence):
    """Lazy sequence of `ThresholdResult`s over increasing cutoffs.

    Each result is computed on first access and cached; iterating again
    restarts from the first cutoff without recomputing. Stopping an iteration
    early costs nothing beyond the cutoffs already visited.

    !!! example

        ```python
        sweep = threshold_sweep(mpg, 10)
        for cutoff, result in sweep.items():
            if result.n_components == 1:
                break
        ```
    """

    def __init__(self, graph: MinimumPlanarGraph, cutoffs):
        cutoffs = np.asarray(cutoffs, dtype=float)
        assert cutoffs.ndim == 1
        self.graph = graph
        self.cutoffs = cutoffs
        self._results = {}

    def __len__(self) -> int:
        return len(self.cutoffs)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError(f"Sweep index {index} out of range")
        if index not in self._results:
            self._results[index] = threshold(self.graph, self.cutoffs[index])
        return self._results[index]

    def __iter__(self) -> Iterator[ThresholdResult]:
        for i in range(len(self)):
            yield self[i]

    def items(self) -> Iterator[tuple[float, ThresholdResult]]:
        """Iterate over `(cutoff, result)` pairs."""
        for i in range(len(self)):
            yield float(self.cutoffs[i]), self[i]

    @property
    def n_computed(self) -> int:
        return len(self._results)

    @property
    def n_components(self) -> np.ndarray:
        """Component count at every cutoff (computes the whole sweep)."""
        return np.array([result.n_components for result in self])


def threshold_sweep(graph: MinimumPlanarGraph, n_thresh: int) -> ThresholdSweep:
    """Scalar threshold sweep over `n_thresh` cutoffs, see
    [`sweep_cutoffs`][grainscape.threshold.sweep_cutoffs]."""
    return ThresholdSweep(graph, sweep_cutoffs(graph, n_thresh))
