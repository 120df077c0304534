import heapq
import math

import equinox as eqx
import numpy as np

from .graph import is_queen, ResistanceGrid
from .patches import PatchMap


class Link(eqx.Module):
    """Least-cost link between the perimeters of two patches.

    **Attributes:**

    - `source`, `target`: patch ids, `source < target`.
    - `weight`: cumulative resistance along the path.
    - `path`: `(row, col)` cells from a perimeter cell of `source` to a
      perimeter cell of `target`.
    - `length`: ground length of the path.
    """

    source: int
    target: int
    weight: float
    path: tuple[tuple[int, int], ...] = ()
    length: float = 0.0

    @property
    def pair(self) -> tuple[int, int]:
        return (self.source, self.target)


class Expansion(eqx.Module):
    """Outcome of the multi-source expansion from every patch.

    - `links`: one `Link` per pair of patches whose fronts meet.
    - `voronoi`: nearest patch id of each cell, `0` when unreachable.
    - `cost_distance`: cumulative cost to the nearest patch, `inf` when
      unreachable.
    """

    links: list[Link]
    voronoi: np.ndarray
    cost_distance: np.ndarray


def _expand(resistance, labels, offsets):
    """Multi-source Dijkstra from all patch cells at once. Returns flat
    arrays of owner, cost and predecessor cell."""
    height, width = resistance.shape
    r = resistance.ravel()
    flat_labels = labels.ravel()
    cost = np.full(r.shape, np.inf)
    owner = np.zeros(r.shape, dtype=np.int64)
    predecessor = np.full(r.shape, -1, dtype=np.int64)
    settled = np.zeros(r.shape, dtype=bool)
    passable = np.isfinite(r)
    steps = [(int(di), int(dj), math.hypot(di, dj)) for di, dj in offsets]

    heap = []
    order = 0
    for idx in np.flatnonzero(flat_labels):
        cost[idx] = 0.0
        owner[idx] = flat_labels[idx]
        heap.append((0.0, order, int(idx)))
        order += 1
    heapq.heapify(heap)

    while heap:
        d, _, idx = heapq.heappop(heap)
        if settled[idx]:
            continue
        settled[idx] = True
        i, j = divmod(idx, width)
        for di, dj, step in steps:
            ni, nj = i + di, j + dj
            if not (0 <= ni < height and 0 <= nj < width):
                continue
            nidx = ni * width + nj
            if settled[nidx] or flat_labels[nidx] or not passable[nidx]:
                continue
            if di and dj:
                # a region may not squeeze diagonally between two cells of
                # another region
                side = owner[i * width + nj]
                if side > 0 and side != owner[idx] and side == owner[ni * width + j]:
                    continue
            nd = d + step * (r[idx] + r[nidx]) / 2
            # strict comparison keeps the first discovered owner on ties
            if nd < cost[nidx]:
                cost[nidx] = nd
                owner[nidx] = owner[idx]
                predecessor[nidx] = idx
                heapq.heappush(heap, (nd, order, nidx))
                order += 1

    return owner, cost, predecessor


def _meetings(resistance, owner, cost, di, dj):
    """Candidate weights of frontier meetings along one forward offset.

    Returns `(u, v, weight)` flat index arrays, in row-major order of `u`.
    """
    height, width = resistance.shape
    rows = slice(0, height - di)
    cols = slice(max(0, -dj), width - max(0, dj))
    nrows = slice(di, height)
    ncols = slice(max(0, dj), width + min(0, dj))

    u_owner = owner[rows, cols]
    v_owner = owner[nrows, ncols]
    meeting = (u_owner > 0) & (v_owner > 0) & (u_owner != v_owner)
    step = math.hypot(di, dj)
    weight = (
        cost[rows, cols]
        + cost[nrows, ncols]
        + step * (resistance[rows, cols] + resistance[nrows, ncols]) / 2
    )
    weight = np.where(meeting, weight, np.inf)

    ii, jj = np.meshgrid(
        np.arange(rows.start, rows.stop),
        np.arange(cols.start, cols.stop),
        indexing="ij",
    )
    u = ii * width + jj
    v = (ii + di) * width + (jj + dj)
    return u, v, weight


def _trace(idx, predecessor, width):
    cells = []
    while idx != -1:
        cells.append(divmod(int(idx), width))
        idx = predecessor[idx]
    return cells


def _path_length(path, resolution):
    return resolution * sum(
        math.hypot(b[0] - a[0], b[1] - a[1]) for a, b in zip(path[:-1], path[1:])
    )


def shortest_paths(grid: ResistanceGrid, patch_map: PatchMap) -> Expansion:
    """Least-cost links between neighbouring patches.

    Expands from the perimeters of every patch simultaneously (multi-source
    Dijkstra over the resistance surface). A link is created wherever the
    expansion fronts of two patches meet, and only the cheapest meeting per
    pair of patches is kept. Stepping between adjacent cells `a` and `b` costs
    `step * (r[a] + r[b]) / 2`, with `step = sqrt(2)` for diagonal moves.

    With queen contiguity, diagonals are restricted so that the resulting graph
    stays planar. Within a 2x2 block, the expansion does not step across a
    diagonal whose opposite cells belong to a single other patch. A diagonal
    link is dropped when both cells of the other diagonal share a patch. When
    both diagonals would be links, only the cheaper one is kept, the main
    diagonal on ties.

    !!! example

        ```python
        patch_map = label_patches(grid)
        expansion = shortest_paths(grid, patch_map)
        [(l.source, l.target, l.weight) for l in expansion.links]
        ```
    """
    resistance = np.asarray(grid.grid, dtype=float)
    height, width = resistance.shape
    offsets = np.asarray(patch_map.neighbors)
    owner, cost, predecessor = _expand(resistance, patch_map.labels, offsets)
    owner = owner.reshape(height, width)
    cost = cost.reshape(height, width)

    candidates = [_meetings(resistance, owner, cost, 1, 0), _meetings(resistance, owner, cost, 0, 1)]
    if is_queen(offsets) and height > 1 and width > 1:
        # element (i, j) of both arrays belongs to the 2x2 block with top-left
        # cell (i, j): main diagonal from (i, j), anti diagonal from (i, j + 1)
        u_main, v_main, w_main = _meetings(resistance, owner, cost, 1, 1)
        u_anti, v_anti, w_anti = _meetings(resistance, owner, cost, 1, -1)
        # a diagonal link may not cut through a region holding the other
        # diagonal
        main_a, main_b = owner[:-1, :-1], owner[1:, 1:]
        anti_a, anti_b = owner[:-1, 1:], owner[1:, :-1]
        w_main = np.where((anti_a > 0) & (anti_a == anti_b), np.inf, w_main)
        w_anti = np.where((main_a > 0) & (main_a == main_b), np.inf, w_anti)
        crossing = np.isfinite(w_main) & np.isfinite(w_anti)
        keep_main = ~crossing | (w_main <= w_anti)
        w_main = np.where(keep_main, w_main, np.inf)
        w_anti = np.where(crossing & keep_main, np.inf, w_anti)
        candidates += [(u_main, v_main, w_main), (u_anti, v_anti, w_anti)]

    flat_owner = owner.ravel()
    best = {}
    for u, v, weight in candidates:
        found = np.isfinite(weight)
        for a, b, w in zip(u[found], v[found], weight[found]):
            pa, pb = int(flat_owner[a]), int(flat_owner[b])
            if pa > pb:
                pa, pb, a, b = pb, pa, b, a
            if (pa, pb) not in best or w < best[(pa, pb)][0]:
                best[(pa, pb)] = (float(w), int(a), int(b))

    links = []
    for (pa, pb), (w, a, b) in sorted(best.items()):
        path = _trace(a, predecessor, width)[::-1] + _trace(b, predecessor, width)
        links.append(
            Link(
                source=pa,
                target=pb,
                weight=w,
                path=tuple(path),
                length=_path_length(path, grid.resolution),
            )
        )

    voronoi = owner.astype(patch_map.labels.dtype)
    return Expansion(links=links, voronoi=voronoi, cost_distance=cost)
