from typing import Optional

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
from jax import Array, lax, ops
from jax.experimental.sparse import BCOO

from .mpg import MinimumPlanarGraph


@eqx.filter_jit
def bellman_ford(A: BCOO, source: int) -> Array:
    """
    Shortest path costs from `source` to every node of the graph with cost
    matrix `A` (entries are link costs, `inf` for disabled links).
    Use `bellman_ford_multi_sources` for several sources at once.
    """
    N = A.shape[0]
    D = jnp.full(N, jnp.inf, dtype=A.data.dtype)
    D = D.at[source].set(0.0)

    W_indices = A.indices
    W_data = A.data

    def body_fun(D: Array, _) -> tuple[Array, None]:
        D_u_plus_w = D[W_indices[:, 0]] + W_data
        D_v_min = ops.segment_min(D_u_plus_w, W_indices[:, 1], num_segments=N)
        return jnp.minimum(D, D_v_min), None

    D, _ = lax.scan(body_fun, D, None, length=N - 1)
    return D


bellman_ford_multi_sources = jax.vmap(bellman_ford, in_axes=(None, 0))


def patch_distances(
    graph: MinimumPlanarGraph, cutoff: Optional[float] = None
) -> np.ndarray:
    """Least-cost distances between every pair of patches, travelling along
    the links of the graph.

    **Arguments:**

    - `graph`: the minimum planar graph.
    - `cutoff`: if given, only links with `weight < cutoff` are used.

    **Returns:**

    Array of shape `(nv, nv)` indexed by node position, `inf` for patches
    that are not connected.

    !!! example

        ```python
        D = patch_distances(mpg)
        D[0, 2]  # distance between patches 1 and 3
        ```
    """
    A = graph.get_adjacency_matrix()
    if cutoff is not None:
        A = BCOO((jnp.where(A.data < cutoff, A.data, jnp.inf), A.indices), shape=A.shape)
    distances = bellman_ford_multi_sources(A, jnp.arange(graph.nv))
    return np.asarray(distances)
