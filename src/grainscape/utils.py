import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.experimental.sparse import BCOO


def link_adjacency(
    sources: Array, targets: Array, active: Array, num_nodes: int
) -> BCOO:
    """Upper-triangular adjacency of a link list, one entry per link.

    Inactive links are kept as explicit zeros, so that adjacencies of the same
    graph at different thresholds share the same sparsity structure.

    !!! example

        ```python
        A = link_adjacency(jnp.array([0, 1]), jnp.array([1, 2]), jnp.array([True, False]), 3)
        # A.todense() = [[0, 1, 0], [0, 0, 0], [0, 0, 0]]
        ```
    """
    indices = jnp.stack(
        [jnp.asarray(sources, dtype=jnp.int32), jnp.asarray(targets, dtype=jnp.int32)],
        axis=1,
    ).reshape(-1, 2)
    data = jnp.asarray(active, dtype=jnp.float32).reshape(-1)
    return BCOO((data, indices), shape=(num_nodes, num_nodes))


@eqx.filter_jit
def connected_component_labels(A: BCOO) -> Array:
    """Label connected components of the undirected graph with adjacency `A`.

    Each node ends up with the smallest node index of its component. Entries
    of `A` equal to zero are ignored.

    Works on a forest of parent pointers, each node pointing to a node with a
    smaller index. Every round hooks the larger root of each edge under the
    smaller one, then shortcuts pointers until every node points to its root;
    rounds stop as soon as no label changes. Each round costs
    O(nodes + links).
    """
    rows = A.indices[:, 0]
    cols = A.indices[:, 1]
    n = A.shape[0]
    initial_labels = jnp.arange(n, dtype=rows.dtype)
    if rows.shape[0] == 0:
        return initial_labels
    # disabled links become self loops, which never hook anything
    cols = jnp.where(A.data != 0, cols, rows)

    def shortcut(labels):
        return jax.lax.while_loop(
            lambda l: jnp.any(l[l] != l), lambda l: l[l], labels
        )

    def hook(state):
        labels, _ = state
        lu = labels[rows]
        lv = labels[cols]
        updated = labels.at[jnp.maximum(lu, lv)].min(jnp.minimum(lu, lv))
        updated = shortcut(updated)
        return updated, jnp.any(updated != labels)

    labels, _ = jax.lax.while_loop(
        lambda state: state[1], hook, (initial_labels, jnp.array(True))
    )
    return labels


def consecutive_labels(labels: Array) -> np.ndarray:
    """Maps arbitrary component labels to `1..k`, ordered by the smallest
    label value, so that components are numbered by their first node."""
    _, inverse = np.unique(np.asarray(labels), return_inverse=True)
    return inverse.reshape(-1) + 1
