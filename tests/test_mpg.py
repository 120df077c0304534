import jax.numpy as jnp
import numpy as np
import pytest
from grainscape import (
    build_mpg,
    DisconnectedGridError,
    InconsistentGraphError,
    label_patches,
    Link,
    minimum_planar_graph,
    ResistanceGrid,
)


@pytest.fixture
def line_grid():
    grid = ResistanceGrid(jnp.ones((1, 7)), neighbors=4)
    patch_map = label_patches(grid, focal=np.array([[1, 0, 1, 0, 1, 0, 1]], dtype=bool))
    return grid, patch_map


def test_minimum_planar_graph():
    focal = np.zeros((3, 3), dtype=bool)
    focal[[0, 0, 2, 2], [0, 2, 0, 2]] = True
    mpg = minimum_planar_graph(ResistanceGrid(jnp.ones((3, 3)), neighbors=4), focal=focal)

    assert mpg.nv == 4
    assert mpg.ne == 4
    assert mpg.isolated == ()
    assert mpg.neighbors_of(1) == [2, 3]
    assert mpg.link(2, 1).weight == 2.0
    assert mpg.node(3).area == 1
    with pytest.raises(KeyError):
        mpg.link(1, 4)

    A = mpg.get_adjacency_matrix().todense()
    assert A.shape == (4, 4)
    assert jnp.array_equal(A, A.T)
    assert A[0, 1] == 2.0
    assert A[0, 3] == 0.0


def test_build_keeps_cheapest_duplicate(line_grid):
    grid, patch_map = line_grid
    links = [
        Link(source=1, target=2, weight=5.0),
        Link(source=2, target=1, weight=3.0, path=((0, 2), (0, 1), (0, 0))),
        Link(source=2, target=3, weight=4.0),
        Link(source=3, target=4, weight=4.0),
    ]
    mpg = build_mpg(grid, patch_map, links)
    assert [l.pair for l in mpg.links] == [(1, 2), (2, 3), (3, 4)]
    link = mpg.link(1, 2)
    assert link.weight == 3.0
    assert link.path == ((0, 0), (0, 1), (0, 2))


@pytest.mark.parametrize(
    "link",
    [
        Link(source=1, target=1, weight=1.0),
        Link(source=1, target=9, weight=1.0),
        Link(source=1, target=2, weight=-1.0),
        Link(source=1, target=2, weight=float("nan")),
    ],
)
def test_build_rejects_inconsistent_links(line_grid, link):
    grid, patch_map = line_grid
    with pytest.raises(InconsistentGraphError):
        build_mpg(grid, patch_map, [link])


def test_isolated_patches_are_reported(line_grid):
    grid, patch_map = line_grid
    with pytest.warns(DisconnectedGridError, match=r"\[3, 4\]"):
        mpg = build_mpg(grid, patch_map, [Link(source=1, target=2, weight=1.0)])
    assert mpg.isolated == (3, 4)
    assert mpg.nv == 4


def test_barrier_yields_isolated_nodes():
    resistance = jnp.array(
        [
            [1.0, 1.0, jnp.inf, 1.0, 1.0],
            [1.0, 1.0, jnp.inf, 1.0, 1.0],
        ]
    )
    focal = np.zeros((2, 5), dtype=bool)
    focal[:, 0] = focal[:, 4] = True
    with pytest.warns(DisconnectedGridError):
        mpg = minimum_planar_graph(ResistanceGrid(resistance), focal=focal)
    assert mpg.ne == 0
    assert mpg.isolated == (1, 2)


def test_links_are_indexed_by_pair(line_grid):
    grid, patch_map = line_grid
    links = [
        Link(source=3, target=2, weight=4.0),
        Link(source=1, target=2, weight=5.0),
    ]
    with pytest.warns(DisconnectedGridError):
        mpg = build_mpg(grid, patch_map, links)
    assert list(mpg.by_pair) == [(1, 2), (2, 3)]
    assert mpg.by_pair[(2, 3)] is mpg.link(3, 2)
    assert mpg.adjacency == {1: (2,), 2: (1, 3), 3: (2,), 4: ()}
    assert mpg.neighbors_of(2) == [1, 3]
    assert mpg.neighbors_of(4) == []


def test_adjacency_matrix_uses_default_float(line_grid):
    grid, patch_map = line_grid
    links = [Link(source=k, target=k + 1, weight=0.1) for k in (1, 2, 3)]
    A = build_mpg(grid, patch_map, links).get_adjacency_matrix()
    assert A.data.dtype == jnp.asarray(0.1).dtype
