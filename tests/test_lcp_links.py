import math

import jax.numpy as jnp
import networkx as nx
import numpy as np
import pytest
from grainscape import label_patches, ResistanceGrid, shortest_paths


def corner_focal():
    focal = np.zeros((3, 3), dtype=bool)
    focal[[0, 0, 2, 2], [0, 2, 0, 2]] = True
    return focal


@pytest.fixture
def rook_expansion():
    grid = ResistanceGrid(jnp.ones((3, 3)), neighbors=4)
    patch_map = label_patches(grid, focal=corner_focal())
    return shortest_paths(grid, patch_map)


def test_corner_patches_rook(rook_expansion):
    pairs = [l.pair for l in rook_expansion.links]
    assert pairs == [(1, 2), (1, 3), (2, 4), (3, 4)]
    assert all(l.weight == 2.0 for l in rook_expansion.links)


def test_voronoi_and_cost_distance(rook_expansion):
    expected_voronoi = np.array([[1, 1, 2], [1, 1, 2], [3, 3, 4]])
    expected_cost = np.array([[0.0, 1.0, 0.0], [1.0, 2.0, 1.0], [0.0, 1.0, 0.0]])
    assert np.array_equal(rook_expansion.voronoi, expected_voronoi)
    assert np.allclose(rook_expansion.cost_distance, expected_cost)


def test_link_path(rook_expansion):
    link = rook_expansion.links[0]
    assert link.path == ((0, 0), (0, 1), (0, 2))
    assert link.length == 2.0


def test_corner_patches_queen():
    grid = ResistanceGrid(jnp.ones((3, 3)), neighbors=8)
    patch_map = label_patches(grid, focal=corner_focal())
    assert patch_map.n_patches == 4
    links = shortest_paths(grid, patch_map).links

    # of the two crossing diagonals through the centre, only 1-4 is kept
    pairs = [l.pair for l in links]
    assert pairs == [(1, 2), (1, 3), (1, 4), (2, 4), (3, 4)]
    weights = {l.pair: l.weight for l in links}
    assert weights[(1, 2)] == pytest.approx(2.0)
    assert weights[(1, 4)] == pytest.approx(2 * math.sqrt(2))

    G = nx.Graph(pairs)
    assert nx.is_connected(G)
    assert nx.check_planarity(G)[0]


def test_resolution_scales_length_not_weight():
    grid = ResistanceGrid(jnp.ones((3, 3)), resolution=30.0, neighbors=4)
    links = shortest_paths(grid, label_patches(grid, focal=corner_focal())).links
    assert links[0].weight == 2.0
    assert links[0].length == 60.0


def test_weight_is_cumulative_resistance():
    resistance = jnp.array([[1.0, 3.0, 5.0, 1.0]])
    grid = ResistanceGrid(resistance, neighbors=4)
    patch_map = label_patches(grid, focal=lambda r: r == 1)
    (link,) = shortest_paths(grid, patch_map).links
    # (1 + 3) / 2 + (3 + 5) / 2 + (5 + 1) / 2
    assert link.weight == pytest.approx(9.0)
    assert link.path == ((0, 0), (0, 1), (0, 2), (0, 3))


def test_cheapest_route_is_chosen():
    resistance = jnp.array(
        [
            [1.0, 10.0, 1.0],
            [2.0, 2.0, 2.0],
        ]
    )
    grid = ResistanceGrid(resistance, neighbors=4)
    focal = np.array([[1, 0, 1], [0, 0, 0]], dtype=bool)
    (link,) = shortest_paths(grid, label_patches(grid, focal=focal)).links
    # straight across costs 11, around the bottom 1.5 + 2 + 2 + 1.5 = 7
    assert link.weight == pytest.approx(7.0)
    assert link.path[0] == (0, 0) and link.path[-1] == (0, 2)


def test_impassable_barrier():
    resistance = jnp.array(
        [
            [1.0, 1.0, jnp.inf, 1.0, 1.0],
            [1.0, 1.0, jnp.inf, 1.0, 1.0],
        ]
    )
    grid = ResistanceGrid(resistance)
    focal = np.zeros((2, 5), dtype=bool)
    focal[:, 0] = focal[:, 4] = True
    expansion = shortest_paths(grid, label_patches(grid, focal=focal))
    assert expansion.links == []
    assert np.all(expansion.voronoi[:, 2] == 0)
    assert np.all(np.isinf(expansion.cost_distance[:, 2]))


def test_rook_links_are_planar():
    rng = np.random.default_rng(42)
    resistance = rng.uniform(1.0, 10.0, size=(30, 30))
    grid = ResistanceGrid(resistance, neighbors=4)
    patch_map = label_patches(grid, focal=lambda r: r < 2.0)
    links = shortest_paths(grid, patch_map).links

    G = nx.Graph()
    G.add_nodes_from(p.id for p in patch_map.patches)
    G.add_edges_from(l.pair for l in links)
    assert nx.check_planarity(G)[0]
    assert nx.is_connected(G)
    assert all(l.source < l.target for l in links)
    assert all(l.weight >= 0 for l in links)


@pytest.mark.parametrize("neighbors", [4, 8])
@pytest.mark.parametrize("seed", range(10))
def test_links_are_planar(neighbors, seed):
    rng = np.random.default_rng(seed)
    resistance = rng.uniform(1.0, 10.0, size=(30, 30))
    grid = ResistanceGrid(resistance, neighbors=neighbors)
    patch_map = label_patches(grid, focal=lambda r: r < 1.6)
    links = shortest_paths(grid, patch_map).links

    G = nx.Graph()
    G.add_nodes_from(p.id for p in patch_map.patches)
    G.add_edges_from(l.pair for l in links)
    assert G.number_of_edges() == len(links)
    assert nx.check_planarity(G)[0]


def test_queen_links_on_small_grid_are_planar():
    # 8-connected patches threading diagonally between their neighbours
    rng = np.random.default_rng(1855)
    resistance = rng.uniform(1.0, 10.0, size=(10, 10))
    grid = ResistanceGrid(resistance, neighbors=8)
    patch_map = label_patches(grid, focal=lambda r: r < 1.6)
    links = shortest_paths(grid, patch_map).links

    G = nx.Graph()
    G.add_nodes_from(p.id for p in patch_map.patches)
    G.add_edges_from(l.pair for l in links)
    assert nx.check_planarity(G)[0]
