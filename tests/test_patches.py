import jax.numpy as jnp
import numpy as np
import pytest
from grainscape import InvalidGridError, label_patches, ResistanceGrid


def test_default_focal_cells():
    resistance = jnp.array([[1.0, 5.0], [5.0, 1.0]])
    assert label_patches(ResistanceGrid(resistance, neighbors=4)).n_patches == 2
    assert label_patches(ResistanceGrid(resistance, neighbors=8)).n_patches == 1


def test_patch_attributes():
    focal = np.zeros((5, 5), dtype=bool)
    focal[1:4, 1:4] = True
    grid = ResistanceGrid(jnp.ones((5, 5)), neighbors=4)
    patch_map = label_patches(grid, focal=focal)

    assert patch_map.n_patches == 1
    patch = patch_map.patches[0]
    assert patch.id == 1
    assert patch.area == 9
    assert patch.core_area == 1
    assert patch.centroid == (2.0, 2.0)
    assert np.array_equal(patch_map.labels, focal.astype(int))


def test_core_area_at_raster_edge():
    grid = ResistanceGrid(jnp.ones((4, 4)))
    patch_map = label_patches(grid, focal=np.ones((4, 4), dtype=bool))
    # cells on the edge of the raster are not core cells
    assert patch_map.patches[0].core_area == 4
    assert patch_map.core_mask.sum() == 4


def test_single_cell_patch_has_no_core():
    focal = np.zeros((3, 3), dtype=bool)
    focal[1, 1] = True
    patch_map = label_patches(ResistanceGrid(jnp.ones((3, 3))), focal=focal)
    assert patch_map.patches[0].area == 1
    assert patch_map.patches[0].core_area == 0


def test_ids_in_raster_scan_order():
    focal = np.array(
        [
            [0, 0, 1, 1],
            [1, 0, 0, 0],
            [1, 0, 1, 0],
        ],
        dtype=bool,
    )
    patch_map = label_patches(ResistanceGrid(jnp.ones((3, 4)), neighbors=4), focal=focal)
    assert patch_map.labels[0, 2] == 1
    assert patch_map.labels[1, 0] == 2
    assert patch_map.labels[2, 2] == 3
    assert [p.area for p in patch_map.patches] == [2, 2, 1]


def test_focal_predicate_and_min_area():
    resistance = jnp.array(
        [
            [1.0, 9.0, 9.0, 1.0],
            [9.0, 9.0, 9.0, 1.0],
            [1.0, 1.0, 9.0, 9.0],
        ]
    )
    grid = ResistanceGrid(resistance, neighbors=4)
    patch_map = label_patches(grid, focal=lambda r: r < 5)
    assert patch_map.n_patches == 3

    filtered = label_patches(grid, focal=lambda r: r < 5, min_area=2)
    assert filtered.n_patches == 2
    assert [p.id for p in filtered.patches] == [1, 2]
    assert filtered.labels[0, 0] == 0
    assert filtered.labels[0, 3] == 1
    assert filtered.labels[2, 0] == 2

    with pytest.raises(InvalidGridError):
        label_patches(grid, focal=lambda r: r < 5, min_area=3)


def test_labelling_is_idempotent():
    rng = np.random.default_rng(0)
    resistance = rng.uniform(size=(20, 20))
    grid = ResistanceGrid(resistance)
    first = label_patches(grid, focal=lambda r: r < 0.3)
    second = label_patches(grid, focal=lambda r: r < 0.3)
    assert np.array_equal(first.labels, second.labels)
    assert [p.area for p in first.patches] == [p.area for p in second.patches]

    # the number of patches does not depend on how cells are scanned
    transposed = label_patches(ResistanceGrid(resistance.T), focal=lambda r: r < 0.3)
    assert transposed.n_patches == first.n_patches
    assert sorted(p.area for p in transposed.patches) == sorted(p.area for p in first.patches)


def test_invalid_focal_cells():
    grid = ResistanceGrid(jnp.array([[1.0, jnp.inf], [1.0, 1.0]]))
    with pytest.raises(InvalidGridError, match="No focal cells"):
        label_patches(grid, focal=np.zeros((2, 2), dtype=bool))
    with pytest.raises(InvalidGridError, match="impassable"):
        label_patches(grid, focal=np.ones((2, 2), dtype=bool))
    with pytest.raises(InvalidGridError, match="shape"):
        label_patches(grid, focal=np.ones((3, 2), dtype=bool))
