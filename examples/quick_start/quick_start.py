import os
os.environ["JAX_PLATFORM_NAME"] = "cpu"

import numpy as np
import matplotlib.pyplot as plt

from grainscape import (
    RasterView,
    ResistanceGrid,
    build_grains,
    corridor,
    minimum_planar_graph,
    rasterize,
    select_grain,
    threshold_table,
)

# synthetic landscape: habitat blobs (resistance 1) in a rough matrix
rng = np.random.default_rng(0)
resistance = rng.uniform(5.0, 50.0, size=(80, 80))
for _ in range(12):
    i, j = rng.integers(5, 75, size=2)
    resistance[i - 3 : i + 3, j - 3 : j + 3] = 1.0
resistance[30:50, 38:42] = np.inf  # impassable road

grid = ResistanceGrid(resistance, resolution=30.0, neighbors=8)
mpg = minimum_planar_graph(grid, focal=lambda r: r == 1)
print(mpg)

grains = build_grains(mpg, 10)
print(threshold_table(grains.sweep))

fig, axs = plt.subplots(1, 3, figsize=(12, 4))
axs[0].imshow(rasterize(RasterView.PATCHES, mpg), cmap="tab20")
axs[0].set_title("Patches")
axs[1].imshow(np.ma.masked_equal(rasterize(RasterView.LINKS, mpg), 0), cmap="magma")
axs[1].set_title("Links")
grain = select_grain(grains, 5)
axs[2].imshow(rasterize(RasterView.TESSELLATION, mpg, grain), cmap="tab20")
axs[2].set_title(f"Grain 5 (cutoff {grain.cutoff:.1f})")
for ax in axs:
    ax.axis("off")
plt.tight_layout()
plt.show()

route = corridor(grain, (0, 0), (79, 79))
print(route.components, route.weight)
