# SPDX-FileCopyrightText: 2024-present Victor Boussange <vic.boussange@gmail.com>
#
# SPDX-License-Identifier: MIT
import importlib.metadata

from .errors import (
    DisconnectedGridError as DisconnectedGridError,
    InconsistentGraphError as InconsistentGraphError,
    IndexOutOfRangeError as IndexOutOfRangeError,
    InvalidGridError as InvalidGridError,
)
from .grains import (
    build_grains as build_grains,
    Corridor as Corridor,
    corridor as corridor,
    Grain as Grain,
    GrainsOfConnectivity as GrainsOfConnectivity,
    select_grain as select_grain,
)
from .graph import (
    QUEEN_CONTIGUITY as QUEEN_CONTIGUITY,
    reclassify as reclassify,
    ResistanceGrid as ResistanceGrid,
    ROOK_CONTIGUITY as ROOK_CONTIGUITY,
)
from .lcp_distance import patch_distances as patch_distances
from .lcp_links import (
    Expansion as Expansion,
    Link as Link,
    shortest_paths as shortest_paths,
)
from .mpg import (
    build_mpg as build_mpg,
    minimum_planar_graph as minimum_planar_graph,
    MinimumPlanarGraph as MinimumPlanarGraph,
)
from .patches import label_patches as label_patches, Patch as Patch, PatchMap as PatchMap
from .tables import (
    component_table as component_table,
    link_table as link_table,
    node_table as node_table,
    threshold_table as threshold_table,
)
from .threshold import (
    Component as Component,
    sweep_cutoffs as sweep_cutoffs,
    threshold as threshold,
    threshold_sweep as threshold_sweep,
    ThresholdResult as ThresholdResult,
    ThresholdSweep as ThresholdSweep,
)
from .views import rasterize as rasterize, RasterView as RasterView


__version__ = importlib.metadata.version("grainscape")
