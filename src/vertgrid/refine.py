# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Near-surface and near-bottom refinement of finished vertical grids.

Refinement runs after smoothing. It inserts levels by halving the outermost
layer, so it never changes a grid's jump-constraint level count (nlevels).
"""

import logging

import numpy as np

from vertgrid.local import LocalVerticalGrid, VerticalGridSet

logger = logging.getLogger(__name__)


def refine_levels(z, target, dz_min, max_levels, surface=True, bottom=True):
    """Halve the outermost layers of z until they are no thicker than target.

    At most max_levels levels are inserted per boundary, and a split only
    happens when both halves stay >= dz_min.

    Returns:
        (z_refined, n_surface, n_bottom)
    """
    levels = list(np.asarray(z, dtype=float))
    n_surface = 0
    n_bottom = 0

    if surface:
        while n_surface < max_levels:
            dz = levels[0] - levels[1]
            if dz <= target or 0.5 * dz < dz_min:
                break
            levels.insert(1, levels[0] - 0.5 * dz)
            n_surface += 1

    if bottom:
        while n_bottom < max_levels:
            dz = levels[-2] - levels[-1]
            if dz <= target or 0.5 * dz < dz_min:
                break
            levels.insert(len(levels) - 1, levels[-1] + 0.5 * dz)
            n_bottom += 1

    return np.array(levels), n_surface, n_bottom


def refine_boundaries(grids, config):
    """Boundary-refined copy of a VerticalGridSet."""
    refined = VerticalGridSet()
    inserted = 0
    for grid in grids.values():
        z, n_top, n_bot = refine_levels(
            grid.z,
            config.boundary_thickness,
            config.min_thickness,
            config.boundary_max_levels,
            surface=config.refine_surface,
            bottom=config.refine_bottom,
        )
        inserted += n_top + n_bot
        refined.add(LocalVerticalGrid(grid.node_id, grid.depth, z,
                                      nlevels=grid.nlevels, degraded=grid.degraded))

    logger.info("Boundary refinement inserted %d level(s) over %d node(s)",
                inserted, len(refined))
    return refined
