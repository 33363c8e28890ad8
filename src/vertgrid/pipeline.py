# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

import logging
import time

from vertgrid.grid import MasterVerticalGrid
from vertgrid.local import generate_local_grids
from vertgrid.refine import refine_boundaries
from vertgrid.smoothing import smooth
from vertgrid.validation import validate

logger = logging.getLogger(__name__)


class GenerationResult:
    """Everything one run produces.

    Attributes:
        master: the shared MasterVerticalGrid
        grids: frozen VerticalGridSet
        report: QualityReport
        smoothing: SmoothingResult
        skipped: node id -> reason for nodes without a grid
        elapsed_s: wall time of the run
    """

    def __init__(self, master, grids, report, smoothing, skipped, elapsed_s):
        self.master = master
        self.grids = grids
        self.report = report
        self.smoothing = smoothing
        self.skipped = skipped
        self.elapsed_s = elapsed_s


def generate(mesh, config, max_workers=1, progress=False):
    """Build the vertical grid of every mesh node.

    Stages: master grid -> local candidates -> neighbour smoothing ->
    optional boundary refinement -> validation. The output is identical for
    any max_workers.

    Args:
        mesh: Mesh with node depths and adjacency.
        config: StretchingConfig.
        max_workers: process count for the per-node stages (None = cpu count).
        progress: show tqdm progress bars if available.

    Returns:
        GenerationResult.
    """
    t0 = time.perf_counter()
    logger.info("Starting generation: %d nodes, N=%d, stretching=%s, strict=%s",
                mesh.n_nodes, config.levels, config.stretching, config.strict)

    master = MasterVerticalGrid(config)
    candidates, skipped = generate_local_grids(
        mesh, master, config, max_workers=max_workers, progress=progress
    )
    smoothing = smooth(candidates, mesh, master, config,
                       max_workers=max_workers, progress=progress)

    grids = smoothing.grids
    if config.boundary_refine:
        grids = refine_boundaries(grids, config)

    report = validate(grids, mesh, config, smoothing=smoothing, skipped=skipped)
    grids.freeze()

    elapsed = time.perf_counter() - t0
    logger.info("Generation complete: %d grids in %.2f s", len(grids), elapsed)
    return GenerationResult(master, grids, report, smoothing, skipped, elapsed)
