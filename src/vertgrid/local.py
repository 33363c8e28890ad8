# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Per-node local vertical grids derived from the master grid."""

import logging
import math

import numpy as np
from numba import njit

from vertgrid.errors import InputError
from vertgrid.parallel import chunk_indices, map_chunks

logger = logging.getLogger(__name__)

# Level count of the minimal viable grid (surface + bottom, one layer).
MIN_LEVELS = 2


# ---------------------------------------------------------------------------
# Shaving kernels
# ---------------------------------------------------------------------------

@njit(cache=True)
def merge_layer(z, k):
    """Merge layer k (between z[k] and z[k+1]) with its neighbour.

    The lower interface is dropped, except for the bottom layer where the
    upper interface goes instead, so z[0] and z[-1] always survive.
    """
    drop = k + 1
    if drop == z.size - 1:
        drop = k
    return np.concatenate((z[:drop], z[drop + 1:]))


@njit(cache=True)
def shave_levels(z, dz_min):
    """Merge layers thinner than dz_min, top to bottom, down to 2 levels."""
    out = z.copy()
    while out.size > 2:
        k = -1
        for i in range(out.size - 1):
            if out[i] - out[i + 1] < dz_min:
                k = i
                break
        if k < 0:
            break
        out = merge_layer(out, k)
    return out


@njit(cache=True)
def merge_thinnest(z):
    """Drop one level by merging the thinnest layer (topmost on ties)."""
    k = 0
    thinnest = z[0] - z[1]
    for i in range(1, z.size - 1):
        dz = z[i] - z[i + 1]
        if dz < thinnest:
            thinnest = dz
            k = i
    return merge_layer(z, k)


def shave(z, dz_min):
    return shave_levels(np.ascontiguousarray(z, dtype=np.float64), float(dz_min))


# ---------------------------------------------------------------------------
# Vertical transform
# ---------------------------------------------------------------------------

def sz_elevations(sigma, cs, depth, h_c, h_s):
    """Map dimensionless levels to absolute elevations for a node.

    With h = min(depth, h_s):
        z = h_c * sigma + (h - h_c) * cs + (depth - h) * sigma

    For h_c < depth <= h_s this is the SCHISM S transform. Deeper than h_s
    the stretched upper part keeps the shape it has at h_s and the extra
    depth is spread terrain-following. z[0] = 0 and z[-1] = -depth.
    """
    sigma = np.asarray(sigma, dtype=float)
    cs = np.asarray(cs, dtype=float)
    h = min(depth, h_s)
    z = h_c * sigma + (h - h_c) * cs + (depth - h) * sigma
    z[0] = 0.0
    z[-1] = -depth
    return z


# ---------------------------------------------------------------------------
# Grid containers
# ---------------------------------------------------------------------------

class LocalVerticalGrid:
    """Vertical grid of one mesh node.

    Attributes:
        node_id: identifier of the owning node (a reference, not ownership)
        depth: node depth (positive down)
        z: absolute elevations, strictly decreasing from 0 to -depth
        nlevels: level count used for the neighbour jump constraint; equals
            len(z) unless boundary refinement inserted levels
        degraded: some layer is thinner than dz_min and could not be shaved
    """

    def __init__(self, node_id, depth, z, nlevels=None, degraded=False):
        self.node_id = int(node_id)
        self.depth = float(depth)
        self.z = np.asarray(z, dtype=float)
        self.nlevels = int(self.z.size if nlevels is None else nlevels)
        self.degraded = bool(degraded)

    def __repr__(self):
        return (f"LocalVerticalGrid(node_id={self.node_id}, depth={self.depth}, "
                f"nlevels={self.nlevels}, degraded={self.degraded})")

    @property
    def thickness(self):
        return -np.diff(self.z)

    @property
    def min_thickness(self):
        return float(self.thickness.min())

    @property
    def sigma(self):
        return self.z / self.depth

    def freeze(self):
        self.z.flags.writeable = False
        return self

    def isclose(self, other, tol=1e-9):
        return (
            self.node_id == other.node_id
            and self.nlevels == other.nlevels
            and self.degraded == other.degraded
            and math.isclose(self.depth, other.depth, rel_tol=0.0, abs_tol=tol)
            and self.z.shape == other.z.shape
            and bool(np.allclose(self.z, other.z, rtol=0.0, atol=tol))
        )


class VerticalGridSet:
    """Ordered mapping node id -> LocalVerticalGrid for one run."""

    def __init__(self, grids=()):
        self._grids = {}
        for grid in grids:
            self.add(grid)

    def add(self, grid):
        if grid.node_id in self._grids:
            raise InputError(f"Duplicate vertical grid for node {grid.node_id}")
        self._grids[grid.node_id] = grid

    def __getitem__(self, node_id):
        return self._grids[node_id]

    def __contains__(self, node_id):
        return node_id in self._grids

    def __iter__(self):
        return iter(self._grids)

    def __len__(self):
        return len(self._grids)

    def node_ids(self):
        return list(self._grids)

    def values(self):
        return self._grids.values()

    def items(self):
        return self._grids.items()

    def counts(self):
        """Jump-constraint level counts in insertion order."""
        return np.array([g.nlevels for g in self._grids.values()], dtype=np.int64)

    def freeze(self):
        for grid in self._grids.values():
            grid.freeze()
        return self

    def isclose(self, other, tol=1e-9):
        if self.node_ids() != other.node_ids():
            return False
        return all(g.isclose(other[i], tol) for i, g in self._grids.items())


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def resample(master, depth, count, config):
    """Grid from `count` evenly picked master levels, mapped and shaved."""
    idx = master.sample_indices(count)
    z = sz_elevations(master.sigma[idx], master.levels[idx], depth,
                      config.h_c, config.h_s)
    return shave(z, config.min_thickness)


def check_depth(node_id, depth):
    if not math.isfinite(depth):
        raise InputError(f"Node {node_id}: depth is not finite ({depth})")
    if depth <= 0:
        raise InputError(f"Node {node_id}: non-positive depth {depth} (land or invalid)")


def is_shallow(depth, config):
    return depth <= config.h_c


def build_local_grid(node_id, depth, master, config):
    """Candidate vertical grid of a single node.

    Shallow nodes (depth <= h_c) get the minimal two-level grid; deeper
    nodes map the full master grid and shave sub-minimum layers.
    """
    depth = float(depth)
    check_depth(node_id, depth)

    if is_shallow(depth, config):
        z = np.array([0.0, -depth])
    else:
        z = resample(master, depth, master.N, config)

    degraded = bool(np.any(-np.diff(z) < config.min_thickness))
    return LocalVerticalGrid(node_id, depth, z, degraded=degraded)


def _build_chunk(args):
    ids, depths, master, config = args
    results = []
    for node_id, depth in zip(ids, depths):
        try:
            results.append(build_local_grid(node_id, depth, master, config))
        except InputError as exc:
            results.append(str(exc))
    return results


def generate_local_grids(mesh, master, config, max_workers=1, progress=False):
    """Candidate grids for every node of the mesh.

    Nodes with an unusable depth are skipped and reported; the run only
    fails when no node yields a grid.

    Returns:
        (grids, skipped): a VerticalGridSet in mesh order and a dict
        node id -> reason for the skipped nodes.
    """
    n = mesh.n_nodes
    logger.info("Generating local grids: %d nodes, N=%d", n, master.N)

    chunks = [
        (mesh.ids[sl].tolist(), mesh.depth[sl].tolist(), master, config)
        for sl in chunk_indices(n, max_workers)
    ]
    chunk_results = map_chunks(_build_chunk, chunks, max_workers=max_workers,
                               progress=progress, desc="Local grids")

    grids = VerticalGridSet()
    skipped = {}
    for node_id, result in zip(mesh.ids.tolist(), (r for c in chunk_results for r in c)):
        if isinstance(result, str):
            skipped[node_id] = result
        else:
            grids.add(result)

    if skipped:
        logger.warning("Skipped %d node(s) with invalid depth", len(skipped))
        for node_id, reason in skipped.items():
            logger.debug("Skipped: %s", reason)
    if len(grids) == 0:
        details = "; ".join(skipped.values()) or "mesh has no nodes"
        raise InputError(f"No node produced a vertical grid: {details}")

    degraded = [g.node_id for g in grids.values() if g.degraded]
    if degraded:
        logger.warning("%d node(s) degraded to sub-minimum layers", len(degraded))

    logger.info("Local grids done: %d built, %d skipped", len(grids), len(skipped))
    return grids, skipped
