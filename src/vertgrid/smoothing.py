# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Neighbour smoothing of level counts over the mesh adjacency graph.

Bounded Jacobi relaxation: every pass reads one snapshot of level counts
and grids and writes a freshly allocated next snapshot, so the result does
not depend on node order or on the number of workers.
"""

import logging

import numpy as np
from numba import njit

from vertgrid.errors import ConvergenceError
from vertgrid.local import LocalVerticalGrid, VerticalGridSet, merge_thinnest, resample
from vertgrid.mesh import build_adjacency
from vertgrid.parallel import chunk_indices, map_chunks

logger = logging.getLogger(__name__)


@njit(cache=True)
def relax_moves(counts, caps, indptr, indices, max_jump):
    """One Jacobi pass: the level-count move (-1, 0, +1) of every node.

    A node above its lowest neighbour + max_jump drops one level. Otherwise
    a node below its highest neighbour - max_jump gains one level, if its
    cap allows and the gain keeps it within max_jump of its lowest neighbour.
    """
    n = counts.size
    moves = np.zeros(n, dtype=np.int64)
    for i in range(n):
        start = indptr[i]
        stop = indptr[i + 1]
        if stop == start:
            continue
        lo = counts[indices[start]]
        hi = lo
        for p in range(start + 1, stop):
            c = counts[indices[p]]
            if c < lo:
                lo = c
            if c > hi:
                hi = c
        c = counts[i]
        if c > lo + max_jump and c > 2:
            moves[i] = -1
        elif c < hi - max_jump and c < caps[i] and c + 1 <= lo + max_jump:
            moves[i] = 1
    return moves


def grid_edges(grids, mesh):
    """Mesh edges between nodes that have grids, as grid-set positions."""
    position = {node_id: k for k, node_id in enumerate(grids.node_ids())}
    mapping = np.array([position.get(int(i), -1) for i in mesh.ids], dtype=np.int64)
    if mesh.edges.size == 0:
        return np.zeros((0, 2), dtype=np.int64)
    edges = mapping[mesh.edges]
    return edges[np.all(edges >= 0, axis=1)]


def edge_jumps(counts, edges):
    return np.abs(counts[edges[:, 0]] - counts[edges[:, 1]])


class SmoothingResult:
    """Outcome of neighbour smoothing.

    Attributes:
        grids: smoothed VerticalGridSet
        iterations: number of full passes executed
        converged: True when no edge exceeds max_jump
        violations: list of (id_a, id_b, jump) for edges still over max_jump
        unresolved: sorted ids of nodes touching a violating edge
    """

    def __init__(self, grids, iterations, converged, violations):
        self.grids = grids
        self.iterations = iterations
        self.converged = converged
        self.violations = violations
        self.unresolved = sorted({a for a, _, _ in violations} | {b for _, b, _ in violations})


def _apply_chunk(args):
    items, master, config = args
    out = []
    for z, depth, count, move, cap in items:
        if move < 0:
            out.append((merge_thinnest(z), cap))
            continue
        z_new = resample(master, depth, count + 1, config)
        if z_new.size <= count:
            # shaving gives the extra level back: this node cannot grow
            out.append((z, count))
        else:
            out.append((z_new, cap))
    return out


def smooth(grids, mesh, master, config, max_workers=1, progress=False):
    """Relax level counts until every edge is within config.max_jump.

    Args:
        grids: candidate VerticalGridSet (not modified).
        mesh: Mesh providing the adjacency.
        master: MasterVerticalGrid used to re-sample grown nodes.
        config: StretchingConfig.
        max_workers: processes used to rebuild changed nodes.

    Returns:
        SmoothingResult. With config.strict, non-convergence raises
        ConvergenceError instead.
    """
    ids = grids.node_ids()
    edges = grid_edges(grids, mesh)
    n = len(ids)
    indptr, indices = build_adjacency(n, edges)

    depths = [g.depth for g in grids.values()]
    zs = [g.z for g in grids.values()]
    counts = np.array([z.size for z in zs], dtype=np.int64)
    caps = counts.copy()

    logger.info("Smoothing: %d nodes, %d edges, max_jump=%d, max_iterations=%d",
                n, len(edges), config.max_jump, config.max_iterations)

    iterations = 0
    for _ in range(config.max_iterations):
        moves = relax_moves(counts, caps, indptr, indices, config.max_jump)
        changed = np.flatnonzero(moves)
        if changed.size == 0:
            break

        items = [(zs[i], depths[i], int(counts[i]), int(moves[i]), int(caps[i]))
                 for i in changed]
        chunks = [(items[sl], master, config)
                  for sl in chunk_indices(len(items), max_workers)]
        results = map_chunks(_apply_chunk, chunks, max_workers=max_workers,
                             progress=progress, desc=f"Smoothing pass {iterations + 1}")

        next_zs = list(zs)
        next_counts = counts.copy()
        next_caps = caps.copy()
        n_changed = 0
        for i, (z_new, cap_new) in zip(changed, (r for c in results for r in c)):
            next_caps[i] = cap_new
            if z_new.size != counts[i]:
                next_zs[i] = z_new
                next_counts[i] = z_new.size
                n_changed += 1

        zs, counts, caps = next_zs, next_counts, next_caps
        iterations += 1
        logger.debug("Pass %d: %d node(s) changed", iterations, n_changed)
        if n_changed == 0:
            break

    jumps = edge_jumps(counts, edges) if len(edges) else np.zeros(0, dtype=np.int64)
    bad = np.flatnonzero(jumps > config.max_jump)
    violations = [(ids[edges[k, 0]], ids[edges[k, 1]], int(jumps[k])) for k in bad]
    converged = not violations

    smoothed = VerticalGridSet()
    for node_id, depth, z, grid in zip(ids, depths, zs, grids.values()):
        if z is grid.z:
            smoothed.add(LocalVerticalGrid(node_id, depth, z.copy(), degraded=grid.degraded))
        else:
            degraded = bool(np.any(-np.diff(z) < config.min_thickness))
            smoothed.add(LocalVerticalGrid(node_id, depth, z, degraded=degraded))

    result = SmoothingResult(smoothed, iterations, converged, violations)
    if converged:
        logger.info("Smoothing converged after %d pass(es)", iterations)
    else:
        logger.warning(
            "Smoothing did not converge after %d pass(es): %d edge(s) over max_jump, "
            "%d node(s) unresolved", iterations, len(violations), len(result.unresolved),
        )
        if config.strict:
            raise ConvergenceError(
                f"Smoothing exceeded max_iterations={config.max_iterations}; "
                f"unresolved nodes {result.unresolved}, edges "
                + ", ".join(f"{a}-{b} (jump {j})" for a, b, j in violations),
                nodes=result.unresolved,
                edges=violations,
            )
    return result
