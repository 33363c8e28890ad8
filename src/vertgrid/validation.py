# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

import logging

import numpy as np

from vertgrid.errors import QualityViolation
from vertgrid.smoothing import edge_jumps, grid_edges

logger = logging.getLogger(__name__)


def layer_count_stats(counts):
    """Distribution statistics of per-node level counts."""
    counts = np.asarray(counts, dtype=float)
    if counts.size == 0:
        return {"min": 0, "max": 0, "mean": 0.0, "std": 0.0, "skewness": 0.0,
                "histogram": {}}
    mean = counts.mean()
    std = counts.std()
    skewness = float(np.mean((counts - mean) ** 3) / std**3) if std > 0 else 0.0
    values, freq = np.unique(counts.astype(np.int64), return_counts=True)
    return {
        "min": int(counts.min()),
        "max": int(counts.max()),
        "mean": float(mean),
        "std": float(std),
        "skewness": skewness,
        "histogram": {int(v): int(f) for v, f in zip(values, freq)},
    }


class QualityReport:
    """Quality diagnostics of a finished vertical grid set.

    Attributes:
        node_ids: node ids in grid-set order
        min_thickness: minimum layer thickness per node, shape (n,)
        edges: (id_a, id_b) pairs, one per mesh edge between gridded nodes
        edge_jumps: level-count difference per edge, shape (m,)
        violations: (id_a, id_b, jump) for edges over max_jump
        unresolved: ids of nodes touching a violating edge (non-converged)
        degraded: ids of nodes with sub-minimum layers
        skipped: node id -> reason for nodes without a grid
        iterations, converged: smoothing outcome (None when not smoothed)
        stats: layer-count distribution (see layer_count_stats)
    """

    def __init__(self, node_ids, min_thickness, edges, edge_jumps, violations,
                 degraded, skipped, iterations, converged, stats):
        self.node_ids = node_ids
        self.min_thickness = min_thickness
        self.edges = edges
        self.edge_jumps = edge_jumps
        self.violations = violations
        self.unresolved = sorted({a for a, _, _ in violations} | {b for _, b, _ in violations})
        self.degraded = degraded
        self.skipped = skipped
        self.iterations = iterations
        self.converged = converged
        self.stats = stats

    @property
    def warnings(self):
        messages = []
        if self.violations:
            messages.append(
                f"{len(self.violations)} edge(s) exceed max_jump; unresolved nodes: "
                f"{self.unresolved}"
            )
        if self.degraded:
            messages.append(f"{len(self.degraded)} degraded node(s): {self.degraded}")
        if self.skipped:
            messages.append(f"{len(self.skipped)} skipped node(s): {sorted(self.skipped)}")
        return messages

    def to_dict(self):
        return {
            "n_nodes": len(self.node_ids),
            "n_edges": len(self.edges),
            "converged": self.converged,
            "iterations": self.iterations,
            "max_edge_jump": int(self.edge_jumps.max()) if len(self.edge_jumps) else 0,
            "min_thickness": float(self.min_thickness.min()) if len(self.min_thickness) else None,
            "violations": [list(v) for v in self.violations],
            "unresolved": self.unresolved,
            "degraded": self.degraded,
            "skipped": {str(k): v for k, v in self.skipped.items()},
            "layer_counts": self.stats,
        }


def _grid_problems(grid, config):
    problems = []
    tol = config.tolerance
    z = grid.z
    if z.size < 2:
        return [f"node {grid.node_id}: fewer than 2 levels"]
    dz = -np.diff(z)
    if np.any(dz <= 0):
        k = int(np.argmin(dz))
        problems.append(
            f"node {grid.node_id}: not strictly decreasing at level {k} "
            f"({z[k]} -> {z[k + 1]})"
        )
    if abs(z[0]) > tol:
        problems.append(f"node {grid.node_id}: surface at {z[0]}, expected 0")
    if abs(z[-1] + grid.depth) > tol:
        problems.append(
            f"node {grid.node_id}: bottom at {z[-1]}, expected {-grid.depth}"
        )
    if not grid.degraded and np.any(dz < config.min_thickness - tol):
        problems.append(
            f"node {grid.node_id}: layer thickness {dz.min()} below "
            f"min_thickness {config.min_thickness}"
        )
    if grid.nlevels > z.size:
        problems.append(
            f"node {grid.node_id}: nlevels {grid.nlevels} exceeds {z.size} elevations"
        )
    return problems


def validate(grids, mesh, config, smoothing=None, skipped=None):
    """Check the finished grids and build the QualityReport.

    Hard invariants (monotonic levels, surface at 0, bottom at -depth,
    dz_min outside degraded nodes) always raise QualityViolation. Edges
    over max_jump, degraded nodes and skipped nodes are warnings, fatal in
    strict mode.
    """
    problems = []
    for grid in grids.values():
        problems.extend(_grid_problems(grid, config))
    if problems:
        raise QualityViolation(
            f"{len(problems)} hard invariant violation(s): " + "; ".join(problems),
            problems=problems,
        )

    ids = grids.node_ids()
    counts = grids.counts()
    edges = grid_edges(grids, mesh)
    jumps = edge_jumps(counts, edges) if len(edges) else np.zeros(0, dtype=np.int64)
    violations = [(ids[edges[k, 0]], ids[edges[k, 1]], int(jumps[k]))
                  for k in np.flatnonzero(jumps > config.max_jump)]
    degraded = [g.node_id for g in grids.values() if g.degraded]

    report = QualityReport(
        node_ids=ids,
        min_thickness=np.array([g.min_thickness for g in grids.values()]),
        edges=[(ids[a], ids[b]) for a, b in edges],
        edge_jumps=jumps,
        violations=violations,
        degraded=degraded,
        skipped=dict(skipped or {}),
        iterations=None if smoothing is None else smoothing.iterations,
        converged=not violations,
        stats=layer_count_stats(counts),
    )

    for message in report.warnings:
        logger.warning(message)

    if config.strict and report.warnings:
        strict_problems = [f"edge {a}-{b}: jump {j} > {config.max_jump}"
                           for a, b, j in violations]
        strict_problems += [f"node {i}: degraded" for i in degraded]
        strict_problems += [f"node {i}: skipped ({reason})"
                            for i, reason in report.skipped.items()]
        raise QualityViolation(
            "Strict mode: " + "; ".join(strict_problems), problems=strict_problems
        )

    logger.info(
        "Validation passed: %d nodes, levels %d-%d (mean %.2f), %d degraded, %d unresolved",
        len(ids), report.stats["min"], report.stats["max"], report.stats["mean"],
        len(degraded), len(report.unresolved),
    )
    return report
