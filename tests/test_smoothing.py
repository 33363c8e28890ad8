# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

# tests/test_smoothing.py
import numpy as np
import pytest

from vertgrid.config import StretchingConfig
from vertgrid.errors import ConvergenceError
from vertgrid.grid import MasterVerticalGrid
from vertgrid.local import generate_local_grids
from vertgrid.mesh import Mesh, build_adjacency, rectangular_mesh
from vertgrid.smoothing import edge_jumps, grid_edges, relax_moves, smooth


def _line_mesh(depths):
    ids = list(range(len(depths)))
    edges = [(i, i + 1) for i in range(len(depths) - 1)]
    return Mesh(ids=ids, depth=depths, edges=edges)


def _candidates(mesh, config):
    master = MasterVerticalGrid(config)
    grids, _ = generate_local_grids(mesh, master, config)
    return grids, master


def test_relax_moves_decreases_above_jump():
    indptr, indices = build_adjacency(3, [(0, 1), (1, 2)])
    counts = np.array([2, 10, 2], dtype=np.int64)
    caps = counts.copy()
    moves = relax_moves(counts, caps, indptr, indices, 2)
    assert moves.tolist() == [0, -1, 0]


def test_relax_moves_increases_toward_higher_neighbor():
    indptr, indices = build_adjacency(2, [(0, 1)])
    counts = np.array([3, 10], dtype=np.int64)
    caps = np.array([10, 10], dtype=np.int64)
    moves = relax_moves(counts, caps, indptr, indices, 2)
    assert moves.tolist() == [1, -1]


def test_relax_moves_respects_cap():
    indptr, indices = build_adjacency(2, [(0, 1)])
    counts = np.array([2, 10], dtype=np.int64)
    caps = np.array([2, 10], dtype=np.int64)
    moves = relax_moves(counts, caps, indptr, indices, 2)
    assert moves.tolist() == [0, -1]


def test_relax_moves_isolated_node():
    indptr, indices = build_adjacency(1, [])
    moves = relax_moves(np.array([7], dtype=np.int64), np.array([7], dtype=np.int64),
                        indptr, indices, 1)
    assert moves.tolist() == [0]


def test_three_node_line_scenario():
    """Depths [5, 50, 5], N=10, h_c=10, max_jump=2."""
    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2)
    mesh = _line_mesh([5.0, 50.0, 5.0])
    grids, master = _candidates(mesh, config)
    assert grids.counts().tolist() == [2, 10, 2]

    result = smooth(grids, mesh, master, config)
    counts = result.grids.counts()
    assert result.converged
    assert result.violations == []
    assert counts[0] == 2 and counts[2] == 2
    assert np.array_equal(result.grids[0].z, [0.0, -5.0])
    assert np.array_equal(result.grids[2].z, [0.0, -5.0])
    assert counts[1] == 4
    for a in range(3):
        for b in range(3):
            assert abs(counts[a] - counts[b]) <= 2
    z1 = result.grids[1].z
    assert z1[0] == 0.0 and z1[-1] == -50.0
    assert np.all(np.diff(z1) < 0)


def test_smoothing_does_not_modify_candidates():
    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2)
    mesh = _line_mesh([5.0, 50.0, 5.0])
    grids, master = _candidates(mesh, config)
    before = [g.z.copy() for g in grids.values()]
    smooth(grids, mesh, master, config)
    for z, g in zip(before, grids.values()):
        assert np.array_equal(z, g.z)


def test_pinned_shallow_node_builds_a_staircase():
    """A two-level shallow node drags its deep neighbours into a ramp."""
    config = StretchingConfig(levels=12, h_c=5.0, h_s=100.0, max_jump=1)
    mesh = _line_mesh([4.0, 80.0, 80.0, 80.0])
    grids, master = _candidates(mesh, config)
    assert grids.counts().tolist() == [2, 12, 12, 12]
    result = smooth(grids, mesh, master, config)
    assert result.converged
    assert result.grids.counts().tolist() == [2, 3, 4, 5]


def test_zero_iterations_reports_every_violating_edge():
    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2, max_iterations=0)
    mesh = _line_mesh([5.0, 50.0, 5.0, 60.0])
    grids, master = _candidates(mesh, config)
    result = smooth(grids, mesh, master, config)
    assert not result.converged
    assert result.iterations == 0
    assert sorted((a, b) for a, b, _ in result.violations) == [(0, 1), (1, 2), (2, 3)]
    assert result.unresolved == [0, 1, 2, 3]


def test_strict_non_convergence_raises():
    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2, max_iterations=1,
                              strict=True)
    mesh = _line_mesh([5.0, 50.0, 5.0])
    grids, master = _candidates(mesh, config)
    with pytest.raises(ConvergenceError) as excinfo:
        smooth(grids, mesh, master, config)
    assert excinfo.value.nodes == [0, 1, 2]
    assert len(excinfo.value.edges) == 2


def test_skipped_nodes_are_ignored():
    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2)
    mesh = _line_mesh([5.0, -1.0, 50.0])
    grids, master = _candidates(mesh, config)
    assert len(grid_edges(grids, mesh)) == 0
    result = smooth(grids, mesh, master, config)
    assert result.converged
    assert result.iterations == 0
    assert result.grids.counts().tolist() == [2, 10]


def test_smoothing_logs_non_convergence(caplog):
    import logging

    config = StretchingConfig(levels=10, h_c=10.0, max_jump=2, max_iterations=0)
    mesh = _line_mesh([5.0, 50.0])
    grids, master = _candidates(mesh, config)
    with caplog.at_level(logging.WARNING, logger="vertgrid.smoothing"):
        smooth(grids, mesh, master, config)
    assert "did not converge" in " ".join(caplog.messages)


def test_smoothing_same_result_for_any_worker_count():
    """Jacobi passes must not depend on the degree of parallelism."""
    config = StretchingConfig(levels=16, h_c=4.0, h_s=60.0, max_jump=1)
    mesh = rectangular_mesh(8, 4, lambda x, y: 1.0 + 12.0 * x + 3.0 * y)
    grids, master = _candidates(mesh, config)
    serial = smooth(grids, mesh, master, config, max_workers=1)
    parallel = smooth(grids, mesh, master, config, max_workers=2)
    assert serial.iterations == parallel.iterations
    for node_id in serial.grids:
        assert np.array_equal(serial.grids[node_id].z, parallel.grids[node_id].z)
    counts = serial.grids.counts()
    assert np.all(edge_jumps(counts, grid_edges(serial.grids, mesh)) <= 1)
