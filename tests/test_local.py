# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

import numpy as np
import pytest

from vertgrid.config import StretchingConfig
from vertgrid.errors import InputError
from vertgrid.grid import MasterVerticalGrid
from vertgrid.local import (
    LocalVerticalGrid,
    VerticalGridSet,
    build_local_grid,
    generate_local_grids,
    merge_thinnest,
    resample,
    shave,
    sz_elevations,
)
from vertgrid.mesh import Mesh


@pytest.fixture
def config():
    return StretchingConfig(levels=10, h_c=10.0, h_s=100.0, min_thickness=0.1)


@pytest.fixture
def master(config):
    return MasterVerticalGrid(config)


def test_shave_merges_thin_layers_top_down():
    z = np.array([0.0, -0.05, -1.0, -1.02, -2.0])
    assert np.array_equal(shave(z, 0.1), [0.0, -1.0, -2.0])


def test_shave_keeps_bottom_level():
    """A thin bottom layer loses its upper interface, never the bottom."""
    z = np.array([0.0, -1.0, -1.95, -2.0])
    assert np.array_equal(shave(z, 0.1), [0.0, -1.0, -2.0])


def test_shave_stops_at_two_levels():
    z = np.array([0.0, -0.01, -0.02, -0.03])
    assert np.array_equal(shave(z, 0.1), [0.0, -0.03])


def test_shave_is_idempotent_on_valid_grid():
    z = np.array([0.0, -0.5, -1.5, -3.0, -6.0])
    once = shave(z, 0.1)
    assert np.array_equal(once, z)
    assert np.array_equal(shave(once, 0.1), once)


def test_merge_thinnest_drops_one_level():
    z = np.array([0.0, -1.0, -1.5, -3.0])
    assert np.array_equal(merge_thinnest(z), [0.0, -1.0, -3.0])


def test_merge_thinnest_bottom_layer():
    z = np.array([0.0, -2.0, -2.9, -3.0])
    assert np.array_equal(merge_thinnest(z), [0.0, -2.0, -3.0])


def test_sz_elevations_endpoints_and_monotonic(master):
    for depth in (12.0, 60.0, 100.0, 450.0):
        z = sz_elevations(master.sigma, master.levels, depth, 10.0, 100.0)
        assert z[0] == 0.0
        assert z[-1] == -depth
        assert np.all(np.diff(z) < 0)


def test_sz_elevations_fixed_upper_shape_below_h_s(master):
    """Below h_s the stretched part keeps its shape; the excess is sigma-like."""
    z_200 = sz_elevations(master.sigma, master.levels, 200.0, 10.0, 100.0)
    z_300 = sz_elevations(master.sigma, master.levels, 300.0, 10.0, 100.0)
    assert np.allclose(z_300 - z_200, 100.0 * master.sigma)


def test_shallow_node_gets_minimal_grid(master, config):
    grid = build_local_grid(7, 4.0, master, config)
    assert grid.nlevels == 2
    assert np.array_equal(grid.z, [0.0, -4.0])
    assert not grid.degraded


def test_depth_equal_to_h_c_is_shallow(master, config):
    grid = build_local_grid(1, config.h_c, master, config)
    assert grid.nlevels == 2


def test_deep_node_uses_full_master(master, config):
    grid = build_local_grid(1, 50.0, master, config)
    assert grid.nlevels == config.levels
    assert grid.z[-1] == -50.0
    assert np.all(grid.thickness >= config.min_thickness)


def test_very_thin_water_is_degraded(master, config):
    grid = build_local_grid(1, 0.05, master, config)
    assert grid.nlevels == 2
    assert grid.degraded


def test_deep_node_shaved_to_floor_is_degraded():
    config = StretchingConfig(levels=10, h_c=0.01, h_s=100.0, min_thickness=0.1)
    master = MasterVerticalGrid(config)
    grid = build_local_grid(1, 0.05, master, config)
    assert grid.nlevels == 2
    assert grid.degraded


def test_thick_min_layer_shaves_deep_node(master):
    config = StretchingConfig(levels=10, h_c=10.0, h_s=100.0, min_thickness=5.0)
    grid = build_local_grid(1, 20.0, master, config)
    assert 2 < grid.nlevels < 10
    assert np.all(grid.thickness >= 5.0)


@pytest.mark.parametrize("depth", [0.0, -3.0, float("nan")])
def test_invalid_depth_raises(master, config, depth):
    with pytest.raises(InputError):
        build_local_grid(1, depth, master, config)


def test_resample_count(master, config):
    z = resample(master, 50.0, 5, config)
    assert z.size == 5
    assert z[0] == 0.0 and z[-1] == -50.0


def test_generate_skips_land_nodes(master, config):
    mesh = Mesh(ids=[1, 2, 3], depth=[20.0, -1.0, 5.0], edges=[(1, 2), (2, 3)])
    grids, skipped = generate_local_grids(mesh, master, config)
    assert grids.node_ids() == [1, 3]
    assert list(skipped) == [2]
    assert "non-positive depth" in skipped[2]


def test_generate_fails_when_no_node_succeeds(master, config):
    mesh = Mesh(ids=[1, 2], depth=[0.0, -2.0], edges=[(1, 2)])
    with pytest.raises(InputError):
        generate_local_grids(mesh, master, config)


def test_grid_set_rejects_duplicates():
    grids = VerticalGridSet([LocalVerticalGrid(1, 2.0, [0.0, -2.0])])
    with pytest.raises(InputError):
        grids.add(LocalVerticalGrid(1, 3.0, [0.0, -3.0]))


def test_frozen_grid_is_read_only():
    grid = LocalVerticalGrid(1, 2.0, [0.0, -2.0]).freeze()
    with pytest.raises(ValueError):
        grid.z[0] = 1.0
