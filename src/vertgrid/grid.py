# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

import logging

import numpy as np

from vertgrid.errors import ConfigError, SerializationError
from vertgrid.stretching import check_levels, get_stretching

logger = logging.getLogger(__name__)


class MasterVerticalGrid:
    """Reference set of dimensionless levels shared by every node.

    Level fraction xi in [0, 1] (0 = surface, 1 = bottom) is mapped by the
    configured stretching function to a master level in [0, -1].

    Attributes:
        N: number of levels
        stretching: tag of the stretching function used
        xi: uniform level fraction, shape (N,)
        sigma: uniform sigma coordinate -xi, shape (N,)
        levels: stretched master levels, strictly decreasing 0 -> -1, shape (N,)
        dlevel: dimensionless level spacing, shape (N - 1,)

    All arrays are read-only; one instance is shared by reference.
    """

    def __init__(self, config):
        if config.levels < 2:
            raise ConfigError(f"levels must be >= 2, got {config.levels}")

        self.N = config.levels
        self.stretching = config.stretching

        stretch = get_stretching(config.stretching)
        self.xi = np.linspace(0.0, 1.0, self.N)
        self.sigma = -self.xi
        levels = np.asarray(stretch(self.xi, config), dtype=float)
        check_levels(levels)

        # pin the endpoints exactly; check_levels already bounded the error
        levels[0] = 0.0
        levels[-1] = -1.0
        self.levels = levels
        self.dlevel = -np.diff(levels)

        for arr in (self.xi, self.sigma, self.levels, self.dlevel):
            arr.flags.writeable = False

        logger.debug(
            "Master grid: N=%d stretching=%s min dlevel=%.3g max dlevel=%.3g",
            self.N, self.stretching, self.dlevel.min(), self.dlevel.max(),
        )

    def __len__(self):
        return self.N

    def sample_indices(self, count):
        """Indices of `count` master levels, evenly spread, ends included."""
        if count < 2 or count > self.N:
            raise ValueError(f"count must be in [2, {self.N}], got {count}")
        return np.round(np.linspace(0.0, self.N - 1, count)).astype(np.int64)


def build_master_grid(config):
    return MasterVerticalGrid(config)


def check_sz_stretching(config):
    """SZ files only carry SCHISM S-coordinate parameters."""
    if config.stretching != "schism":
        raise ConfigError(
            f"SZ vgrid.in needs stretching='schism', got {config.stretching!r}"
        )


def check_z_levels(zlevels, max_depth):
    """Z levels must be <= 0, strictly increasing, and reach the deepest node."""
    zlevels = np.asarray(zlevels, dtype=float)
    if zlevels.ndim != 1 or zlevels.size == 0:
        raise ConfigError("Need at least one Z level")
    if not np.all(np.isfinite(zlevels)) or np.any(zlevels > 0.0):
        raise ConfigError(f"Z levels must be finite and <= 0, got {zlevels.tolist()}")
    if np.any(np.diff(zlevels) <= 0.0):
        raise ConfigError(f"Z levels must be strictly increasing, got {zlevels.tolist()}")
    if zlevels[0] > -max_depth:
        raise ConfigError(
            f"Deepest Z level {zlevels[0]} is above the deepest node (-{max_depth})"
        )
    return zlevels


def write_sz(master, config, path, max_depth, zlevels=None):
    """Write the master grid as a SCHISM SZ vgrid.in (ivcor=2).

    Args:
        master: MasterVerticalGrid (its level count sets the S levels).
        config: StretchingConfig; stretching must be "schism".
        path: output file.
        max_depth: depth of the deepest mesh node (positive down).
        zlevels: optional Z levels, increasing from the bottom; defaults to
            a single level at -max_depth.

    The S levels are uniform sigma from -1 to 0, with the stretching carried
    by h_c, theta_b and theta_f in the S-levels header line. The transition
    depth in the header is the shallowest Z level.
    """
    check_sz_stretching(config)
    if zlevels is None:
        zlevels = [-float(max_depth)]
    zlevels = check_z_levels(zlevels, float(max_depth))

    kz = zlevels.size
    nvrt = master.N + kz - 1
    sigma = np.linspace(-1.0, 0.0, master.N)
    try:
        with open(path, "w") as f:
            f.write("2\n")
            f.write(f"{nvrt} {kz} {abs(zlevels[-1])}\n")
            f.write("Z levels\n")
            for k, value in enumerate(zlevels, start=1):
                f.write(f"{k} {value}\n")
            f.write("S levels\n")
            f.write(f"{config.h_c} {config.theta_b} {config.theta_f}\n")
            for k, value in enumerate(sigma):
                f.write(f"{k + kz} {value}\n")
    except OSError as exc:
        raise SerializationError(f"Cannot write SZ grid to {path}: {exc}") from exc
    logger.info("Wrote SZ vgrid.in with nvrt=%d, kz=%d to %s", nvrt, kz, path)
