# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Stretching functions mapping a level fraction in [0, 1] to a level in [-1, 0].

Every function has the signature ``stretch(fraction, params)`` where
``fraction`` is an array of fractions (0 = surface, 1 = bottom) and ``params``
is a StretchingConfig. The result is non-increasing in ``fraction`` with
stretch(0) = 0 and stretch(1) = -1. Functions are selected by tag through
STRETCHING_FUNCTIONS; new formulas only need to be registered there.
"""

import numpy as np

from vertgrid.errors import ConfigError

# Below this the stretching strength is treated as zero (uniform sigma).
GAMMA_EPS = 1e-10

# Smallest spacing between two master levels that still counts as distinct.
SPACING_EPS = 1e-12


def sigma_stretch(fraction, params=None):
    """Uniform terrain-following sigma levels."""
    return -np.asarray(fraction, dtype=float)


def schism_stretch(fraction, params):
    """SCHISM S-coordinate stretching C(s).

    C(s) = (1 - theta_b) * sinh(theta_f * s) / sinh(theta_f)
         + theta_b * [tanh(theta_f * (s + 0.5)) - tanh(0.5 * theta_f)]
                   / (2 * tanh(0.5 * theta_f))

    with s = -fraction. theta_f controls the overall surface emphasis and
    theta_b blends in resolution near the bottom.
    """
    s = -np.asarray(fraction, dtype=float)
    theta_f = params.theta_f
    theta_b = params.theta_b
    if theta_f < GAMMA_EPS:
        return s

    surface = np.sinh(theta_f * s) / np.sinh(theta_f)
    bottom = (
        (np.tanh(theta_f * (s + 0.5)) - np.tanh(0.5 * theta_f))
        / (2.0 * np.tanh(0.5 * theta_f))
    )
    return (1.0 - theta_b) * surface + theta_b * bottom


def tanh_stretch(fraction, params):
    """Two-sided tanh clustering.

    Surface part: 1 - tanh(gamma * (1 - xi)) / tanh(gamma), clustered at xi=0.
    Bottom part: 0.5 * (1 + tanh(gamma * (xi - 0.5)) / tanh(gamma / 2)),
    clustered at both ends. gamma = theta_f, weights (1 - theta_b, theta_b).
    """
    xi = np.asarray(fraction, dtype=float)
    gamma = params.theta_f
    theta_b = params.theta_b
    if gamma < GAMMA_EPS:
        return -xi

    surface = 1.0 - np.tanh(gamma * (1.0 - xi)) / np.tanh(gamma)
    bottom = 0.5 * (1.0 + np.tanh(gamma * (xi - 0.5)) / np.tanh(0.5 * gamma))
    return -((1.0 - theta_b) * surface + theta_b * bottom)


STRETCHING_FUNCTIONS = {
    "schism": schism_stretch,
    "tanh": tanh_stretch,
    "sigma": sigma_stretch,
}


def get_stretching(name):
    """Look up a stretching function by its configuration tag."""
    try:
        return STRETCHING_FUNCTIONS[name]
    except KeyError:
        known = ", ".join(sorted(STRETCHING_FUNCTIONS))
        raise ConfigError(f"Unknown stretching type: {name!r} (known: {known})") from None


def check_levels(levels, tol=1e-9):
    """Raise ConfigError unless levels run strictly from 0 down to -1."""
    levels = np.asarray(levels, dtype=float)
    if levels.ndim != 1 or levels.size < 2:
        raise ConfigError(f"Need at least 2 master levels, got {levels.size}")
    if not np.all(np.isfinite(levels)):
        raise ConfigError("Stretching produced non-finite levels")
    if abs(levels[0]) > tol or abs(levels[-1] + 1.0) > tol:
        raise ConfigError(
            f"Master levels must span [0, -1], got [{levels[0]}, {levels[-1]}]"
        )
    spacing = -np.diff(levels)
    if np.any(spacing < 0):
        k = int(np.argmin(spacing))
        raise ConfigError(
            f"Stretching is not monotonic between levels {k} and {k + 1}: "
            f"{levels[k]} -> {levels[k + 1]}"
        )
    if np.any(spacing < SPACING_EPS):
        k = int(np.argmin(spacing))
        raise ConfigError(
            f"Stretching collapses levels {k} and {k + 1} (value {levels[k]})"
        )
