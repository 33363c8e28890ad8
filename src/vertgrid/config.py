# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Run configuration for vertical grid generation."""

import json
import math
from dataclasses import asdict, dataclass, fields, replace

from vertgrid.errors import ConfigError


@dataclass(frozen=True)
class StretchingConfig:
    """Immutable parameters shared by every stage of a run.

    Attributes:
        levels: number of master levels N (surface and bottom included)
        stretching: tag of the stretching function (see vertgrid.stretching)
        theta_f: surface/overall stretching strength (0 = uniform sigma)
        theta_b: bottom emphasis weight in [0, 1]
        h_c: critical depth; nodes at or above it get the minimal grid
        h_s: transition depth below which levels stop following the S shape
        min_thickness: minimum layer thickness dz_min
        max_jump: largest allowed level-count difference across an edge
        max_iterations: cap on smoothing passes
        strict: promote warnings (non-convergence, degraded nodes) to errors
        boundary_refine: run the boundary layer refiner after smoothing
        boundary_thickness: target thickness of the outermost layers
        boundary_max_levels: most levels inserted at each boundary
        refine_surface, refine_bottom: which boundaries to refine
        tolerance: epsilon for the surface/bottom elevation checks
    """

    levels: int = 20
    stretching: str = "schism"
    theta_f: float = 5.0
    theta_b: float = 0.5
    h_c: float = 10.0
    h_s: float = 100.0
    min_thickness: float = 0.1
    max_jump: int = 2
    max_iterations: int = 100
    strict: bool = False
    boundary_refine: bool = False
    boundary_thickness: float = 1.0
    boundary_max_levels: int = 3
    refine_surface: bool = True
    refine_bottom: bool = True
    tolerance: float = 1e-6

    def __post_init__(self):
        for name in ("theta_f", "theta_b", "h_c", "h_s", "min_thickness",
                     "boundary_thickness", "tolerance"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigError(f"{name} must be a finite number, got {value!r}")
        for name in ("levels", "max_jump", "max_iterations", "boundary_max_levels"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")

        if self.levels < 2:
            raise ConfigError(f"levels must be >= 2, got {self.levels}")
        if self.theta_f < 0:
            raise ConfigError(f"theta_f must be >= 0, got {self.theta_f}")
        if not 0.0 <= self.theta_b <= 1.0:
            raise ConfigError(f"theta_b must be in [0, 1], got {self.theta_b}")
        if self.h_c <= 0:
            raise ConfigError(f"h_c must be positive, got {self.h_c}")
        if self.h_s < self.h_c:
            raise ConfigError(f"h_s must be >= h_c ({self.h_c}), got {self.h_s}")
        if self.min_thickness <= 0:
            raise ConfigError(f"min_thickness must be positive, got {self.min_thickness}")
        if self.max_jump < 1:
            raise ConfigError(f"max_jump must be >= 1, got {self.max_jump}")
        if self.max_iterations < 0:
            raise ConfigError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.boundary_thickness <= 0:
            raise ConfigError(
                f"boundary_thickness must be positive, got {self.boundary_thickness}"
            )
        if self.boundary_max_levels < 0:
            raise ConfigError(
                f"boundary_max_levels must be >= 0, got {self.boundary_max_levels}"
            )
        if self.tolerance <= 0:
            raise ConfigError(f"tolerance must be positive, got {self.tolerance}")

    @classmethod
    def from_dict(cls, params):
        """Build a config from a plain dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(**params)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

    def to_dict(self):
        return asdict(self)

    def with_overrides(self, **overrides):
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = sorted(set(changes) - {f.name for f in fields(self)})
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return replace(self, **changes)


def load_config(path):
    """Read a StretchingConfig from a JSON file."""
    try:
        with open(path, "r") as f:
            params = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read configuration {path}: {exc}") from exc
    if not isinstance(params, dict):
        raise ConfigError(f"Configuration {path} must hold a JSON object")
    return StretchingConfig.from_dict(params)
