# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Exception taxonomy for vertical grid generation."""


class VertGridError(Exception):
    """Base class for all vertgrid failures."""


class ConfigError(VertGridError, ValueError):
    """Invalid or degenerate stretching configuration."""


class InputError(VertGridError, ValueError):
    """Malformed mesh input or an unusable node depth."""


class ConvergenceError(VertGridError):
    """Neighbor smoothing stopped at max_iterations with violations left.

    Attributes:
        nodes: ids of the nodes touching a violating edge.
        edges: violating (id_a, id_b, jump) tuples.
    """

    def __init__(self, message, nodes=(), edges=()):
        super().__init__(message)
        self.nodes = list(nodes)
        self.edges = list(edges)


class QualityViolation(VertGridError):
    """The finished grid set breaks a hard invariant."""

    def __init__(self, message, problems=()):
        super().__init__(message)
        self.problems = list(problems)


class SerializationError(VertGridError, OSError):
    """Writing or parsing a persisted vertical grid failed."""
