# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Horizontal mesh adapter: node depths and adjacency for the vertical core.

Nodes are addressed by a dense integer index (0..n-1); the stable external
identifier of node i is ids[i]. Adjacency is stored as CSR arrays
(indptr, indices) so neighbours of i are indices[indptr[i]:indptr[i + 1]].
"""

import logging

import numpy as np

from vertgrid.errors import InputError

logger = logging.getLogger(__name__)


def build_adjacency(n, edges):
    """Symmetric CSR adjacency from an (m, 2) array of dense index pairs.

    Returns (indptr, indices) with each neighbour list sorted ascending.
    """
    edges = np.asarray(edges, dtype=np.int64).reshape(-1, 2)
    if edges.size == 0:
        return np.zeros(n + 1, dtype=np.int64), np.zeros(0, dtype=np.int64)

    src = np.concatenate([edges[:, 0], edges[:, 1]])
    dst = np.concatenate([edges[:, 1], edges[:, 0]])
    order = np.lexsort((dst, src))
    src = src[order]
    dst = dst[order]

    indptr = np.zeros(n + 1, dtype=np.int64)
    np.cumsum(np.bincount(src, minlength=n), out=indptr[1:])
    return indptr, dst


def _unique_edges(pairs):
    pairs = np.asarray(pairs, dtype=np.int64).reshape(-1, 2)
    pairs = pairs[pairs[:, 0] != pairs[:, 1]]
    if pairs.size == 0:
        return np.zeros((0, 2), dtype=np.int64)
    pairs = np.sort(pairs, axis=1)
    return np.unique(pairs, axis=0)


class Mesh:
    """Read-only view of the horizontal mesh.

    Attributes:
        ids: stable node identifiers, shape (n,)
        x, y: horizontal coordinates, shape (n,) (diagnostics only)
        depth: bathymetric depth, positive downward, shape (n,)
        elements: list of dense-index tuples (triangles/quads), may be empty
        edges: unique dense-index pairs (a < b), shape (m, 2)
        indptr, indices: CSR adjacency over dense indices
    """

    def __init__(self, ids, depth, x=None, y=None, elements=None, edges=None):
        self.ids = np.asarray(ids, dtype=np.int64)
        self.depth = np.asarray(depth, dtype=float)
        n = self.ids.size

        if self.ids.ndim != 1 or self.depth.shape != (n,):
            raise InputError(
                f"ids and depth must be 1-D of equal length, got {self.ids.shape} "
                f"and {self.depth.shape}"
            )
        if np.unique(self.ids).size != n:
            raise InputError("Node ids must be unique")

        self.x = np.zeros(n) if x is None else np.asarray(x, dtype=float)
        self.y = np.zeros(n) if y is None else np.asarray(y, dtype=float)
        if self.x.shape != (n,) or self.y.shape != (n,):
            raise InputError("x and y must match the number of nodes")
        if not (np.all(np.isfinite(self.x)) and np.all(np.isfinite(self.y))):
            raise InputError("Node coordinates must be finite")

        self._index = {int(node_id): i for i, node_id in enumerate(self.ids)}

        self.elements = []
        pairs = []
        for element in elements or ():
            local = [self.index_of(node_id) for node_id in element]
            if len(local) < 3:
                raise InputError(f"Element {tuple(element)} has fewer than 3 nodes")
            self.elements.append(tuple(local))
            pairs.extend(
                (local[k], local[(k + 1) % len(local)]) for k in range(len(local))
            )
        for a, b in edges or ():
            pairs.append((self.index_of(a), self.index_of(b)))

        self.edges = _unique_edges(pairs)
        self.indptr, self.indices = build_adjacency(n, self.edges)

    @property
    def n_nodes(self):
        return self.ids.size

    def index_of(self, node_id):
        try:
            return self._index[int(node_id)]
        except KeyError:
            raise InputError(f"Unknown node id {node_id}") from None

    def neighbors(self, i):
        """Dense indices adjacent to dense index i."""
        return self.indices[self.indptr[i]:self.indptr[i + 1]]


def read_gr3(path):
    """Read a SCHISM/ADCIRC hgrid.gr3 file (nodes and elements only).

    Layout: title line; "ne np"; np lines "id x y depth"; ne lines
    "id nv n1 ... nv". Open/land boundary sections after the elements are
    ignored.
    """
    try:
        with open(path, "r") as f:
            lines = f.readlines()
    except OSError as exc:
        raise InputError(f"Cannot read mesh {path}: {exc}") from exc

    try:
        ne, npnt = (int(v) for v in lines[1].split()[:2])
        node_rows = [lines[2 + i].split() for i in range(npnt)]
        ids = [int(row[0]) for row in node_rows]
        x = [float(row[1]) for row in node_rows]
        y = [float(row[2]) for row in node_rows]
        depth = [float(row[3]) for row in node_rows]

        elements = []
        for i in range(ne):
            row = lines[2 + npnt + i].split()
            nv = int(row[1])
            if len(row) < 2 + nv:
                raise InputError(f"Element line {3 + npnt + i} lists fewer than {nv} nodes")
            elements.append(tuple(int(v) for v in row[2:2 + nv]))
    except (IndexError, ValueError) as exc:
        raise InputError(f"Malformed mesh file {path}: {exc}") from exc

    mesh = Mesh(ids, depth, x=x, y=y, elements=elements)
    logger.info("Read mesh %s: %d nodes, %d elements, %d edges",
                path, mesh.n_nodes, len(mesh.elements), len(mesh.edges))
    return mesh


def rectangular_mesh(nx, ny, depth, dx=1.0, dy=None):
    """Structured triangulated mesh, handy for synthetic runs and tests.

    Args:
        nx, ny: number of nodes along x and y.
        depth: scalar, array of shape (ny, nx), or callable depth(x, y).
        dx, dy: node spacing (dy defaults to dx).

    Node ids are 1-based and row-major, as in gr3 files.
    """
    if nx < 2 or ny < 1:
        raise InputError(f"Need nx >= 2 and ny >= 1, got nx={nx}, ny={ny}")
    dy = dx if dy is None else dy
    X, Y = np.meshgrid(np.arange(nx) * dx, np.arange(ny) * dy)
    if callable(depth):
        h = np.asarray(depth(X, Y), dtype=float)
    else:
        h = np.broadcast_to(np.asarray(depth, dtype=float), X.shape)

    ids = np.arange(1, nx * ny + 1)
    grid_ids = ids.reshape(ny, nx)

    elements = []
    edges = None
    if ny == 1:
        edges = [(grid_ids[0, i], grid_ids[0, i + 1]) for i in range(nx - 1)]
    for j in range(ny - 1):
        for i in range(nx - 1):
            a, b = grid_ids[j, i], grid_ids[j, i + 1]
            c, d = grid_ids[j + 1, i + 1], grid_ids[j + 1, i]
            elements.append((a, b, c))
            elements.append((a, c, d))

    return Mesh(ids, h.ravel(), x=X.ravel(), y=Y.ravel(),
                elements=elements, edges=edges)
