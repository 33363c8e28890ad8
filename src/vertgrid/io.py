# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Persisted vertical grids.

The native container is versioned JSON:

    {"format": "vertgrid", "version": 1,
     "header": {levels, stretching, theta_f, theta_b, h_c, h_s, ...},
     "nodes": [{"id", "depth", "nlevels", "degraded", "z": [...]}, ...],
     "quality": {...}}          # optional

Floats are written with Python's shortest round-trip repr, so parsing a
written file gives back identical values.
"""

import json
import logging

import numpy as np

from vertgrid.errors import SerializationError
from vertgrid.local import LocalVerticalGrid, VerticalGridSet

logger = logging.getLogger(__name__)

FORMAT_NAME = "vertgrid"
FORMAT_VERSION = 1

# Fill value below the local bottom in LSC2 files.
LSC2_FILL = -9.0


class _NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.bool_):
            return bool(obj)
        return super().default(obj)


def grids_to_dict(grids, config, report=None):
    doc = {
        "format": FORMAT_NAME,
        "version": FORMAT_VERSION,
        "header": config.to_dict(),
        "nodes": [
            {
                "id": g.node_id,
                "depth": g.depth,
                "nlevels": g.nlevels,
                "degraded": g.degraded,
                "z": g.z,
            }
            for g in grids.values()
        ],
    }
    if report is not None:
        doc["quality"] = report.to_dict()
    return doc


def grids_from_dict(doc):
    """Inverse of grids_to_dict: returns (grids, header)."""
    try:
        if doc.get("format") != FORMAT_NAME:
            raise SerializationError(f"Not a {FORMAT_NAME} file (format={doc.get('format')!r})")
        if doc.get("version") != FORMAT_VERSION:
            raise SerializationError(
                f"Unsupported {FORMAT_NAME} version {doc.get('version')!r} "
                f"(expected {FORMAT_VERSION})"
            )
        grids = VerticalGridSet(
            LocalVerticalGrid(
                node["id"], node["depth"], np.array(node["z"], dtype=float),
                nlevels=node["nlevels"], degraded=node["degraded"],
            )
            for node in doc["nodes"]
        )
        return grids, dict(doc["header"])
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SerializationError(f"Malformed {FORMAT_NAME} document: {exc!r}") from exc


def dump_grids(grids, config, fp, report=None):
    try:
        json.dump(grids_to_dict(grids, config, report), fp, cls=_NumpyEncoder, indent=1)
    except OSError as exc:
        raise SerializationError(f"Cannot write vertical grids: {exc}") from exc


def parse_grids(fp):
    try:
        doc = json.load(fp)
    except OSError as exc:
        raise SerializationError(f"Cannot read vertical grids: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SerializationError(f"Invalid JSON: {exc}") from exc
    return grids_from_dict(doc)


def save_grids(grids, config, path, report=None):
    try:
        with open(path, "w") as f:
            dump_grids(grids, config, f, report=report)
    except SerializationError:
        raise
    except OSError as exc:
        raise SerializationError(f"Cannot write {path}: {exc}") from exc
    logger.info("Wrote %d vertical grids to %s", len(grids), path)


def load_grids(path):
    try:
        with open(path, "r") as f:
            return parse_grids(f)
    except SerializationError:
        raise
    except OSError as exc:
        raise SerializationError(f"Cannot read {path}: {exc}") from exc


def write_lsc2(grids, path):
    """Write a SCHISM LSC2 vgrid.in (ivcor=1).

    Layout: "1"; nvrt; one line with the 1-based bottom level of every node
    (levels counted from the bottom of the deepest column); then nvrt rows
    "k sigma_1 ... sigma_np" from the bottom up, LSC2_FILL below a node's
    bottom. Nodes are written in grid-set order (LSC2 has no node ids).
    """
    grids = list(grids.values())
    if not grids:
        raise SerializationError("Cannot write an LSC2 grid without nodes")
    nvrt = max(g.z.size for g in grids)
    kbp = np.array([g.z.size for g in grids])
    sigma = np.full((nvrt, len(grids)), LSC2_FILL)
    for i, g in enumerate(grids):
        s = g.z / g.depth
        s[0] = 0.0
        s[-1] = -1.0
        sigma[:s.size, i] = s

    try:
        with open(path, "w") as f:
            f.write("1\n")
            f.write(f"{nvrt}\n")
            f.write("".join(f" {v:10d}" for v in nvrt + 1 - kbp) + "\n")
            for k in range(1, nvrt + 1):
                level = nvrt - k
                f.write(f"{k:10d}" + "".join(f" {v:.10f}" for v in sigma[level]) + "\n")
    except OSError as exc:
        raise SerializationError(f"Cannot write LSC2 grid to {path}: {exc}") from exc
    logger.info("Wrote LSC2 vgrid.in with nvrt=%d to %s", nvrt, path)


def read_lsc2(path):
    """Read a SCHISM LSC2 vgrid.in.

    Returns:
        (nvrt, sigma) where sigma is a list of per-node arrays ordered from
        the surface (0) to the bottom (-1).
    """
    try:
        with open(path, "r") as f:
            lines = f.readlines()
    except OSError as exc:
        raise SerializationError(f"Cannot read {path}: {exc}") from exc

    try:
        ivcor = int(lines[0].split()[0])
        if ivcor != 1:
            raise SerializationError(f"{path} is not an LSC2 grid (ivcor={ivcor})")
        nvrt = int(lines[1].split()[0])
        bottom = np.array(lines[2].split(), dtype=int) - 1
        rows = np.array([line.split()[1:] for line in lines[3:3 + nvrt]], dtype=float)
    except (IndexError, ValueError) as exc:
        raise SerializationError(f"Malformed LSC2 file {path}: {exc}") from exc

    if rows.shape != (nvrt, bottom.size):
        raise SerializationError(
            f"Malformed LSC2 file {path}: expected {nvrt}x{bottom.size} levels, "
            f"got {rows.shape}"
        )
    sigma = [rows[b:, i][::-1].copy() for i, b in enumerate(bottom)]
    return nvrt, sigma
