# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Command-line interface for vertical grid generation."""

import argparse
import logging
import sys

from vertgrid.config import StretchingConfig, load_config
from vertgrid.errors import (
    ConfigError,
    ConvergenceError,
    InputError,
    QualityViolation,
    SerializationError,
)
from vertgrid.grid import check_sz_stretching, write_sz
from vertgrid.io import save_grids, write_lsc2
from vertgrid.mesh import read_gr3
from vertgrid.pipeline import generate
from vertgrid.run_utils import configure_logging, print_summary_table
from vertgrid.stretching import STRETCHING_FUNCTIONS

EXIT_CODES = {
    ConfigError: 2,
    InputError: 3,
    ConvergenceError: 4,
    QualityViolation: 5,
    SerializationError: 6,
}


def build_parser():
    parser = argparse.ArgumentParser(
        prog="vertgrid-generate",
        description="Generate per-node LSC2 vertical grids for an unstructured mesh.",
    )
    parser.add_argument("mesh", help="Horizontal mesh file (hgrid.gr3)")
    parser.add_argument(
        "-o", "--output", default="vgrid.json",
        help="Output vertical grid file (default: vgrid.json)",
    )
    parser.add_argument(
        "--config", default=None,
        help="JSON configuration file; flags below override its values",
    )
    parser.add_argument("-N", "--levels", type=int, default=None,
                        help="Number of master levels")
    parser.add_argument("--stretching", default=None, choices=sorted(STRETCHING_FUNCTIONS),
                        help="Stretching function (default: schism)")
    parser.add_argument("--theta-f", dest="theta_f", type=float, default=None,
                        help="Surface stretching strength")
    parser.add_argument("--theta-b", dest="theta_b", type=float, default=None,
                        help="Bottom emphasis weight in [0, 1]")
    parser.add_argument("--h-c", dest="h_c", type=float, default=None,
                        help="Critical depth")
    parser.add_argument("--h-s", dest="h_s", type=float, default=None,
                        help="Transition depth")
    parser.add_argument("--min-thickness", dest="min_thickness", type=float, default=None,
                        help="Minimum layer thickness")
    parser.add_argument("--max-jump", dest="max_jump", type=int, default=None,
                        help="Largest level-count difference between neighbours")
    parser.add_argument("--max-iterations", dest="max_iterations", type=int, default=None,
                        help="Cap on smoothing passes")
    parser.add_argument("--strict", action=argparse.BooleanOptionalAction, default=None,
                        help="Treat non-convergence, degraded and skipped nodes as errors")
    parser.add_argument("--boundary-refine", dest="boundary_refine",
                        action=argparse.BooleanOptionalAction, default=None,
                        help="Refine layers near surface and bottom")
    parser.add_argument("--boundary-thickness", dest="boundary_thickness", type=float,
                        default=None, help="Target thickness of the outermost layers")
    parser.add_argument(
        "--workers", type=int, default=1,
        help="Max parallel workers (default: 1, 0 = cpu count)",
    )
    parser.add_argument("--lsc2", default=None,
                        help="Also write a SCHISM LSC2 vgrid.in to this path")
    parser.add_argument("--sz", default=None,
                        help="Also write the master grid as a SCHISM SZ vgrid.in")
    parser.add_argument("--log-dir", default=None,
                        help="Write a log file to this directory")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only print warnings and errors")
    return parser


def _load_config(args):
    config = load_config(args.config) if args.config else StretchingConfig()
    return config.with_overrides(
        levels=args.levels,
        stretching=args.stretching,
        theta_f=args.theta_f,
        theta_b=args.theta_b,
        h_c=args.h_c,
        h_s=args.h_s,
        min_thickness=args.min_thickness,
        max_jump=args.max_jump,
        max_iterations=args.max_iterations,
        strict=args.strict,
        boundary_refine=args.boundary_refine,
        boundary_thickness=args.boundary_thickness,
    )


def _exit_code(exc):
    for cls, code in EXIT_CODES.items():
        if isinstance(exc, cls):
            return code
    return 1


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.workers < 0:
        parser.error(f"--workers must be >= 0, got {args.workers}")

    level = logging.WARNING if args.quiet else logging.INFO
    if args.log_dir:
        configure_logging(args.log_dir, "vertgrid", level=level)
    else:
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    workers = None if args.workers == 0 else args.workers

    try:
        config = _load_config(args)
        if args.sz:
            check_sz_stretching(config)
        mesh = read_gr3(args.mesh)
        if not args.quiet:
            print(f"Mesh: {args.mesh} ({mesh.n_nodes} nodes, {len(mesh.edges)} edges)")
            print(f"Levels: N={config.levels}, stretching={config.stretching}, "
                  f"theta_f={config.theta_f}, theta_b={config.theta_b}, "
                  f"h_c={config.h_c}, h_s={config.h_s}")
            print(f"Smoothing: max_jump={config.max_jump}, "
                  f"max_iterations={config.max_iterations}, strict={config.strict}")
            print()

        result = generate(mesh, config, max_workers=workers)

        save_grids(result.grids, config, args.output, report=result.report)
        if args.lsc2:
            write_lsc2(result.grids, args.lsc2)
        if args.sz:
            write_sz(result.master, config, args.sz, float(mesh.depth.max()))
    except (ConfigError, InputError, ConvergenceError, QualityViolation,
            SerializationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return _exit_code(exc)

    for message in result.report.warnings:
        print(f"warning: {message}", file=sys.stderr)

    if not args.quiet:
        print_summary_table(result.report)
        print(f"\nVertical grids saved to {args.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
