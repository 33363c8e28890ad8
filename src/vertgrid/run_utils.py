# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Shared utilities for generation runs: logging setup, quality summaries."""

import logging
import os


def configure_logging(outdir, run_name, level=logging.INFO):
    """Set up file + console logging on the 'vertgrid' logger.

    Args:
        outdir: directory for the log file.
        run_name: used in the log filename.
        level: logging level for both handlers.

    Returns:
        the configured logger.
    """
    os.makedirs(outdir, exist_ok=True)
    logger = logging.getLogger("vertgrid")
    logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    # File handler
    log_path = os.path.join(outdir, f"{run_name}.log")
    fh = logging.FileHandler(log_path)
    fh.setLevel(level)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    # Console handler (only if none already exists)
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    return logger


def print_summary_table(report):
    """Print the layer-count distribution and run status to stdout."""
    stats = report.stats
    total = sum(stats["histogram"].values())
    header = f"{'levels':>8} {'nodes':>8} {'share':>8}"
    print(header)
    print("-" * len(header))
    for levels, count in sorted(stats["histogram"].items()):
        share = count / total if total else 0.0
        print(f"{levels:>8d} {count:>8d} {share:>8.2%}")
    print("-" * len(header))
    print(
        f"mean {stats['mean']:.2f}  std {stats['std']:.2f}  "
        f"skewness {stats['skewness']:.2f}"
    )
    status = "converged" if report.converged else "NOT converged"
    iterations = "-" if report.iterations is None else report.iterations
    print(f"smoothing: {status} ({iterations} pass(es)), "
          f"degraded: {len(report.degraded)}, skipped: {len(report.skipped)}")
