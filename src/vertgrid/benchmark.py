# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

"""Benchmarking utilities for profiling vertgrid hot paths.

Provides both micro-benchmarks (individual kernels) and a macro-benchmark
(full generate run on a synthetic sloping-bed mesh) with timing and optional
cProfile output.
"""

import time
import cProfile
import pstats
import io
import numpy as np


def _make_test_mesh(nx=40, ny=20, max_depth=200.0):
    """Synthetic shelf: depth grows from 1 m at x=0 to max_depth offshore."""
    from vertgrid.mesh import rectangular_mesh

    def depth(x, y):
        return 1.0 + (max_depth - 1.0) * (x / x.max()) ** 2 + 0.5 * np.sin(y)

    return rectangular_mesh(nx, ny, depth, dx=100.0)


def _time_fn(fn, args=(), kwargs=None, n_warmup=3, n_iter=100):
    """Time a function over n_iter calls, returning median and stats."""
    kwargs = kwargs or {}
    for _ in range(n_warmup):
        fn(*args, **kwargs)
    times = []
    for _ in range(n_iter):
        t0 = time.perf_counter_ns()
        fn(*args, **kwargs)
        t1 = time.perf_counter_ns()
        times.append((t1 - t0) * 1e-6)  # ms
    times = np.array(times)
    return {
        "median_ms": float(np.median(times)),
        "mean_ms": float(np.mean(times)),
        "std_ms": float(np.std(times)),
        "min_ms": float(np.min(times)),
        "max_ms": float(np.max(times)),
        "n_iter": n_iter,
    }


def bench_master_grid(N=40, n_iter=500):
    """Benchmark MasterVerticalGrid construction."""
    from vertgrid.config import StretchingConfig
    from vertgrid.grid import MasterVerticalGrid
    config = StretchingConfig(levels=N)
    return _time_fn(MasterVerticalGrid, args=(config,), n_iter=n_iter)


def bench_shave(N=40, n_iter=500):
    """Benchmark shave_levels on a grid with many thin layers."""
    from vertgrid.local import shave
    z = -np.linspace(0.0, 5.0, N) ** 1.5
    return _time_fn(shave, args=(z, 0.5), n_iter=n_iter)


def bench_relax_moves(N=40, n_iter=200):
    """Benchmark one relax_moves pass over the synthetic mesh."""
    from vertgrid.smoothing import relax_moves
    mesh = _make_test_mesh()
    rng = np.random.default_rng(0)
    counts = rng.integers(2, N + 1, size=mesh.n_nodes).astype(np.int64)
    caps = np.full(mesh.n_nodes, N, dtype=np.int64)
    return _time_fn(relax_moves, args=(counts, caps, mesh.indptr, mesh.indices, 2),
                    n_iter=n_iter)


def bench_generate(N=40, nx=40, ny=20):
    """Time a full generate run (macro benchmark)."""
    from vertgrid.config import StretchingConfig
    from vertgrid.pipeline import generate
    mesh = _make_test_mesh(nx, ny)
    config = StretchingConfig(levels=N, h_c=5.0, h_s=100.0, max_jump=2)
    t0 = time.perf_counter()
    result = generate(mesh, config)
    elapsed = time.perf_counter() - t0
    return {
        "elapsed_s": elapsed,
        "n_nodes": mesh.n_nodes,
        "iterations": result.report.iterations,
        "converged": result.report.converged,
    }


def profile_generate(N=40, nx=40, ny=20):
    """Run cProfile on generate, return stats as string."""
    from vertgrid.config import StretchingConfig
    from vertgrid.pipeline import generate
    mesh = _make_test_mesh(nx, ny)
    config = StretchingConfig(levels=N, h_c=5.0, h_s=100.0, max_jump=2)
    pr = cProfile.Profile()
    pr.enable()
    generate(mesh, config)
    pr.disable()
    s = io.StringIO()
    ps = pstats.Stats(pr, stream=s).sort_stats("cumulative")
    ps.print_stats(30)
    return s.getvalue()


def run_all_benchmarks(N=40, verbose=True):
    """Run all micro and macro benchmarks. Returns dict of results."""
    results = {}

    benches = [
        ("master_grid", bench_master_grid),
        ("shave", bench_shave),
        ("relax_moves", bench_relax_moves),
    ]

    for name, fn in benches:
        if verbose:
            print(f"  {name}...", end="", flush=True)
        r = fn(N=N)
        results[name] = r
        if verbose:
            print(f" {r['median_ms']:.3f} ms (median, n={r['n_iter']})")

    if verbose:
        print(f"  generate (N={N}, 40x20 nodes)...", end="", flush=True)
    r = bench_generate(N=N)
    results["generate"] = r
    if verbose:
        print(f" {r['elapsed_s']:.2f} s")

    return results


if __name__ == "__main__":
    print("=" * 55)
    print("vertgrid Benchmarks")
    print("=" * 55)
    print()

    print("cProfile of generate (N=40, 40x20 nodes):")
    print(profile_generate())

    print("Micro-benchmarks (N=40):")
    run_all_benchmarks(N=40)
