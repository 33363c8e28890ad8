# Copyright (c) 2026 Shmuel Link
# SPDX-License-Identifier: MIT

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed

logger = logging.getLogger(__name__)

# Chunks handed to each worker; more chunks balance uneven node costs.
CHUNKS_PER_WORKER = 4


def resolve_workers(max_workers):
    if max_workers is None:
        return os.cpu_count() or 1
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    return max_workers


def chunk_indices(n, max_workers):
    """Split range(n) into contiguous slices for the worker pool."""
    workers = resolve_workers(max_workers)
    n_chunks = 1 if workers == 1 else min(n, workers * CHUNKS_PER_WORKER)
    n_chunks = max(n_chunks, 1)
    bounds = [round(k * n / n_chunks) for k in range(n_chunks + 1)]
    return [slice(bounds[k], bounds[k + 1]) for k in range(n_chunks)]


def map_chunks(fn, chunks, max_workers=1, progress=False, desc="Chunks"):
    """Apply fn to every chunk, in a process pool when max_workers > 1.

    Args:
        fn: module-level callable (must be picklable).
        chunks: list of arguments, one per call.
        max_workers: number of processes (None = cpu count, 1 = in-process).
        progress: show a tqdm progress bar if available.

    Returns:
        list of results, in the same order as chunks.
    """
    n = len(chunks)
    workers = resolve_workers(max_workers)
    logger.debug("%s: %d chunk(s), max_workers=%d", desc, n, workers)

    # Soft import of tqdm
    tqdm_bar = None
    if progress:
        try:
            from tqdm.auto import tqdm
            tqdm_bar = tqdm(total=n, desc=desc, unit="chunk")
        except ImportError:
            pass

    results = [None] * n

    if workers == 1 or n <= 1:
        for i, chunk in enumerate(chunks):
            results[i] = fn(chunk)
            if tqdm_bar is not None:
                tqdm_bar.update(1)
    else:
        with ProcessPoolExecutor(max_workers=workers) as pool:
            future_to_index = {}
            for i, chunk in enumerate(chunks):
                future = pool.submit(fn, chunk)
                future_to_index[future] = i

            for future in as_completed(future_to_index):
                idx = future_to_index[future]
                results[idx] = future.result()
                logger.debug("%s: chunk %d/%d done", desc, idx + 1, n)
                if tqdm_bar is not None:
                    tqdm_bar.update(1)

    if tqdm_bar is not None:
        tqdm_bar.close()

    return results
