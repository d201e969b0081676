"""
Thread-pool helpers shared by tokenization, vectorization and batch search.

Usage:
    from textsearch.parallel import map_parallel, map_with_context

    results = map_parallel(rank_one, queries)
    tokens = map_with_context(tokenizer.copy, Tokenizer.tokenize, texts)
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")
C = TypeVar("C")


# =============================================================================
# Configuration
# =============================================================================

# Default number of workers for parallel processing
NUM_WORKERS = 32

# Minimum items before enabling parallelism
MIN_ITEMS_FOR_PARALLEL = 10


def _use_parallel(n_items: int, workers: int | None, min_items: int) -> bool:
    if workers is not None and workers <= 1:
        return False
    return n_items >= min_items


def map_parallel(
    fn: Callable[[T], R],
    items: Sequence[T],
    workers: int | None = None,
    min_items: int = MIN_ITEMS_FOR_PARALLEL,
) -> list[R]:
    """
    Apply fn to every item, in a thread pool for large inputs.

    Args:
        fn: Function applied to each item; must not mutate shared state.
        items: Inputs.
        workers: Number of worker threads (None for NUM_WORKERS, <= 1 for sequential).
        min_items: Minimum number of items before enabling parallelism.

    Returns:
        Results in input order.
    """
    if not items:
        return []

    if not _use_parallel(len(items), workers, min_items):
        return [fn(item) for item in items]

    with ThreadPoolExecutor(max_workers=workers or NUM_WORKERS) as executor:
        results = list(executor.map(fn, items))

    return results


def map_with_context(
    make_context: Callable[[], C],
    fn: Callable[[C, T], R],
    items: Sequence[T],
    workers: int | None = None,
    min_items: int = MIN_ITEMS_FOR_PARALLEL,
) -> list[R]:
    """
    Like map_parallel, but every worker thread owns a private context.

    The context is created lazily with make_context the first time a thread
    processes an item (e.g. a tokenizer copy with its own scratch buffers)
    and is never shared between threads.
    """
    if not items:
        return []

    if not _use_parallel(len(items), workers, min_items):
        context = make_context()
        return [fn(context, item) for item in items]

    local = threading.local()

    def run(item: T) -> R:
        context = getattr(local, "context", None)
        if context is None:
            context = local.context = make_context()
        return fn(context, item)

    return map_parallel(run, items, workers=workers, min_items=min_items)


__all__ = [
    "map_parallel",
    "map_with_context",
    "NUM_WORKERS",
    "MIN_ITEMS_FOR_PARALLEL",
]
