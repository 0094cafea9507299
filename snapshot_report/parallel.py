"""
Bounded fan-out helper shared by attachment export, attachment copy,
input loading and per-format writes.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def resolve_worker_count(item_count: int, max_workers: Optional[int] = None) -> int:
    """Pool size: the CPU count (or ``max_workers``) capped by the item count, at least 1."""
    limit = max_workers if max_workers and max_workers > 0 else (os.cpu_count() or 1)
    return max(1, min(limit, item_count))


def parallel_map(func: Callable[[T], R], items: Iterable[T], max_workers: Optional[int] = None) -> list[R]:
    """
    Apply ``func`` to every item on a bounded thread pool.

    Results are returned in input order regardless of completion order.
    If any call raises, every submitted call is still allowed to finish and
    the first exception to be observed is re-raised afterwards.

    Args:
        func: Callable applied to each item
        items: Work items
        max_workers: Upper bound on concurrency, defaults to the CPU count

    Returns:
        List of results, index-aligned with ``items``
    """
    items = list(items)
    if not items:
        return []

    workers = resolve_worker_count(len(items), max_workers)
    lock = threading.Lock()
    first_error: list[BaseException] = []

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(func, item) for item in items]
        for future in as_completed(futures):
            error = future.exception()
            if error is not None:
                with lock:
                    if not first_error:
                        first_error.append(error)
                    else:
                        logger.debug(f"Suppressed additional worker error: {error}")

    if first_error:
        raise first_error[0]
    return [future.result() for future in futures]
