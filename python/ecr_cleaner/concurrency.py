import concurrent.futures
from typing import Callable, Dict, Hashable, Iterable, TypeVar

from ecr_cleaner.logging_utils import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def map_concurrently(func: Callable[[K], V], keys: Iterable[K], max_workers: int = 4) -> Dict[K, V]:
    """Run func once per key in a thread pool and join all results.

    The returned dict preserves the order of keys. The first exception raised
    by any task is re-raised after tasks that have not started yet are
    cancelled and running ones have finished.
    """
    keys = list(dict.fromkeys(keys))
    if not keys:
        return {}

    results: Dict[K, V] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(keys)))) as executor:
        future_to_key = {executor.submit(func, key): key for key in keys}
        try:
            for future in concurrent.futures.as_completed(future_to_key):
                results[future_to_key[future]] = future.result()
        except Exception:
            cancelled = sum(1 for f in future_to_key if f.cancel())
            if cancelled:
                logger.debug(f"Cancelled {cancelled} pending task(s) after a failure")
            raise

    return {key: results[key] for key in keys}
