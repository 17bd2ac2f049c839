"""
In-process lock registry for ledger mutations.

The store has no multi-statement transactions, so every mutating ledger
operation holds the locks of the sale and products it touches until it has
committed or compensated.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterable, Tuple

from pos_ledger.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

GLOBAL_KEY = ('ledger', 0)


def sale_key(sale_id) -> Tuple[str, int]:
    return ('sale', int(sale_id))


def product_key(product_id) -> Tuple[str, int]:
    return ('product', int(product_id))


class LockManager:
    """
    One re-entrant lock per key, created on first use.

    Keys are acquired in sorted order so two operations that touch the same
    products can never deadlock each other. With global_lock=True every key
    maps onto a single lock. A key's lock is dropped once no thread holds or
    waits on it.
    """

    def __init__(self, timeout: float = 10.0, global_lock: bool = False):
        self.timeout = timeout
        self.global_lock = global_lock
        # key -> [lock, threads holding or waiting]
        self._locks: Dict[Hashable, list] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, key) -> threading.RLock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[Hashable]):
        """Acquire every key (deduplicated, sorted) for the duration of the block."""
        if self.global_lock:
            ordered = [GLOBAL_KEY]
        else:
            ordered = sorted(set(keys))

        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                if not lock.acquire(timeout=self.timeout):
                    self._checkin(key)
                    logger.warning(f"[LOCK] Timeout acquiring {key} after {self.timeout}s")
                    raise LockTimeoutError(key, self.timeout)
                acquired.append((key, lock))
            yield ordered
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)
