"""
Unit tests for the ledger lock registry.
"""
import threading

import pytest

from pos_ledger.exceptions import LockTimeoutError
from pos_ledger.services.locking import GLOBAL_KEY, LockManager, product_key, sale_key


class TestLockManager:

    def test_keys_sorted_and_deduplicated(self):
        locks = LockManager(timeout=0.5)

        with locks.hold([product_key(3), sale_key(1), product_key(1), product_key(3)]) as held:
            assert held == [('product', 1), ('product', 3), ('sale', 1)]

    def test_reentrant_in_same_thread(self):
        locks = LockManager(timeout=0.5)

        with locks.hold([sale_key(1)]):
            with locks.hold([sale_key(1), product_key(2)]):
                pass

    def test_timeout_when_held_by_other_thread(self):
        locks = LockManager(timeout=0.1)
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold([sale_key(7)]):
                acquired.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(2)
        try:
            with pytest.raises(LockTimeoutError):
                with locks.hold([sale_key(7)]):
                    pass
        finally:
            release.set()
            thread.join()

    def test_partial_acquisition_is_released_on_timeout(self):
        locks = LockManager(timeout=0.1)
        acquired = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold([sale_key(9)]):
                acquired.set()
                release.wait(2)

        thread = threading.Thread(target=holder)
        thread.start()
        acquired.wait(2)
        try:
            # product key sorts first and is taken before the sale key times out
            with pytest.raises(LockTimeoutError):
                with locks.hold([product_key(1), sale_key(9)]):
                    pass
        finally:
            release.set()
            thread.join()

        result = []

        def other():
            with locks.hold([product_key(1)]):
                result.append('ok')

        worker = threading.Thread(target=other)
        worker.start()
        worker.join(2)
        assert result == ['ok']

    def test_global_mode_uses_single_key(self):
        locks = LockManager(timeout=0.5, global_lock=True)

        with locks.hold([sale_key(1), product_key(2)]) as held:
            assert held == [GLOBAL_KEY]

    def test_registry_drops_released_keys(self):
        locks = LockManager(timeout=0.5)

        for sale_id in range(1000):
            with locks.hold([sale_key(sale_id), product_key(sale_id)]):
                assert len(locks._locks) == 2

        assert locks._locks == {}

    def test_registry_keeps_key_while_nested_or_waiting(self):
        locks = LockManager(timeout=0.1)

        with locks.hold([sale_key(1)]):
            with locks.hold([sale_key(1)]):
                pass
            assert sale_key(1) in locks._locks

            # a timed-out waiter must not drop the lock the holder still owns
            failures = []

            def waiter():
                try:
                    with locks.hold([sale_key(1)]):
                        pass
                except LockTimeoutError as e:
                    failures.append(e)

            thread = threading.Thread(target=waiter)
            thread.start()
            thread.join(2)
            assert len(failures) == 1
            assert sale_key(1) in locks._locks

        assert locks._locks == {}
