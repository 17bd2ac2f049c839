"""
All-or-nothing helper for multi-step ledger operations.

Each applied side effect registers its compensating action. If a later step
fails, the compensations run newest-first and the compensated state is
committed before the original error reaches the caller.
"""
import logging
from typing import Callable, List, Tuple

from pos_ledger.exceptions import LedgerError

logger = logging.getLogger(__name__)


class Saga:
    """
    Usage:
        with Saga(repository, 'create_sale') as saga:
            repository.add(sale)
            saga.record('delete sale', lambda: repository.delete(sale))
            ...
    """

    def __init__(self, repository, name: str):
        self.repository = repository
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], None]]] = []

    def record(self, description: str, undo: Callable[[], None]) -> None:
        """Register the action that reverses a side effect just applied."""
        self._compensations.append((description, undo))

    @property
    def applied(self) -> List[str]:
        return [description for description, _ in self._compensations]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.repository.commit()
            return False

        if issubclass(exc_type, LedgerError):
            logger.warning(
                f"[SAGA] {self.name} rejected: {exc}; "
                f"compensating {len(self._compensations)} step(s)"
            )
        else:
            logger.error(
                f"[SAGA] {self.name} failed unexpectedly; "
                f"compensating {len(self._compensations)} step(s)",
                exc_info=(exc_type, exc, tb)
            )
        self.compensate()
        # Re-raise the original error
        return False

    def compensate(self) -> None:
        try:
            for description, undo in reversed(self._compensations):
                logger.debug(f"[SAGA] {self.name}: undo {description}")
                undo()
            self.repository.commit()
        except Exception:
            logger.exception(f"[SAGA] {self.name}: compensation failed, rolling back session")
            self.repository.rollback()
        finally:
            self._compensations.clear()
