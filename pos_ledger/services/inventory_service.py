"""Stock reservation and movement for sale items."""
import enum
import logging
from collections import OrderedDict
from typing import Dict, List

from pos_ledger.exceptions import InsufficientStockError, NotFoundError
from pos_ledger.models import Product

logger = logging.getLogger(__name__)


class StockDirection(enum.Enum):
    CONSUME = -1
    RESTORE = 1

    @property
    def opposite(self):
        return StockDirection.RESTORE if self is StockDirection.CONSUME else StockDirection.CONSUME


def quantities_by_product(items) -> Dict[int, int]:
    """Total quantity per product id, in first-seen order."""
    totals = OrderedDict()
    for item in items:
        product_id = _field(item, 'product_id')
        if product_id is None:
            continue
        totals[product_id] = totals.get(product_id, 0) + int(_field(item, 'quantity'))
    return totals


def _field(item, name):
    return item[name] if isinstance(item, dict) else getattr(item, name)


class InventoryAdjuster:
    """
    Two-phase stock movement: reserve() validates every line before
    commit() touches any product, so a failed check never leaves
    partially decremented stock behind.
    """

    def __init__(self, repository):
        self.repository = repository

    def reserve(self, items) -> Dict[int, Product]:
        """
        Validate stock for all items (products locked FOR UPDATE where supported).

        Raises:
            NotFoundError: a product does not exist
            InsufficientStockError: stock below the requested quantity
        """
        needed = quantities_by_product(items)
        products = self.repository.get_many(Product, needed.keys(), for_update=True)

        for product_id, quantity in needed.items():
            product = products.get(product_id)
            if not product:
                raise NotFoundError(f'Product with ID {product_id}')
            if product.stock < quantity:
                raise InsufficientStockError(product.name, quantity, product.stock)

        return products

    def commit(self, items, direction: StockDirection) -> List[dict]:
        """
        Move stock by -quantity (consume) or +quantity (restore) for every line.

        Products that no longer exist are skipped with a warning. Returns
        the applied movements so they can be reverted exactly.
        """
        needed = quantities_by_product(items)
        products = self.repository.get_many(Product, needed.keys(), for_update=True)

        applied = []
        for product_id, quantity in needed.items():
            product = products.get(product_id)
            if not product:
                logger.warning(f"[STOCK] Product {product_id} missing, skipping {direction.name.lower()} of {quantity}")
                continue
            old_stock = product.stock
            product.stock = old_stock + direction.value * quantity
            applied.append({
                'product_id': product_id,
                'quantity': quantity,
                'old_stock': old_stock,
                'new_stock': product.stock,
            })
            logger.debug(f"[STOCK] {product.name}: {old_stock} -> {product.stock}")

        self.repository.flush()

        if direction is StockDirection.CONSUME:
            for product in self.low_stock(items):
                logger.warning(f"[STOCK] Low stock for {product.name}: {product.stock} (min {product.min_stock})")

        return applied

    def revert(self, applied: List[dict], direction: StockDirection) -> None:
        """Undo movements returned by commit(..., direction)."""
        self.commit(applied, direction.opposite)

    def low_stock(self, items) -> List[Product]:
        """Products of the given lines that are at or below their minimum stock."""
        products = self.repository.get_many(Product, quantities_by_product(items).keys())
        return [product for product in products.values() if product.is_low_stock]
