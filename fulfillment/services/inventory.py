"""
Inventory ledger: the only writer of product stock.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable
from uuid import UUID

from django.db import transaction

from fulfillment.domain.errors import InsufficientStock, NotFound, ValidationError
from fulfillment.domain.order import OrderItem
from fulfillment.infra.models import ProductORM
from fulfillment.infra.repositories import ProductRepository


logger = logging.getLogger(__name__)


def _aggregate(lines: Iterable[OrderItem]) -> list[tuple[UUID, int]]:
    """Sum quantities per product, ordered by product id for a stable lock order."""
    totals: dict[UUID, int] = defaultdict(int)
    for line in lines:
        totals[line.product_id] += line.quantity
    return sorted(totals.items(), key=lambda entry: str(entry[0]))


class InventoryLedger:
    """
    Reservation is the stock decrement itself; there is no holds table.

    ``reserve`` is a single conditional UPDATE, so two concurrent requests can
    never both pass the availability check for the last units.
    """

    def __init__(self, product_repo: ProductRepository | None = None):
        self.product_repo = product_repo or ProductRepository()

    @transaction.atomic
    def reserve(self, product_id: UUID, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if self.product_repo.decrement_stock(product_id, quantity):
            logger.debug(
                "stock_reserved",
                extra={"product_id": str(product_id), "quantity": quantity},
            )
            return

        product = self.product_repo.get_by_id(product_id)
        if product is None:
            raise NotFound("Product", product_id)
        logger.info(
            "stock_insufficient",
            extra={
                "product_id": str(product_id),
                "quantity": quantity,
                "available": product.stock_quantity,
            },
        )
        raise InsufficientStock(product_id, quantity, product.stock_quantity, product.name)

    @transaction.atomic
    def release(self, product_id: UUID, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if not self.product_repo.increment_stock(product_id, quantity):
            # Products are PROTECTed by order items, so this means a dangling reference
            raise NotFound("Product", product_id)
        logger.debug(
            "stock_released",
            extra={"product_id": str(product_id), "quantity": quantity},
        )

    def reserve_lines(self, lines: Iterable[OrderItem]) -> None:
        for product_id, quantity in _aggregate(lines):
            self.reserve(product_id, quantity)

    def release_lines(self, lines: Iterable[OrderItem]) -> int:
        """Release every line; returns the total quantity put back."""
        released = 0
        for product_id, quantity in _aggregate(lines):
            self.release(product_id, quantity)
            released += quantity
        return released

    def stock_level(self, product_id: UUID) -> int:
        stock = self.product_repo.stock_of(product_id)
        if stock is None:
            raise NotFound("Product", product_id)
        return stock

    def low_stock_products(self) -> list[ProductORM]:
        return self.product_repo.low_stock()
