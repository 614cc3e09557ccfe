"""
Order engine: builds, edits, moves and cancels orders, driving stock
reservations through the inventory ledger.
"""
from __future__ import annotations

import logging
from uuid import UUID, uuid4

from django.db import transaction
from django.utils import timezone

from fulfillment.domain.errors import InvalidState, NotFound, ValidationError
from fulfillment.domain.events import (
    AggregateType,
    OrderCancelled,
    OrderCreated,
    OrderStatusChanged,
    OrderUpdated,
)
from fulfillment.domain.order import Order, OrderItem, OrderPaymentStatus, OrderStatus
from fulfillment.infra.outbox import OutboxRepository
from fulfillment.infra.repositories import (
    CustomerRepository,
    OrderRepository,
    ProductRepository,
)
from fulfillment.services.inventory import InventoryLedger
from fulfillment.services.numbering import ORDER_PREFIX, generate_number


logger = logging.getLogger(__name__)

# Plain fields copied from the input when present.
DETAIL_FIELDS = (
    "order_date",
    "delivery_date",
    "shipping_address",
    "shipping_city",
    "shipping_state",
    "shipping_country",
    "shipping_postal_code",
    "shipping_method",
    "payment_method",
    "notes",
)
CHARGE_FIELDS = ("tax_amount", "shipping_cost", "discount_amount")


class OrderService:
    """Service for order operations."""

    def __init__(
        self,
        order_repo: OrderRepository | None = None,
        customer_repo: CustomerRepository | None = None,
        product_repo: ProductRepository | None = None,
        inventory: InventoryLedger | None = None,
        outbox_repo: OutboxRepository | None = None,
    ):
        self.order_repo = order_repo or OrderRepository()
        self.customer_repo = customer_repo or CustomerRepository()
        self.product_repo = product_repo or ProductRepository()
        self.inventory = inventory or InventoryLedger(self.product_repo)
        self.outbox_repo = outbox_repo or OutboxRepository()

    @transaction.atomic
    def create_order(
        self,
        customer_id: UUID,
        items: list[dict],
        actor: str | None = None,
        **details,
    ) -> Order:
        """
        Create an order and reserve stock for every line.

        ``items`` are dicts with ``product_id`` and ``quantity`` and optional
        ``unit_price`` (defaults to the catalog price), ``discount_percent``
        and ``tax_percent``. Any failure rolls back every reservation made so
        far together with the order rows.
        """
        if not self.customer_repo.exists(customer_id):
            raise NotFound("Customer", customer_id)
        if not items:
            raise ValidationError("Order must contain at least one item")
        unknown = set(details) - set(DETAIL_FIELDS) - set(CHARGE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown order fields: {', '.join(sorted(unknown))}")

        now = timezone.now()
        order = Order(
            order_number=generate_number(ORDER_PREFIX, self.order_repo.exists_by_order_number, now=now),
            customer_id=customer_id,
            created_by=actor,
        )
        self._apply_details(order, details)
        if order.order_date is None:
            order.order_date = now

        lines = self._build_items(items)
        self.inventory.reserve_lines(lines)
        for line in lines:
            order.add_item(line)

        self.order_repo.save(order)

        self._emit(OrderCreated(
            event_id=uuid4(),
            aggregate_id=order.id,
            event_type="OrderCreated",
            order_number=order.order_number,
            customer_id=customer_id,
            total_amount=order.total_amount,
            items_count=len(order.items),
            actor=actor,
        ))
        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": actor,
                "total_amount": str(order.total_amount),
            },
        )
        return order

    @transaction.atomic
    def update_order(self, order_id: UUID, patch: dict, actor: str | None = None) -> Order:
        """
        Partially update an order.

        Only keys present in ``patch`` change. A non-empty ``items`` list
        releases all current lines and reserves the new ones exactly as
        creation does. ``status`` moves along the transition table.
        """
        order = self._get_for_update(order_id)
        order.ensure_editable()

        self._apply_details(order, {key: patch[key] for key in DETAIL_FIELDS if key in patch})
        order.set_charges(**{key: patch[key] for key in CHARGE_FIELDS if key in patch})

        items_replaced = False
        if patch.get("items"):
            lines = self._build_items(patch["items"])
            removed = order.replace_items(lines)
            self.inventory.release_lines(removed)
            self.inventory.reserve_lines(lines)
            items_replaced = True

        previous_status = order.status
        if patch.get("status") is not None:
            order.transition_to(OrderStatus(patch["status"]), now=timezone.now())

        self.order_repo.save(order)

        self._emit(OrderUpdated(
            event_id=uuid4(),
            aggregate_id=order.id,
            event_type="OrderUpdated",
            total_amount=order.total_amount,
            items_count=len(order.items),
            items_replaced=items_replaced,
            actor=actor,
        ))
        if order.status != previous_status:
            self._emit_status_change(order, previous_status, actor)
        logger.info(
            "order_updated",
            extra={
                "order_id": str(order.id),
                "user_id": actor,
                "items_replaced": items_replaced,
                "total_amount": str(order.total_amount),
            },
        )
        return order

    @transaction.atomic
    def change_status(self, order_id: UUID, status: OrderStatus, actor: str | None = None) -> Order:
        """Move an order along PENDING -> ... -> DELIVERED, or to RETURNED."""
        order = self._get_for_update(order_id)
        previous_status = order.status
        order.transition_to(OrderStatus(status), now=timezone.now())
        if order.status == previous_status:
            return order

        self.order_repo.save(order)
        self._emit_status_change(order, previous_status, actor)
        logger.info(
            "order_status_changed",
            extra={
                "order_id": str(order.id),
                "user_id": actor,
                "status": order.status.value,
            },
        )
        return order

    @transaction.atomic
    def cancel_order(self, order_id: UUID, actor: str | None = None) -> Order:
        """
        Cancel an order and put its stock back.

        Cancelling an order that is already cancelled changes nothing.
        """
        order = self._get_for_update(order_id)
        if order.status == OrderStatus.CANCELLED:
            logger.info(
                "order_cancel_noop",
                extra={"order_id": str(order.id), "user_id": actor},
            )
            return order

        released_items = order.cancel()
        released = self.inventory.release_lines(released_items)
        self.order_repo.save(order)

        self._emit(OrderCancelled(
            event_id=uuid4(),
            aggregate_id=order.id,
            event_type="OrderCancelled",
            released_quantity=released,
            actor=actor,
        ))
        logger.info(
            "order_cancelled",
            extra={
                "order_id": str(order.id),
                "user_id": actor,
                "released_quantity": released,
            },
        )
        return order

    def get_order(self, order_id: UUID) -> Order:
        order = self.order_repo.get_by_id(order_id)
        if order is None:
            raise NotFound("Order", order_id)
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        order = self.order_repo.get_by_number(order_number)
        if order is None:
            raise NotFound("Order", order_number)
        return order

    def list_orders(
        self,
        customer_id: UUID | None = None,
        status: OrderStatus | None = None,
        payment_status: OrderPaymentStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        """Get orders with optional filters and pagination."""
        if customer_id is not None and not self.customer_repo.exists(customer_id):
            raise NotFound("Customer", customer_id)
        return self.order_repo.list(
            customer_id=customer_id,
            status=status,
            payment_status=payment_status,
            limit=limit,
            offset=offset,
        )

    def _get_for_update(self, order_id: UUID) -> Order:
        order = self.order_repo.get_by_id(order_id, for_update=True)
        if order is None:
            raise NotFound("Order", order_id)
        return order

    def _build_items(self, items: list[dict]) -> list[OrderItem]:
        """Resolve products and price every requested line."""
        lines = []
        for item in items:
            product_id = UUID(str(item["product_id"]))
            product = self.product_repo.get_by_id(product_id)
            if product is None:
                raise NotFound("Product", product_id)
            if not product.active:
                raise InvalidState(f"Product {product.sku} is not active")

            unit_price = item.get("unit_price")
            lines.append(OrderItem(
                product_id=product_id,
                quantity=int(item["quantity"]),
                unit_price=product.unit_price if unit_price is None else unit_price,
                discount_percent=item.get("discount_percent"),
                tax_percent=item.get("tax_percent"),
            ))
        return lines

    def _apply_details(self, order: Order, details: dict) -> None:
        for field in DETAIL_FIELDS:
            if field not in details:
                continue
            value = details[field]
            if value is None:
                if field == "order_date":
                    continue
                if field != "delivery_date":
                    value = ""
            setattr(order, field, value)
        order.set_charges(**{key: details[key] for key in CHARGE_FIELDS if key in details})

    def _emit_status_change(self, order: Order, previous_status: OrderStatus, actor: str | None) -> None:
        self._emit(OrderStatusChanged(
            event_id=uuid4(),
            aggregate_id=order.id,
            event_type="OrderStatusChanged",
            previous_status=previous_status.value,
            status=order.status.value,
            actor=actor,
        ))

    def _emit(self, event) -> None:
        self.outbox_repo.add_event(event, AggregateType.ORDER)
