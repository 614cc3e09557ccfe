"""
Domain model for Order aggregate.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from fulfillment.domain.errors import InvalidState, ValidationError, ensure_non_negative
from fulfillment.domain.money import HUNDRED, ZERO, to_money, to_percent


class OrderStatus(str, Enum):
    """Order status enumeration."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class OrderPaymentStatus(str, Enum):
    """Payment status of an order, mirrored from its invoice."""
    PENDING = "PENDING"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
})

# CANCELLED is reachable from every non-terminal status, but only through
# Order.cancel() because it has to release stock.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.RETURNED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.RETURNED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.RETURNED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}


class OrderItem:
    """Order line item value object."""

    def __init__(
        self,
        product_id: UUID,
        quantity: int,
        unit_price: Decimal,
        discount_percent: Decimal | None = None,
        tax_percent: Decimal | None = None,
        id: UUID | None = None,
    ):
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        unit_price = to_money(unit_price)
        ensure_non_negative(unit_price, "Unit price")
        discount_percent = to_percent(discount_percent)
        tax_percent = to_percent(tax_percent)
        if not ZERO <= discount_percent <= HUNDRED:
            raise ValidationError("Discount percent must be between 0 and 100")
        ensure_non_negative(tax_percent, "Tax percent")

        self.id = id or uuid4()
        self.product_id = product_id
        self.quantity = quantity
        self.unit_price = unit_price
        self.discount_percent = discount_percent
        self.tax_percent = tax_percent

    @property
    def total(self) -> Decimal:
        """Line total after discount, then tax."""
        amount = self.unit_price * self.quantity
        amount = amount * (1 - self.discount_percent / HUNDRED)
        amount = amount * (1 + self.tax_percent / HUNDRED)
        return to_money(amount)


class Order:
    """Order aggregate root."""

    def __init__(
        self,
        id: UUID | None = None,
        order_number: str = "",
        customer_id: UUID | None = None,
        items: list[OrderItem] | None = None,
        status: OrderStatus = OrderStatus.PENDING,
        payment_status: OrderPaymentStatus = OrderPaymentStatus.PENDING,
        tax_amount: Decimal = ZERO,
        shipping_cost: Decimal = ZERO,
        discount_amount: Decimal = ZERO,
        order_date: datetime | None = None,
        delivery_date: datetime | None = None,
        shipping_address: str = "",
        shipping_city: str = "",
        shipping_state: str = "",
        shipping_country: str = "",
        shipping_postal_code: str = "",
        shipping_method: str = "",
        payment_method: str = "",
        notes: str = "",
        created_by: str | None = None,
    ):
        self.id = id or uuid4()
        self.order_number = order_number
        self.customer_id = customer_id
        self._items = items or []
        self._status = status
        self.payment_status = payment_status
        self.tax_amount = to_money(tax_amount)
        self.shipping_cost = to_money(shipping_cost)
        self.discount_amount = to_money(discount_amount)
        self.order_date = order_date
        self.delivery_date = delivery_date
        self.shipping_address = shipping_address
        self.shipping_city = shipping_city
        self.shipping_state = shipping_state
        self.shipping_country = shipping_country
        self.shipping_postal_code = shipping_postal_code
        self.shipping_method = shipping_method
        self.payment_method = payment_method
        self.notes = notes
        self.created_by = created_by

    @property
    def items(self) -> list[OrderItem]:
        """Get order items (immutable)."""
        return list(self._items)

    @property
    def status(self) -> OrderStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def subtotal(self) -> Decimal:
        return to_money(sum((item.total for item in self._items), ZERO))

    @property
    def total_amount(self) -> Decimal:
        """subtotal + tax + shipping - discount."""
        return to_money(
            self.subtotal + self.tax_amount + self.shipping_cost - self.discount_amount
        )

    def ensure_editable(self) -> None:
        if self.is_terminal:
            raise InvalidState(
                f"Order {self.order_number or self.id} is {self._status.value} and cannot be modified"
            )

    def add_item(self, item: OrderItem) -> None:
        self.ensure_editable()
        self._items.append(item)

    def replace_items(self, items: list[OrderItem]) -> list[OrderItem]:
        """Swap the line items, returning the discarded ones."""
        self.ensure_editable()
        removed = self._items
        self._items = list(items)
        return removed

    def set_charges(
        self,
        tax_amount: Decimal | None = None,
        shipping_cost: Decimal | None = None,
        discount_amount: Decimal | None = None,
    ) -> None:
        if tax_amount is not None:
            self.tax_amount = to_money(tax_amount)
            ensure_non_negative(self.tax_amount, "Tax amount")
        if shipping_cost is not None:
            self.shipping_cost = to_money(shipping_cost)
            ensure_non_negative(self.shipping_cost, "Shipping cost")
        if discount_amount is not None:
            self.discount_amount = to_money(discount_amount)
            ensure_non_negative(self.discount_amount, "Discount amount")

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self._status]

    def transition_to(self, status: OrderStatus, now: datetime | None = None) -> None:
        """Move along the fulfillment path. Cancellation goes through cancel()."""
        if status == OrderStatus.CANCELLED:
            raise InvalidState("Use cancel to cancel an order")
        if status == self._status:
            return
        if not self.can_transition_to(status):
            raise InvalidState(
                f"Cannot move order {self.order_number or self.id} "
                f"from {self._status.value} to {status.value}"
            )
        self._status = status
        if status == OrderStatus.DELIVERED and self.delivery_date is None:
            self.delivery_date = now

    def cancel(self) -> list[OrderItem]:
        """
        Cancel the order and return the items whose stock must be released.

        Cancelling an already cancelled order returns no items, so stock is
        never released twice.
        """
        if self._status == OrderStatus.CANCELLED:
            return []
        if self._status in (OrderStatus.DELIVERED, OrderStatus.RETURNED):
            raise InvalidState(f"Cannot cancel {self._status.value.lower()} orders")

        self._status = OrderStatus.CANCELLED
        self.payment_status = OrderPaymentStatus.CANCELLED
        return self.items
