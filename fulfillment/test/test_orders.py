"""
Tests for the order engine.
"""
import re
from decimal import Decimal
from uuid import uuid4

from fulfillment.domain.errors import InsufficientStock, InvalidState, NotFound, ValidationError
from fulfillment.domain.order import OrderPaymentStatus, OrderStatus
from fulfillment.infra.models import OrderItemORM, OrderORM, ProductORM
from fulfillment.infra.outbox import OutboxEvent
from fulfillment.test.base import FulfillmentTestCase


class CreateOrderTest(FulfillmentTestCase):

    def test_create_reserves_stock_and_computes_totals(self):
        order = self.order_service.create_order(
            self.customer_id,
            [
                {"product_id": self.widget_id, "quantity": 3, "discount_percent": Decimal("10")},
                {"product_id": self.gadget_id, "quantity": 1, "unit_price": Decimal("20.00"), "tax_percent": Decimal("10")},
            ],
            actor="alice",
            shipping_cost=Decimal("5.00"),
            discount_amount=Decimal("2.00"),
            shipping_city="Lisbon",
        )

        self.assertRegex(order.order_number, r"^ORD-\d{8}-\d{4}$")
        self.assertEqual(order.subtotal, Decimal("49.00"))
        self.assertEqual(order.total_amount, Decimal("52.00"))
        self.assertEqual(order.created_by, "alice")
        self.assertEqual(self.stock(self.widget_id), 7)
        self.assertEqual(self.stock(self.gadget_id), 2)

        stored = OrderORM.objects.get(id=order.id)
        self.assertEqual(stored.subtotal, Decimal("49.00"))
        self.assertEqual(stored.total_amount, Decimal("52.00"))
        self.assertEqual(stored.shipping_city, "Lisbon")
        self.assertEqual(OrderItemORM.objects.filter(order=stored).count(), 2)
        self.assertTrue(OutboxEvent.objects.filter(aggregate_id=order.id, event_type="OrderCreated").exists())

    def test_stock_example(self):
        """Stock 10, reorder 5: take all ten, fail on one more, cancel restores ten."""
        order = self.create_order((self.widget_id, 10))
        self.assertEqual(self.stock(self.widget_id), 0)

        with self.assertRaises(InsufficientStock):
            self.create_order((self.widget_id, 1))

        self.order_service.cancel_order(order.id, actor="tester")
        self.assertEqual(self.stock(self.widget_id), 10)

    def test_insufficient_stock_leaves_nothing_behind(self):
        orders_before = OrderORM.objects.count()
        with self.assertRaises(InsufficientStock):
            self.create_order((self.widget_id, 2), (self.gadget_id, 4))

        self.assertEqual(self.stock(self.widget_id), 10)
        self.assertEqual(self.stock(self.gadget_id), 3)
        self.assertEqual(OrderORM.objects.count(), orders_before)

    def test_unknown_customer(self):
        with self.assertRaises(NotFound):
            self.order_service.create_order(uuid4(), [{"product_id": self.widget_id, "quantity": 1}])

    def test_unknown_product(self):
        with self.assertRaises(NotFound):
            self.create_order((uuid4(), 1))
        self.assertEqual(OrderORM.objects.count(), 0)

    def test_empty_items(self):
        with self.assertRaises(ValidationError):
            self.order_service.create_order(self.customer_id, [])

    def test_unknown_field(self):
        with self.assertRaises(ValidationError):
            self.create_order((self.widget_id, 1), colour="red")

    def test_inactive_product(self):
        ProductORM.objects.filter(id=self.gadget_id).update(active=False)
        with self.assertRaises(InvalidState):
            self.create_order((self.gadget_id, 1))
        self.assertEqual(self.stock(self.gadget_id), 3)


class UpdateOrderTest(FulfillmentTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.create_order((self.widget_id, 2))

    def test_replace_items_moves_stock(self):
        order = self.order_service.update_order(
            self.order.id,
            {"items": [{"product_id": self.gadget_id, "quantity": 2}]},
        )
        self.assertEqual(self.stock(self.widget_id), 10)
        self.assertEqual(self.stock(self.gadget_id), 1)
        self.assertEqual(order.subtotal, Decimal("50.00"))
        self.assertEqual(OrderORM.objects.get(id=order.id).subtotal, Decimal("50.00"))

    def test_failed_replacement_rolls_back(self):
        with self.assertRaises(InsufficientStock):
            self.order_service.update_order(
                self.order.id,
                {"items": [{"product_id": self.gadget_id, "quantity": 9}]},
            )
        self.assertEqual(self.stock(self.widget_id), 8)
        self.assertEqual(self.stock(self.gadget_id), 3)
        self.assertEqual(self.order_service.get_order(self.order.id).subtotal, Decimal("20.00"))

    def test_partial_update_keeps_other_fields(self):
        self.order_service.update_order(self.order.id, {"notes": "Leave at door", "shipping_city": "Porto"})
        order = self.order_service.update_order(self.order.id, {"tax_amount": Decimal("3.50")})
        self.assertEqual(order.notes, "Leave at door")
        self.assertEqual(order.shipping_city, "Porto")
        self.assertEqual(order.total_amount, Decimal("23.50"))
        self.assertEqual(self.stock(self.widget_id), 8)

    def test_empty_items_list_keeps_items(self):
        order = self.order_service.update_order(self.order.id, {"items": []})
        self.assertEqual(len(order.items), 1)
        self.assertEqual(self.stock(self.widget_id), 8)

    def test_status_patch_follows_transitions(self):
        order = self.order_service.update_order(self.order.id, {"status": "CONFIRMED"})
        self.assertEqual(order.status, OrderStatus.CONFIRMED)
        with self.assertRaises(InvalidState):
            self.order_service.update_order(self.order.id, {"status": "DELIVERED"})
        with self.assertRaises(InvalidState):
            self.order_service.update_order(self.order.id, {"status": "CANCELLED"})

    def test_terminal_order_is_read_only(self):
        self.order_service.cancel_order(self.order.id)
        with self.assertRaises(InvalidState):
            self.order_service.update_order(self.order.id, {"notes": "too late"})


class OrderStatusTest(FulfillmentTestCase):

    def test_walk_to_delivered(self):
        order = self.create_order((self.widget_id, 1))
        for status in ("CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED"):
            order = self.order_service.change_status(order.id, status, actor="ops")
        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertIsNotNone(order.delivery_date)
        with self.assertRaises(InvalidState):
            self.order_service.cancel_order(order.id)
        self.assertEqual(
            OutboxEvent.objects.filter(aggregate_id=order.id, event_type="OrderStatusChanged").count(),
            4,
        )

    def test_skip_is_rejected(self):
        order = self.create_order((self.widget_id, 1))
        with self.assertRaises(InvalidState):
            self.order_service.change_status(order.id, OrderStatus.SHIPPED)

    def test_returned_keeps_stock_out(self):
        order = self.create_order((self.widget_id, 2))
        self.order_service.change_status(order.id, OrderStatus.RETURNED)
        self.assertEqual(self.stock(self.widget_id), 8)


class CancelOrderTest(FulfillmentTestCase):

    def test_create_then_cancel_round_trips_stock(self):
        order = self.create_order((self.widget_id, 4), (self.gadget_id, 2))
        cancelled = self.order_service.cancel_order(order.id, actor="tester")
        self.assertEqual(cancelled.status, OrderStatus.CANCELLED)
        self.assertEqual(cancelled.payment_status, OrderPaymentStatus.CANCELLED)
        self.assertEqual(self.stock(self.widget_id), 10)
        self.assertEqual(self.stock(self.gadget_id), 3)

    def test_repeat_cancel_is_noop(self):
        order = self.create_order((self.widget_id, 4))
        self.order_service.cancel_order(order.id)
        again = self.order_service.cancel_order(order.id)
        self.assertEqual(again.status, OrderStatus.CANCELLED)
        self.assertEqual(self.stock(self.widget_id), 10)
        self.assertEqual(
            OutboxEvent.objects.filter(aggregate_id=order.id, event_type="OrderCancelled").count(),
            1,
        )

    def test_missing_order(self):
        with self.assertRaises(NotFound):
            self.order_service.cancel_order(uuid4())


class OrderQueryTest(FulfillmentTestCase):

    def test_lookup_and_filters(self):
        first = self.create_order((self.widget_id, 1))
        second = self.create_order((self.widget_id, 1))
        self.order_service.cancel_order(second.id)

        self.assertEqual(self.order_service.get_order_by_number(first.order_number).id, first.id)
        self.assertEqual(len(self.order_service.list_orders(customer_id=self.customer_id)), 2)
        cancelled = self.order_service.list_orders(status=OrderStatus.CANCELLED)
        self.assertEqual([order.id for order in cancelled], [second.id])
        self.assertTrue(re.match(r"^ORD-", first.order_number))

        with self.assertRaises(NotFound):
            self.order_service.get_order_by_number("ORD-19990101-0000")
        with self.assertRaises(NotFound):
            self.order_service.list_orders(customer_id=uuid4())
