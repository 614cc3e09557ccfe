"""
Integration tests for GraphQL API.
"""
import json
from decimal import Decimal

from fulfillment.domain.invoice import InvoiceStatus
from fulfillment.test.base import FulfillmentTestCase


class GraphQLAPITest(FulfillmentTestCase):
    """Integration tests for GraphQL API."""

    def execute(self, query, variables=None, headers=None):
        response = self.client.post(
            "/graphql/",
            data={"query": query, "variables": variables or {}},
            content_type="application/json",
            headers=headers or {},
        )
        return response, json.loads(response.content)

    def create_order_via_api(self, quantity=2, headers=None):
        query = """
            mutation CreateOrder($input: CreateOrderInput!) {
                createOrder(input: $input) {
                    id
                    orderNumber
                    status
                    subtotal
                    totalAmount
                    createdBy
                    items { productId quantity unitPrice total }
                }
            }
        """
        variables = {
            "input": {
                "customerId": str(self.customer_id),
                "items": [{"productId": str(self.widget_id), "quantity": quantity}],
                "shippingCost": "5.00",
                "shippingCity": "Lisbon",
            }
        }
        return self.execute(query, variables, headers)

    def test_create_order_mutation(self):
        response, data = self.create_order_via_api(headers={"X-User-ID": "user-7"})

        self.assertEqual(response.status_code, 200)
        order = data["data"]["createOrder"]
        self.assertEqual(order["status"], "PENDING")
        self.assertEqual(order["subtotal"], "20.00")
        self.assertEqual(order["totalAmount"], "25.00")
        self.assertEqual(order["createdBy"], "user-7")
        self.assertEqual(order["items"][0]["quantity"], 2)
        self.assertEqual(self.stock(self.widget_id), 8)

    def test_insufficient_stock_error(self):
        response, data = self.create_order_via_api(quantity=11)

        self.assertEqual(response.status_code, 400)
        error = data["errors"][0]
        self.assertEqual(error["extensions"]["code"], "INSUFFICIENT_STOCK")
        self.assertEqual(error["extensions"]["status"], 400)
        self.assertIn("Widget", error["message"])
        self.assertEqual(self.stock(self.widget_id), 10)

    def test_not_found_maps_to_404(self):
        response, data = self.execute(
            'query { order(id: "00000000-0000-0000-0000-000000000000") { id } }'
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(data["errors"][0]["extensions"]["code"], "NOT_FOUND")

    def test_invoice_and_payment_flow(self):
        _, data = self.create_order_via_api()
        order_id = data["data"]["createOrder"]["id"]

        _, data = self.execute(
            """
            mutation($input: CreateInvoiceInput!) {
                createInvoice(input: $input) { id status totalAmount amountDue }
            }
            """,
            {"input": {"customerId": str(self.customer_id), "orderId": order_id}},
        )
        invoice = data["data"]["createInvoice"]
        self.assertEqual(invoice["totalAmount"], "25.00")
        self.assertEqual(invoice["status"], "PENDING")

        _, data = self.execute(
            """
            mutation($input: CreatePaymentInput!) {
                createPayment(input: $input) { id amount paymentMethod }
            }
            """,
            {"input": {"invoiceId": invoice["id"], "amount": "10.00", "paymentMethod": "CREDIT_CARD"}},
        )
        payment = data["data"]["createPayment"]
        self.assertEqual(payment["paymentMethod"], "CREDIT_CARD")

        _, data = self.execute(
            """
            query($orderId: UUID!) {
                invoiceForOrder(orderId: $orderId) {
                    status amountPaid amountDue payments { id amount }
                }
                order(id: $orderId) { paymentStatus invoice { id } }
            }
            """,
            {"orderId": order_id},
        )
        self.assertEqual(data["data"]["invoiceForOrder"]["status"], InvoiceStatus.PARTIALLY_PAID.value)
        self.assertEqual(data["data"]["invoiceForOrder"]["amountDue"], "15.00")
        self.assertEqual(len(data["data"]["invoiceForOrder"]["payments"]), 1)
        self.assertEqual(data["data"]["order"]["paymentStatus"], "PARTIALLY_PAID")
        self.assertEqual(data["data"]["order"]["invoice"]["id"], invoice["id"])

        _, data = self.execute(
            """
            mutation($id: UUID!) {
                deletePayment(id: $id) { paymentId invoice { status amountPaid } }
            }
            """,
            {"id": payment["id"]},
        )
        result = data["data"]["deletePayment"]
        self.assertEqual(result["paymentId"], payment["id"])
        self.assertEqual(result["invoice"]["status"], "PENDING")
        self.assertEqual(result["invoice"]["amountPaid"], "0.00")

    def test_duplicate_invoice_conflict(self):
        _, data = self.create_order_via_api()
        order_id = data["data"]["createOrder"]["id"]
        mutation = """
            mutation($input: CreateInvoiceInput!) { createInvoice(input: $input) { id } }
        """
        variables = {"input": {"customerId": str(self.customer_id), "orderId": order_id}}
        self.execute(mutation, variables)
        response, data = self.execute(mutation, variables)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(data["errors"][0]["extensions"]["code"], "CONFLICT")

    def test_update_and_cancel_order(self):
        _, data = self.create_order_via_api()
        order_id = data["data"]["createOrder"]["id"]

        _, data = self.execute(
            """
            mutation($id: UUID!, $input: UpdateOrderInput!) {
                updateOrder(id: $id, input: $input) { status notes shippingCity totalAmount }
            }
            """,
            {"id": order_id, "input": {"status": "CONFIRMED", "notes": "rush"}},
        )
        updated = data["data"]["updateOrder"]
        self.assertEqual(updated["status"], "CONFIRMED")
        self.assertEqual(updated["notes"], "rush")
        self.assertEqual(updated["shippingCity"], "Lisbon")

        _, data = self.execute(
            'mutation($id: UUID!) { cancelOrder(id: $id) { status paymentStatus } }',
            {"id": order_id},
        )
        self.assertEqual(data["data"]["cancelOrder"], {"status": "CANCELLED", "paymentStatus": "CANCELLED"})
        self.assertEqual(self.stock(self.widget_id), 10)

    def test_low_stock_and_reconciliation_queries(self):
        self.create_order_via_api(quantity=6)
        _, data = self.execute(
            """
            query {
                lowStockProducts { sku stockQuantity }
                reconciliation { ok discrepancies { check } }
            }
            """
        )
        self.assertEqual(data["data"]["lowStockProducts"], [{"sku": "WID-1", "stockQuantity": 4}])
        self.assertEqual(data["data"]["reconciliation"], {"ok": True, "discrepancies": []})

    def test_invalid_payload(self):
        response = self.client.post("/graphql/", data="not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(json.loads(response.content)["error"]["code"], "VALIDATION_ERROR")

        response, data = self.execute("query { nope }")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(data["errors"][0]["extensions"]["code"], "VALIDATION_ERROR")

    def test_bad_decimal_is_validation_error(self):
        invoice = self.create_standalone_invoice()
        response, data = self.execute(
            """
            mutation($input: CreatePaymentInput!) { createPayment(input: $input) { id } }
            """,
            {"input": {"invoiceId": str(invoice.id), "amount": "ten", "paymentMethod": "CASH"}},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(data["errors"][0]["extensions"]["code"], "VALIDATION_ERROR")
        self.assertEqual(self.invoice_service.get_invoice(invoice.id).amount_paid, Decimal("0.00"))

    def test_non_finite_decimal_is_validation_error(self):
        invoice = self.create_standalone_invoice()
        for amount in ("NaN", "Infinity"):
            response, data = self.execute(
                """
                mutation($input: CreatePaymentInput!) { createPayment(input: $input) { id } }
                """,
                {"input": {"invoiceId": str(invoice.id), "amount": amount, "paymentMethod": "CASH"}},
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(data["errors"][0]["extensions"]["code"], "VALIDATION_ERROR")
        self.assertEqual(self.payment_service.payments_for_invoice(invoice.id), [])
