"""Integration tests for checkout, gateway verification and customer order endpoints."""

from orderflow.catalog.product import Product
from orderflow.order.order import Order
from protean import current_domain
from protean.exceptions import ExpectedVersionError


def _stock(product):
    return current_domain.repository_for(Product).get(product.id).stock


class TestCheckoutSummary:
    def test_summary(self, client, customer_headers, fill_cart):
        fill_cart()

        response = client.get("/checkout/summary", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["total"] == 250.0

    def test_summary_of_empty_cart(self, client, customer_headers):
        assert client.get("/checkout/summary", headers=customer_headers).status_code == 400


class TestOfflineCheckout:
    def test_bank_transfer(self, client, customer_headers, checkout_body, fill_cart):
        product = fill_cart()

        response = client.post("/checkout/bank-transfer", json=checkout_body, headers=customer_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["total"] == 250.0
        assert body["payment_status"] == "pending"
        assert body["order_status"] == "pending"
        assert body["order_number"].startswith("ORD-")
        assert body["payment_instructions"]["reference"] == body["order_number"]
        assert body["payment_instructions"]["bank_name"]
        assert _stock(product) == 3

    def test_cash_on_delivery(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        response = client.post("/checkout/cash-on-delivery", json=checkout_body, headers=customer_headers)

        assert response.status_code == 201
        assert response.json()["payment_instructions"]["payment_method"] == "cash_on_delivery"

    def test_missing_phone_rejected(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        checkout_body["shipping_address"]["phone"] = ""

        response = client.post("/checkout/bank-transfer", json=checkout_body, headers=customer_headers)

        assert response.status_code == 400
        assert current_domain.repository_for(Order).matching() == []

    def test_insufficient_stock_at_checkout(self, client, customer_headers, checkout_body, fill_cart):
        product = fill_cart()
        repo = current_domain.repository_for(Product)
        stored = repo.get(product.id)
        stored.stock = 1
        repo.add(stored)

        response = client.post("/checkout/bank-transfer", json=checkout_body, headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["available"] == 1
        assert _stock(product) == 1


class TestGatewayCheckout:
    def test_initialize_places_order_and_opens_session(self, client, customer_headers, checkout_body, fill_cart):
        product = fill_cart()

        response = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["authorization_url"].startswith("https://checkout.fake-gateway.test/")
        assert body["amount"] == 250.0
        assert _stock(product) == 3

    def test_initialize_existing_order_reuses_session(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        first = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers).json()

        response = client.post(
            "/checkout/gateway/initialize",
            json={"order_number": first["order_number"]},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["reused"] is True
        assert response.json()["authorization_url"] == first["authorization_url"]

    def test_gateway_outage_is_502_and_order_stays_pending(
        self, client, customer_headers, checkout_body, fill_cart, gateway
    ):
        fill_cart()
        gateway.configure(fail_with="error")

        response = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers)

        assert response.status_code == 502
        assert "error" in response.json()
        orders = current_domain.repository_for(Order).matching()
        assert len(orders) == 1
        assert orders[0].order_status == "pending"

    def test_verify(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        session = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers).json()

        response = client.get(f"/checkout/gateway/verify/{session['reference']}", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["payment_status"] == "completed"
        assert response.json()["order_status"] == "processing"

    def test_verify_timeout_is_202(self, client, customer_headers, checkout_body, fill_cart, gateway):
        fill_cart()
        session = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers).json()
        gateway.configure(fail_with="timeout")

        response = client.get(f"/checkout/gateway/verify/{session['reference']}", headers=customer_headers)

        assert response.status_code == 202
        assert response.json()["status"] == "pending"

    def test_verify_unknown_reference(self, client, customer_headers):
        response = client.get("/checkout/gateway/verify/ORD-0000000000000-XXXXX", headers=customer_headers)
        assert response.status_code == 404

    def test_verify_of_another_customers_payment_is_404(
        self, client, customer_headers, checkout_body, fill_cart, gateway
    ):
        fill_cart()
        session = client.post("/checkout/gateway/initialize", json=checkout_body, headers=customer_headers).json()
        reference = session["reference"]

        response = client.get(f"/checkout/gateway/verify/{reference}", headers={"X-User-Id": "someone-else"})

        assert response.status_code == 404
        assert not [call for call in gateway.calls if call["method"] == "verify"]
        assert current_domain.repository_for(Order).matching()[0].payment_status == "pending"


class TestCustomerOrders:
    def _place(self, client, customer_headers, checkout_body):
        return client.post("/checkout/bank-transfer", json=checkout_body, headers=customer_headers).json()

    def test_list_and_get(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        listed = client.get("/orders", headers=customer_headers).json()
        detail = client.get(f"/orders/{placed['order_id']}", headers=customer_headers).json()

        assert [o["order_number"] for o in listed] == [placed["order_number"]]
        assert len(detail["items"]) == 2
        assert detail["payment"]["status"] == "pending"

    def test_other_customers_order_is_404(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        response = client.get(f"/orders/{placed['order_id']}", headers={"X-User-Id": "someone-else"})

        assert response.status_code == 404

    def test_cancel(self, client, customer_headers, checkout_body, fill_cart):
        product = fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        response = client.post(
            f"/orders/{placed['order_id']}/cancel",
            json={"reason": "Changed my mind"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["order_status"] == "cancelled"
        assert response.json()["cancelled_by"] == "Customer"
        assert _stock(product) == 5

        again = client.post(f"/orders/{placed['order_id']}/cancel", headers=customer_headers)
        assert again.status_code == 409

    def test_get_by_number(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        response = client.get(f"/orders/number/{placed['order_number']}", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["order_id"] == placed["order_id"]
        assert response.json()["payment"]["transaction_reference"] == placed["order_number"]

    def test_other_customers_order_number_is_404(self, client, customer_headers, checkout_body, fill_cart):
        fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        response = client.get(f"/orders/number/{placed['order_number']}", headers={"X-User-Id": "someone-else"})

        assert response.status_code == 404

    def test_write_conflict_that_outlasts_retries_is_409(
        self, client, customer_headers, checkout_body, fill_cart, monkeypatch
    ):
        fill_cart()
        placed = self._place(client, customer_headers, checkout_body)

        def always_stale(self, *args, **kwargs):
            raise ExpectedVersionError(f"Wrong expected version (Aggregate: Order({self.id}))")

        monkeypatch.setattr(Order, "cancel", always_stale)

        response = client.post(f"/orders/{placed['order_id']}/cancel", headers=customer_headers)

        assert response.status_code == 409
        assert response.json() == {"error": "The resource was modified concurrently, please retry"}
        assert current_domain.repository_for(Order).get(placed["order_id"]).order_status == "pending"
