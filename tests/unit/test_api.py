"""Unit tests for the HTTP API (catalog, cart, checkout, orders)."""
from urllib.parse import unquote


def checkout_payload(**overrides):
    payload = {
        "name": "Ana Perez",
        "phone": "1155550000",
        "payment_method": "cash",
        "cash_amount": 50000,
        "delivery_method": "pickup",
        "scheduling_type": "immediate",
    }
    payload.update(overrides)
    return payload


class TestHealthAndCatalog:
    """Test health and catalog endpoints."""

    def test_health(self, test_client):
        """Test health reports a reachable database."""
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok"}

    def test_get_catalog(self, test_client):
        """Test the catalog lists seeded products."""
        response = test_client.get("/api/catalog")

        assert response.status_code == 200
        data = response.json()
        assert {product["id"] for product in data["products"]} >= {"beef", "mixed-dozen", "pasta"}
        assert "drinks" in data["categories"]

    def test_get_product(self, test_client):
        """Test fetching a single product."""
        response = test_client.get("/api/catalog/mixed-dozen")

        assert response.status_code == 200
        assert response.json()["recipe"] == {"flavor-x": 6, "flavor-y": 6}

    def test_get_product_missing(self, test_client):
        """Test a missing product is a 404."""
        assert test_client.get("/api/catalog/ghost").status_code == 404


class TestCartEndpoints:
    """Test cart endpoints."""

    def test_add_and_merge_lines(self, test_client):
        """Test adding the same selection twice merges and prices the cart."""
        body = {"product_id": "pasta", "quantity": 1, "selected_modifiers": {"sauce": "bolognesa"}}

        test_client.post("/api/carts/c1/lines", json=body)
        response = test_client.post("/api/carts/c1/lines", json=body)

        assert response.status_code == 200
        data = response.json()
        assert len(data["lines"]) == 1
        assert data["lines"][0]["quantity"] == 2
        assert data["lines"][0]["unit_price"] == 7700
        assert data["total"] == 15400
        assert data["warning"] is None

    def test_add_beyond_stock_returns_warning(self, test_client):
        """Test the cart refuses to exceed known stock and says why."""
        response = test_client.post("/api/carts/c1/lines", json={"product_id": "product-a", "quantity": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["lines"] == []
        assert "Product A" in data["warning"]

    def test_add_invalid_selection(self, test_client):
        """Test an unknown option is a 409 with the error payload."""
        response = test_client.post(
            "/api/carts/c1/lines",
            json={"product_id": "pasta", "selected_modifiers": {"sauce": "pesto"}},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "modifier_not_recognized"

    def test_add_missing_required_group(self, test_client):
        """Test a missing required group is a 422."""
        response = test_client.post("/api/carts/c1/lines", json={"product_id": "pasta"})

        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "selected_modifiers.sauce"

    def test_add_unknown_product(self, test_client):
        """Test adding an unknown product is a 404."""
        response = test_client.post("/api/carts/c1/lines", json={"product_id": "ghost"})
        assert response.status_code == 404

    def test_increase_decrease_remove(self, test_client):
        """Test line quantity transitions."""
        response = test_client.post(
            "/api/carts/c1/lines", json={"product_id": "beef", "selected_tier": "unit"}
        )
        key = response.json()["lines"][0]["key"]

        response = test_client.post(f"/api/carts/c1/lines/{key}/increase")
        assert response.json()["lines"][0]["quantity"] == 2

        response = test_client.post(f"/api/carts/c1/lines/{key}/decrease")
        assert response.json()["lines"][0]["quantity"] == 1

        response = test_client.delete(f"/api/carts/c1/lines/{key}")
        assert response.json()["lines"] == []

    def test_unknown_line_key(self, test_client):
        """Test transitions on an unknown line are 404s."""
        assert test_client.post("/api/carts/c1/lines/missing/increase").status_code == 404

    def test_clear_cart(self, test_client):
        """Test clearing the cart."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "mixed-dozen"})

        response = test_client.delete("/api/carts/c1")

        assert response.status_code == 200
        assert response.json()["lines"] == []


class TestCheckoutAndOrders:
    """Test checkout and order endpoints."""

    def test_checkout(self, test_client):
        """Test checkout commits the order, clears the cart and returns the link."""
        test_client.post(
            "/api/carts/c1/lines",
            json={"product_id": "mixed-dozen", "recipe_selection": {"flavor-x": 4, "flavor-y": 8}},
        )

        response = test_client.post("/api/carts/c1/checkout", json=checkout_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "pending"
        assert data["order"]["total"] == 9000
        assert data["order"]["eta_minutes"] == 30
        link = data["notification"]["link"]
        assert link.startswith("https://wa.me/5491155550000?text=")
        assert "*Change:* $41000" in unquote(link)
        assert test_client.get("/api/carts/c1").json()["lines"] == []

        product = test_client.get("/api/catalog/flavor-x").json()
        assert product["stock"] == 7

    def test_checkout_empty_cart(self, test_client):
        """Test an empty cart cannot be checked out."""
        response = test_client.post("/api/carts/c1/checkout", json=checkout_payload())

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "validation_error"

    def test_checkout_insufficient_stock(self, test_client):
        """Test a short constituent is a 409 naming the product and keeps the cart."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "mixed-dozen", "quantity": 2})

        response = test_client.post("/api/carts/c1/checkout", json=checkout_payload())

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "stock_insufficient"
        assert detail["product_id"] == "mixed-dozen"
        assert detail["constituent_id"] == "flavor-x"
        assert len(test_client.get("/api/carts/c1").json()["lines"]) == 1

    def test_checkout_invalid_customer(self, test_client):
        """Test customer validation errors surface with their field."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "product-a"})

        response = test_client.post(
            "/api/carts/c1/checkout", json=checkout_payload(phone="12ab")
        )

        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "phone"

    def test_list_and_update_orders(self, test_client):
        """Test listing orders and updating their status."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "product-a"})
        order_id = test_client.post(
            "/api/carts/c1/checkout", json=checkout_payload()
        ).json()["order"]["id"]

        orders = test_client.get("/api/orders").json()
        assert [order["id"] for order in orders] == [order_id]

        response = test_client.patch(f"/api/orders/{order_id}/status", json={"status": "processing"})
        assert response.status_code == 200
        assert response.json()["status"] == "processing"

        assert test_client.get(f"/api/orders/{order_id}").json()["status"] == "processing"
        assert test_client.get("/api/orders", params={"status": "pending"}).json() == []

    def test_update_status_invalid(self, test_client):
        """Test an unknown status is a 422 and a missing order a 404."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "product-a"})
        order_id = test_client.post(
            "/api/carts/c1/checkout", json=checkout_payload()
        ).json()["order"]["id"]

        response = test_client.patch(f"/api/orders/{order_id}/status", json={"status": "shipped"})
        assert response.status_code == 422

        response = test_client.patch("/api/orders/999/status", json={"status": "completed"})
        assert response.status_code == 404

    def test_checkout_refreshes_other_open_carts(self, test_client):
        """Test another open cart sees the stock a checkout consumed."""
        test_client.post("/api/carts/c1/lines", json={"product_id": "product-a"})
        test_client.post("/api/carts/c2/lines", json={"product_id": "product-a"})
        assert test_client.get("/api/carts/c2").json()["lines"][0]["known_stock"] == 1

        response = test_client.post("/api/carts/c1/checkout", json=checkout_payload())
        assert response.status_code == 200

        line = test_client.get("/api/carts/c2").json()["lines"][0]
        assert line["known_stock"] == 0

    def test_order_changes_polling(self, test_client):
        """Test the order list can poll for created and updated orders."""
        assert test_client.get("/api/orders/changes").json() == {"cursor": 0, "orders": []}

        test_client.post("/api/carts/c1/lines", json={"product_id": "product-a"})
        order_id = test_client.post(
            "/api/carts/c1/checkout", json=checkout_payload()
        ).json()["order"]["id"]

        changes = test_client.get("/api/orders/changes", params={"since": 0}).json()
        assert [order["id"] for order in changes["orders"]] == [order_id]
        cursor = changes["cursor"]

        test_client.patch(f"/api/orders/{order_id}/status", json={"status": "processing"})

        changes = test_client.get("/api/orders/changes", params={"since": cursor}).json()
        assert [order["status"] for order in changes["orders"]] == ["processing"]
        assert changes["cursor"] > cursor
