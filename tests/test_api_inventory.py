class TestRestockEndpoint:
    def test_restock(self, client, admin, sweet, auth_header):
        resp = client.post(
            f"/api/v1/inventory/{sweet.id}/restock", json={"quantity": 30}, headers=auth_header(admin)
        )
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["data"]["previousQuantity"] == 50
        assert body["data"]["newQuantity"] == 80
        assert body["data"]["stockMovement"]["type"] == "RESTOCK"
        assert body["data"]["stockMovement"]["reason"] == "Restock of 30 units"
        assert body["data"]["inventory"]["lastRestockedAt"] is not None

    def test_restock_bounds(self, client, admin, sweet, auth_header):
        for quantity in (0, 10001, "5"):
            resp = client.post(
                f"/api/v1/inventory/{sweet.id}/restock", json={"quantity": quantity}, headers=auth_header(admin)
            )
            assert resp.status_code == 400

    def test_admin_only(self, client, user, sweet, auth_header):
        resp = client.post(f"/api/v1/inventory/{sweet.id}/restock", json={"quantity": 5}, headers=auth_header(user))
        assert resp.status_code == 403

    def test_unknown_sweet(self, client, admin, auth_header):
        resp = client.post("/api/v1/inventory/missing/restock", json={"quantity": 5}, headers=auth_header(admin))
        assert resp.status_code == 404


class TestUpdateInventoryEndpoint:
    def test_threshold_validation_message(self, client, admin, sweet, auth_header):
        resp = client.put(
            f"/api/v1/inventory/{sweet.id}",
            json={"minStockLevel": 50, "maxStockLevel": 10},
            headers=auth_header(admin),
        )
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Minimum stock level must be less than maximum stock level"

    def test_quantity_override_shows_in_movements(self, client, admin, sweet, auth_header):
        resp = client.put(
            f"/api/v1/inventory/{sweet.id}",
            json={"quantity": 60, "reorderPoint": 12, "reason": "Stock count"},
            headers=auth_header(admin),
        )
        assert resp.status_code == 200
        assert resp.get_json()["data"]["quantity"] == 60
        assert resp.get_json()["data"]["reorderPoint"] == 12

        movements = client.get(
            f"/api/v1/inventory/movements?sweetId={sweet.id}", headers=auth_header(admin)
        ).get_json()["data"]
        assert movements["summary"] == {"ADJUSTMENT_IN": {"count": 1, "quantity": 10}}
        assert movements["netChange"] == 10
        assert movements["movements"][0]["delta"] == 10

    def test_empty_body(self, client, admin, sweet, auth_header):
        resp = client.put(f"/api/v1/inventory/{sweet.id}", json={}, headers=auth_header(admin))
        assert resp.status_code == 400


class TestInventoryViews:
    def test_low_stock_cache_is_invalidated_by_purchases(self, client, user, admin, make_sweet, auth_header):
        plenty = make_sweet("Gummy Bears", quantity=100, category="GUMMIES")

        first = client.get("/api/v1/inventory/low-stock", headers=auth_header(admin)).get_json()["data"]
        assert first == []

        client.post("/api/v1/purchases", json={"sweetId": plenty.id, "quantity": 85}, headers=auth_header(user))

        second = client.get("/api/v1/inventory/low-stock", headers=auth_header(admin)).get_json()["data"]
        assert [item["sweet"]["name"] for item in second] == ["Gummy Bears"]
        assert second[0]["quantity"] == 15

    def test_status_and_detail(self, client, admin, sweet, auth_header):
        status = client.get("/api/v1/inventory", headers=auth_header(admin)).get_json()["data"]
        assert status["stats"]["totalItems"] == 1
        assert status["stats"]["totalValue"] == 125.0

        detail = client.get(f"/api/v1/inventory/{sweet.id}", headers=auth_header(admin)).get_json()["data"]
        assert detail["stockStatus"] == "NORMAL"
        assert detail["daysSinceRestock"] is None
        assert detail["totalMovements"] == 0


class TestSweetEndpoints:
    def test_catalog_crud(self, client, admin, user, auth_header):
        payload = {"name": "Rocky Road", "category": "CHOCOLATES", "price": 3.2, "quantity": 40}

        assert client.post("/api/v1/sweets", json=payload, headers=auth_header(user)).status_code == 403

        created = client.post("/api/v1/sweets", json=payload, headers=auth_header(admin))
        assert created.status_code == 201
        sweet = created.get_json()["data"]
        assert sweet["price"] == 3.2
        assert sweet["inventory"]["maxStockLevel"] == 400

        dup = client.post("/api/v1/sweets", json={**payload, "name": "rocky road"}, headers=auth_header(admin))
        assert dup.status_code == 409

        listed = client.get("/api/v1/sweets?category=CHOCOLATES").get_json()["data"]
        assert listed["pagination"]["total"] == 1

        updated = client.put(f"/api/v1/sweets/{sweet['id']}", json={"price": 3.5}, headers=auth_header(admin))
        assert updated.get_json()["data"]["price"] == 3.5
        assert client.get(f"/api/v1/sweets/{sweet['id']}").get_json()["data"]["price"] == 3.5

        deleted = client.delete(f"/api/v1/sweets/{sweet['id']}", headers=auth_header(admin))
        assert deleted.get_json()["data"]["outcome"] == "deleted"
        assert client.get(f"/api/v1/sweets/{sweet['id']}").status_code == 404

    def test_detail_cache_reflects_purchases(self, client, user, sweet, auth_header):
        before = client.get(f"/api/v1/sweets/{sweet.id}").get_json()["data"]
        assert before["inventory"]["quantity"] == 50

        client.post("/api/v1/purchases", json={"sweetId": sweet.id, "quantity": 5}, headers=auth_header(user))

        after = client.get(f"/api/v1/sweets/{sweet.id}").get_json()["data"]
        assert after["inventory"]["quantity"] == 45
