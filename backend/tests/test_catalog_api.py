# Overview: Pytest coverage for products, categories, suppliers, clients and expenses CRUD.

from stockledger.models import Client, Expense, ExpenseCategory, Product
from stockledger.services import ledger_service

from conftest import make_product, sale_payload


class TestProductsApi:

    def test_create_and_update(self, client, db_session, headers_a):
        created = client.post("/api/products", json={
            "sku": "FLOUR-25", "name": "Flour 25kg", "price_cents": 1250, "quantity": 4, "unit": "KG",
        }, headers=headers_a)

        assert created.status_code == 201
        product = created.json["data"]
        assert product["unit"] == "KG"

        updated = client.put(f"/api/products/{product['id']}", json={"min_quantity": 10}, headers=headers_a)
        assert updated.status_code == 200
        assert updated.json["data"]["min_quantity"] == 10
        assert updated.json["data"]["sku"] == "FLOUR-25"

    def test_duplicate_sku_conflicts(self, client, db_session, headers_a, product_a):
        response = client.post("/api/products", json={
            "sku": product_a.sku, "name": "Dup", "price_cents": 1,
        }, headers=headers_a)

        assert response.status_code == 409
        assert "sku" in response.json["errors"]

    def test_same_sku_allowed_for_other_tenant(self, client, db_session, headers_b, product_a):
        response = client.post("/api/products", json={
            "sku": product_a.sku, "name": "Mine", "price_cents": 1,
        }, headers=headers_b)
        assert response.status_code == 201

    def test_create_validation(self, client, db_session, headers_a):
        response = client.post("/api/products", json={
            "name": "No SKU", "price_cents": -5, "unit": "LITRE",
        }, headers=headers_a)

        assert response.status_code == 400
        errors = response.json["errors"]
        assert {"sku", "price_cents", "unit"} <= set(errors)

    def test_foreign_category_reference(self, client, db_session, headers_b, user_a):
        from stockledger.models import Category
        category = Category(user_id=user_a.id, name="A only")
        db_session.add(category)
        db_session.commit()

        response = client.post("/api/products", json={
            "sku": "X", "name": "X", "price_cents": 1, "category_id": category.id,
        }, headers=headers_b)
        assert response.status_code == 404

    def test_search_and_low_stock_filters(self, client, db_session, headers_a, user_a):
        make_product(user_a.id, "SUGAR-1", quantity=1, min_quantity=5)
        make_product(user_a.id, "SALT-1", quantity=9, min_quantity=5)

        found = client.get("/api/products?search=sug", headers=headers_a).json["data"]
        low = client.get("/api/products?low_stock=true", headers=headers_a).json["data"]

        assert [p["sku"] for p in found["items"]] == ["SUGAR-1"]
        assert [p["sku"] for p in low["items"]] == ["SUGAR-1"]

    def test_stock_alerts_endpoint(self, client, db_session, headers_a, user_a):
        make_product(user_a.id, "EMPTY", quantity=0, min_quantity=2)
        make_product(user_a.id, "LOW", quantity=3, min_quantity=4)
        make_product(user_a.id, "FULL", quantity=8, min_quantity=4)

        data = client.get("/api/products/stock-alerts", headers=headers_a).json["data"]

        assert data["count"] == 2
        assert [p["sku"] for p in data["items"]] == ["EMPTY", "LOW"]

    def test_delete_referenced_product_conflicts(self, client, db_session, headers_a, user_a, product_a, client_a):
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1))

        response = client.delete(f"/api/products/{product_a.id}", headers=headers_a)

        assert response.status_code == 409
        assert db_session.get(Product, product_a.id) is not None

    def test_bulk_delete_reports_each_failure(self, client, db_session, headers_a, user_a, product_a, client_a):
        spare = make_product(user_a.id, "SPARE", quantity=0)
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1))

        response = client.post("/api/products/bulk-delete", json={"ids": [spare.id, product_a.id, 9999]}, headers=headers_a)

        assert response.status_code == 200
        data = response.json["data"]
        assert data["requested"] == 3
        assert data["success_count"] == 1
        assert data["deleted_ids"] == [spare.id]
        statuses = {f["id"]: f["status"] for f in data["failures"]}
        assert statuses == {product_a.id: 409, 9999: 404}

    def test_bulk_delete_requires_ids(self, client, db_session, headers_a):
        response = client.post("/api/products/bulk-delete", json={"ids": []}, headers=headers_a)
        assert response.status_code == 400
        assert "ids" in response.json["errors"]


class TestCategoriesAndSuppliersApi:

    def test_category_name_unique_case_insensitive(self, client, db_session, headers_a):
        assert client.post("/api/categories", json={"name": "Grains"}, headers=headers_a).status_code == 201
        response = client.post("/api/categories", json={"name": "grains"}, headers=headers_a)
        assert response.status_code == 409

    def test_category_lists_product_count(self, client, db_session, headers_a, product_a):
        category = client.post("/api/categories", json={"name": "Grains"}, headers=headers_a).json["data"]
        client.put(f"/api/products/{product_a.id}", json={"category_id": category["id"]}, headers=headers_a)

        items = client.get("/api/categories", headers=headers_a).json["data"]["items"]

        assert items[0]["product_count"] == 1
        blocked = client.delete(f"/api/categories/{category['id']}", headers=headers_a)
        assert blocked.status_code == 409

    def test_supplier_crud(self, client, db_session, headers_a):
        created = client.post("/api/suppliers", json={"name": "Mill Co", "phone": "0600"}, headers=headers_a)
        supplier_id = created.json["data"]["id"]

        renamed = client.put(f"/api/suppliers/{supplier_id}", json={"name": "Mill Co."}, headers=headers_a)
        assert renamed.json["data"]["name"] == "Mill Co."

        deleted = client.delete(f"/api/suppliers/{supplier_id}", headers=headers_a)
        assert deleted.json["data"] == {"id": supplier_id, "deleted": True}
        assert client.get(f"/api/suppliers/{supplier_id}", headers=headers_a).status_code == 404

    def test_supplier_with_purchases_cannot_be_deleted(self, client, db_session, headers_a, user_a, product_a, supplier_a):
        ledger_service.create_transaction(user_a.id, {
            "type": "PURCHASE",
            "supplier_id": supplier_a.id,
            "items": [{"product_id": product_a.id, "quantity": 1, "price_cents": 100}],
        })

        response = client.delete(f"/api/suppliers/{supplier_a.id}", headers=headers_a)
        assert response.status_code == 409


class TestClientsApi:

    def test_opening_balance_on_create(self, client, db_session, headers_a):
        response = client.post("/api/clients", json={
            "name": "Corner Shop", "email": "Corner@Shop.ma", "total_due_cents": 5000, "amount_paid_cents": 1500,
        }, headers=headers_a)

        assert response.status_code == 201
        data = response.json["data"]
        assert data["email"] == "corner@shop.ma"
        assert data["balance_cents"] == 3500

    def test_balance_fields_rejected_on_update(self, client, db_session, headers_a, client_a):
        response = client.put(f"/api/clients/{client_a.id}", json={"balance_cents": 0, "name": "Renamed"}, headers=headers_a)

        assert response.status_code == 400
        assert "balance_cents" in response.json["errors"]
        db_session.refresh(client_a)
        assert client_a.name == "Client A"

    def test_duplicate_email_conflicts(self, client, db_session, headers_a):
        client.post("/api/clients", json={"name": "One", "email": "one@shop.ma"}, headers=headers_a)
        response = client.post("/api/clients", json={"name": "Two", "email": "ONE@shop.ma"}, headers=headers_a)
        assert response.status_code == 409

    def test_with_balance_filter(self, client, db_session, headers_a, user_a, product_a, client_a):
        db_session.add(Client(user_id=user_a.id, name="Settled"))
        db_session.commit()
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1))

        items = client.get("/api/clients?with_balance=true", headers=headers_a).json["data"]["items"]

        assert [c["name"] for c in items] == ["Client A"]

    def test_client_with_history_cannot_be_deleted(self, client, db_session, headers_a, user_a, product_a, client_a):
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1))

        assert client.delete(f"/api/clients/{client_a.id}", headers=headers_a).status_code == 409


class TestExpensesApi:

    def _category(self, client, headers):
        return client.post("/api/expense-categories", json={"name": "Rent"}, headers=headers).json["data"]

    def test_create_defaults_to_completed(self, client, db_session, headers_a):
        category = self._category(client, headers_a)

        response = client.post("/api/expenses", json={
            "category_id": category["id"], "amount_cents": 250000,
            "description": "October rent", "payment_method": "BANK_TRANSFER",
        }, headers=headers_a)

        assert response.status_code == 201
        data = response.json["data"]
        assert data["status"] == "COMPLETED"
        assert data["category"] == "Rent"

    def test_zero_amount_rejected(self, client, db_session, headers_a):
        category = self._category(client, headers_a)

        response = client.post("/api/expenses", json={
            "category_id": category["id"], "amount_cents": 0,
            "description": "Nothing", "payment_method": "CASH",
        }, headers=headers_a)

        assert response.status_code == 400
        assert "amount_cents" in response.json["errors"]

    def test_filters(self, client, db_session, headers_a, user_a):
        category = self._category(client, headers_a)
        for description, status in (("Water bill", "COMPLETED"), ("Power bill", "PENDING")):
            client.post("/api/expenses", json={
                "category_id": category["id"], "amount_cents": 100, "description": description,
                "payment_method": "CASH", "status": status,
            }, headers=headers_a)

        pending = client.get("/api/expenses?status=pending", headers=headers_a).json["data"]
        water = client.get("/api/expenses?search=water", headers=headers_a).json["data"]

        assert [e["description"] for e in pending["items"]] == ["Power bill"]
        assert [e["description"] for e in water["items"]] == ["Water bill"]

    def test_category_in_use_and_bulk_delete(self, client, db_session, headers_a, user_a):
        category = self._category(client, headers_a)
        expense = client.post("/api/expenses", json={
            "category_id": category["id"], "amount_cents": 100, "description": "Tea", "payment_method": "CASH",
        }, headers=headers_a).json["data"]

        assert client.delete(f"/api/expense-categories/{category['id']}", headers=headers_a).status_code == 409

        result = client.post("/api/expenses/bulk-delete", json={"ids": [expense["id"]]}, headers=headers_a).json["data"]
        assert result["success_count"] == 1
        assert db_session.query(Expense).count() == 0
        assert client.delete(f"/api/expense-categories/{category['id']}", headers=headers_a).status_code == 200
        assert db_session.query(ExpenseCategory).count() == 0

    def test_other_tenant_expense_not_found(self, client, db_session, headers_a, headers_b):
        category = self._category(client, headers_a)
        expense = client.post("/api/expenses", json={
            "category_id": category["id"], "amount_cents": 100, "description": "Tea", "payment_method": "CASH",
        }, headers=headers_a).json["data"]

        assert client.get(f"/api/expenses/{expense['id']}", headers=headers_b).status_code == 404
        assert client.post("/api/expenses", json={
            "category_id": category["id"], "amount_cents": 100, "description": "Steal", "payment_method": "CASH",
        }, headers=headers_b).status_code == 404
