# Overview: Pytest coverage for dashboard aggregates and the sales / top-product reports.

from datetime import timedelta

import pytest

from stockledger.errors import ValidationError
from stockledger.models import Expense, ExpenseCategory
from stockledger.services import dashboard_service, ledger_service, reporting_service
from stockledger.time_utils import start_of_day, utcnow

from conftest import make_product, sale_payload


@pytest.fixture
def ledger(db_session, user_a, product_a, client_a, supplier_a):
    """A day of activity: two sales (one cancelled), one purchase, one expense."""
    ledger_service.create_transaction(user_a.id, sale_payload(
        client_a.id, product_a.id, 3, amount_paid_cents=1000, status="PENDING",
    ))
    cancelled = ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1))
    ledger_service.update_transaction(user_a.id, cancelled.id, {"status": "CANCELLED"})
    ledger_service.create_transaction(user_a.id, {
        "type": "PURCHASE",
        "supplier_id": supplier_a.id,
        "status": "COMPLETED",
        "amount_paid_cents": 500,
        "items": [{"product_id": product_a.id, "quantity": 5, "price_cents": 100}],
    })

    category = ExpenseCategory(user_id=user_a.id, name="Fuel")
    db_session.add(category)
    db_session.flush()
    db_session.add(Expense(user_id=user_a.id, category_id=category.id, amount_cents=200,
                           description="Van", payment_method="CASH"))
    db_session.add(Expense(user_id=user_a.id, category_id=category.id, amount_cents=999,
                           description="Voided", payment_method="CASH", status="CANCELLED"))
    db_session.commit()


class TestDashboardStats:

    def test_totals_exclude_cancelled(self, db_session, user_a, ledger):
        stats = dashboard_service.dashboard_stats(user_a.id)

        assert stats["total_sales_cents"] == 3000
        assert stats["total_purchases_cents"] == 500
        assert stats["total_received_cents"] == 1000
        assert stats["total_paid_cents"] == 500
        assert stats["profit_cents"] == 2500
        assert stats["total_expenses_cents"] == 200
        assert stats["net_profit_cents"] == 2300

    def test_current_balances(self, db_session, user_a, ledger):
        stats = dashboard_service.dashboard_stats(user_a.id)

        assert stats["pending_receivables_cents"] == 2000
        assert stats["pending_payables_cents"] == 0
        assert stats["clients_with_balance"] == 1
        assert stats["total_client_balance_cents"] == 2000
        # 10 - 3 sold + 5 purchased
        assert stats["stock_value_cents"] == 12 * 1000
        assert stats["total_products"] == 1

    def test_recent_transactions_limit(self, db_session, user_a, ledger):
        stats = dashboard_service.dashboard_stats(user_a.id, recent_limit=2)
        assert len(stats["recent_transactions"]) == 2
        assert "items" not in stats["recent_transactions"][0]

    def test_range_outside_activity_is_empty(self, db_session, user_a, ledger):
        end = utcnow() - timedelta(days=10)
        stats = dashboard_service.dashboard_stats(user_a.id, end - timedelta(days=1), end)

        assert stats["total_sales_cents"] == 0
        assert stats["total_expenses_cents"] == 0
        # Receivables are not ranged
        assert stats["pending_receivables_cents"] == 2000

    def test_endpoint(self, client, db_session, headers_a, ledger):
        response = client.get("/api/dashboard/stats?recent=1", headers=headers_a)

        assert response.status_code == 200
        data = response.json["data"]
        assert data["total_sales_cents"] == 3000
        assert len(data["recent_transactions"]) == 1


class TestSalesReport:

    def test_only_completed_and_zero_filled(self, db_session, user_a, product_a, client_a, ledger):
        done = ledger_service.create_transaction(user_a.id, sale_payload(
            client_a.id, product_a.id, 2, amount_paid_cents=2000, status="COMPLETED",
        ))
        now = utcnow()

        report = reporting_service.sales_report(user_a.id, start_of_day(now - timedelta(days=2)), now)

        assert len(report["rows"]) == 3
        assert report["rows"][0]["sales_cents"] == 0
        today = report["rows"][-1]
        assert today["sales_cents"] == done.total_cents
        assert today["sale_count"] == 1
        assert today["purchases_cents"] == 500
        assert report["totals"]["profit_cents"] == 2000 - 500

    def test_range_too_long(self, db_session, user_a):
        now = utcnow()
        with pytest.raises(ValidationError):
            reporting_service.sales_report(user_a.id, now - timedelta(days=400), now)

    def test_future_start_without_end_is_rejected(self, db_session, user_a):
        with pytest.raises(ValidationError) as exc_info:
            reporting_service.sales_report(user_a.id, start=utcnow() + timedelta(days=3))
        assert "start" in exc_info.value.errors

        with pytest.raises(ValidationError) as exc_info:
            dashboard_service.dashboard_stats(user_a.id, start=utcnow() + timedelta(days=3))
        assert "start" in exc_info.value.errors

    def test_endpoint_rejects_inverted_range(self, client, db_session, headers_a):
        response = client.get(
            "/api/reports/sales?start=2026-02-01T00:00:00Z&end=2026-01-01T00:00:00Z", headers=headers_a
        )
        assert response.status_code == 400
        assert "start" in response.json["errors"]


class TestTopProducts:

    def test_ranked_by_quantity_sold(self, db_session, user_a, client_a):
        bread = make_product(user_a.id, "BREAD", quantity=50, price_cents=300)
        milk = make_product(user_a.id, "MILK", quantity=50, price_cents=900)
        for product, qty in ((bread, 7), (milk, 2), (milk, 1)):
            ledger_service.create_transaction(user_a.id, sale_payload(
                client_a.id, product.id, qty, price_cents=product.price_cents, status="COMPLETED",
            ))
        # Pending sales are not counted
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, milk.id, 20, price_cents=900))

        items = reporting_service.top_products(user_a.id)["items"]

        assert [i["sku"] for i in items] == ["BREAD", "MILK"]
        assert items[0]["quantity_sold"] == 7
        assert items[1]["revenue_cents"] == 2700

    def test_endpoint_limit(self, client, db_session, headers_a, user_a, client_a):
        for sku in ("A", "B"):
            product = make_product(user_a.id, sku, quantity=5)
            ledger_service.create_transaction(user_a.id, sale_payload(
                client_a.id, product.id, 1, status="COMPLETED",
            ))

        data = client.get("/api/reports/top-products?limit=1", headers=headers_a).json["data"]
        assert len(data["items"]) == 1
