# Overview: Pytest coverage for notification scans, dedup, triggers and the inbox.

"""
Notification Tests

Scans are idempotent per (user, link, UTC day), isolate failures per
candidate, and skip tenants that turned notifications off. The HTTP
triggers scan only the caller unless the scheduler secret is presented.
"""

from datetime import timedelta

import pytest

from stockledger.models import Notification, Transaction, UserSettings
from stockledger.services import ledger_service, notification_service
from stockledger.time_utils import utcnow

from conftest import CRON_SECRET, make_product, sale_payload


def _notes(session, user_id, ntype=None):
    query = session.query(Notification).filter_by(user_id=user_id)
    if ntype:
        query = query.filter_by(type=ntype)
    return query.all()


class TestStockAlertScan:

    def test_creates_one_alert_per_low_product(self, db_session, user_a):
        low = make_product(user_a.id, "LOW", quantity=2, min_quantity=5)
        make_product(user_a.id, "OK", quantity=9, min_quantity=5)
        make_product(user_a.id, "EDGE", quantity=5, min_quantity=5)

        result = notification_service.scan_stock_alerts(user_id=user_a.id)

        assert result.created == 1
        notes = _notes(db_session, user_a.id, "STOCK_ALERT")
        assert len(notes) == 1
        assert notes[0].link == f"/inventory?id={low.id}"
        assert "Current quantity: 2" in notes[0].message_en
        assert notes[0].title_ar == "تنبيه انخفاض المخزون"

    def test_second_scan_same_day_is_deduplicated(self, db_session, user_a):
        make_product(user_a.id, "LOW", quantity=1, min_quantity=5)

        first = notification_service.scan_stock_alerts(user_id=user_a.id)
        second = notification_service.scan_stock_alerts(user_id=user_a.id)

        assert first.created == 1
        assert second.created == 0
        assert second.skipped == 1
        assert len(_notes(db_session, user_a.id)) == 1

    def test_force_bypasses_dedup(self, db_session, user_a):
        make_product(user_a.id, "LOW", quantity=1, min_quantity=5)

        notification_service.scan_stock_alerts(user_id=user_a.id)
        forced = notification_service.scan_stock_alerts(user_id=user_a.id, force=True)

        assert forced.created == 1
        assert len(_notes(db_session, user_a.id)) == 2

    def test_next_day_alerts_again(self, db_session, user_a):
        make_product(user_a.id, "LOW", quantity=1, min_quantity=5)
        now = utcnow()

        notification_service.scan_stock_alerts(user_id=user_a.id, now=now)
        result = notification_service.scan_stock_alerts(user_id=user_a.id, now=now + timedelta(days=1))

        assert result.created == 1

    def test_failure_on_one_product_does_not_stop_scan(self, db_session, user_a, monkeypatch):
        bad = make_product(user_a.id, "BAD", quantity=0, min_quantity=5)
        good = make_product(user_a.id, "GOOD", quantity=1, min_quantity=5)

        original = notification_service.render_stock_alert

        def flaky(product):
            if product.id == bad.id:
                raise RuntimeError("template exploded")
            return original(product)

        monkeypatch.setattr(notification_service, "render_stock_alert", flaky)

        result = notification_service.scan_stock_alerts(user_id=user_a.id)

        assert result.created == 1
        assert result.failed == 1
        links = [n.link for n in _notes(db_session, user_a.id)]
        assert links == [f"/inventory?id={good.id}"]

    def test_all_tenant_scan_skips_opted_out_users(self, db_session, user_a, user_b):
        make_product(user_a.id, "A-LOW", quantity=0, min_quantity=1)
        make_product(user_b.id, "B-LOW", quantity=0, min_quantity=1)
        settings = db_session.query(UserSettings).filter_by(user_id=user_b.id).one()
        settings.notifications_enabled = False
        db_session.commit()

        result = notification_service.scan_stock_alerts()

        assert result.created == 1
        assert len(_notes(db_session, user_a.id)) == 1
        assert len(_notes(db_session, user_b.id)) == 0


class TestPaymentDueScan:

    def test_reminds_for_pending_due_inside_window(self, db_session, user_a, product_a, client_a):
        now = utcnow()
        txn = ledger_service.create_transaction(user_a.id, sale_payload(
            client_a.id, product_a.id, 1, total_cents=1000, amount_paid_cents=250,
            payment_due_date=(now + timedelta(days=2, hours=1)).isoformat(),
        ))

        result = notification_service.scan_payment_due(user_id=user_a.id, now=now, window_days=7)

        assert result.created == 1
        note = _notes(db_session, user_a.id, "PAYMENT_DUE")[0]
        assert note.link == f"/transactions?id={txn.id}"
        assert "DH 7.50" in note.message_en
        assert "Client A" in note.message_en
        assert "3 days" in note.message_en
        assert "أيام" in note.message_ar

    def test_ignores_outside_window_paid_or_final(self, db_session, user_a, product_a, client_a):
        now = utcnow()
        far = (now + timedelta(days=30)).isoformat()
        soon = (now + timedelta(days=1)).isoformat()
        ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1, payment_due_date=far))
        ledger_service.create_transaction(user_a.id, sale_payload(
            client_a.id, product_a.id, 1, amount_paid_cents=1000, payment_due_date=soon,
        ))
        done = ledger_service.create_transaction(user_a.id, sale_payload(client_a.id, product_a.id, 1, payment_due_date=soon))
        ledger_service.update_transaction(user_a.id, done.id, {"status": "COMPLETED"})

        result = notification_service.scan_payment_due(user_id=user_a.id, now=now, window_days=7)

        assert result.created == 0
        assert _notes(db_session, user_a.id, "PAYMENT_DUE") == []

    def test_payment_due_is_deduplicated(self, db_session, user_a, product_a, client_a):
        now = utcnow()
        ledger_service.create_transaction(user_a.id, sale_payload(
            client_a.id, product_a.id, 1, payment_due_date=(now + timedelta(days=1)).isoformat(),
        ))

        notification_service.scan_payment_due(user_id=user_a.id, now=now)
        second = notification_service.scan_payment_due(user_id=user_a.id, now=now)

        assert second.created == 0
        assert second.skipped == 1

    def test_days_until_rounds_up(self):
        now = utcnow()
        assert notification_service.days_until(now + timedelta(hours=1), now) == 1
        assert notification_service.days_until(now + timedelta(days=1), now) == 1
        assert notification_service.days_until(now + timedelta(days=1, minutes=1), now) == 2


class TestScanEndpoints:

    def test_user_scan_is_scoped_to_caller(self, client, db_session, headers_a, user_a, user_b):
        make_product(user_a.id, "A-LOW", quantity=0, min_quantity=1)
        make_product(user_b.id, "B-LOW", quantity=0, min_quantity=1)

        response = client.get("/api/notifications/stock-alerts", headers=headers_a)

        assert response.status_code == 200
        assert response.json["data"]["created"] == 1
        assert response.json["scope"] == "user"
        assert len(_notes(db_session, user_b.id)) == 0

    def test_cron_secret_scans_all_tenants(self, client, db_session, user_a, user_b):
        make_product(user_a.id, "A-LOW", quantity=0, min_quantity=1)
        make_product(user_b.id, "B-LOW", quantity=0, min_quantity=1)

        response = client.get("/api/notifications/stock-alerts", headers={"X-Cron-Secret": CRON_SECRET})

        assert response.status_code == 200
        assert response.json["data"]["created"] == 2
        assert response.json["scope"] == "all"

    def test_wrong_cron_secret_is_unauthorized(self, client, db_session):
        response = client.get("/api/notifications/payment-due-check", headers={"X-Cron-Secret": "nope"})
        assert response.status_code == 401
        assert response.json["success"] is False

    def test_force_query_param(self, client, db_session, headers_a, user_a):
        make_product(user_a.id, "LOW", quantity=0, min_quantity=1)

        client.get("/api/notifications/stock-alerts", headers=headers_a)
        again = client.get("/api/notifications/stock-alerts", headers=headers_a)
        forced = client.get("/api/notifications/stock-alerts?force=true", headers=headers_a)

        assert again.json["data"]["created"] == 0
        assert forced.json["data"]["created"] == 1

    def test_payment_due_endpoint(self, client, db_session, headers_a, user_a, product_a, client_a):
        ledger_service.create_transaction(user_a.id, sale_payload(
            client_a.id, product_a.id, 1, payment_due_date=(utcnow() + timedelta(days=1)).isoformat(),
        ))

        response = client.get("/api/notifications/payment-due-check?window_days=3", headers=headers_a)

        assert response.status_code == 200
        assert response.json["data"]["created"] == 1


class TestInbox:

    def test_list_renders_requested_language(self, client, db_session, headers_a, user_a):
        make_product(user_a.id, "LOW", quantity=0, min_quantity=1)
        notification_service.scan_stock_alerts(user_id=user_a.id)

        en = client.get("/api/notifications", headers=headers_a).json["data"]
        ar = client.get("/api/notifications?lang=ar", headers=headers_a).json["data"]

        assert en["items"][0]["title"] == "Low Stock Alert"
        assert ar["items"][0]["title"] == "تنبيه انخفاض المخزون"
        assert ar["items"][0]["title_en"] == "Low Stock Alert"
        assert en["unread_count"] == 1

    def test_stored_language_preference_is_default(self, client, db_session, headers_a, user_a):
        client.put("/api/user-settings", json={"language": "ar"}, headers=headers_a)
        client.post("/api/notifications", json={"title": "Hello", "message": "World"}, headers=headers_a)

        items = client.get("/api/notifications", headers=headers_a).json["data"]["items"]

        # No Arabic text given, so the English text is used for both
        assert items[0]["title"] == "Hello"
        assert items[0]["title_ar"] == "Hello"

    def test_mark_read_and_mark_all_read(self, client, db_session, headers_a, user_a):
        for title in ("one", "two"):
            client.post("/api/notifications", json={"title": title, "message": title}, headers=headers_a)
        first = db_session.query(Notification).filter_by(user_id=user_a.id).first()

        patched = client.patch(f"/api/notifications/{first.id}", json={"status": "read"}, headers=headers_a)
        assert patched.json["data"]["status"] == "READ"

        cleared = client.delete("/api/notifications", headers=headers_a)
        assert cleared.json["data"]["updated"] == 1
        listing = client.get("/api/notifications", headers=headers_a).json["data"]
        assert listing["unread_count"] == 0

    def test_non_string_status_is_rejected(self, client, db_session, headers_a, user_a):
        client.post("/api/notifications", json={"title": "one", "message": "one"}, headers=headers_a)
        note = db_session.query(Notification).filter_by(user_id=user_a.id).first()

        response = client.patch(f"/api/notifications/{note.id}", json={"status": 5}, headers=headers_a)

        assert response.status_code == 400
        assert "status" in response.json["errors"]
        db_session.refresh(note)
        assert note.status == "UNREAD"

    def test_create_requires_title_and_message(self, client, db_session, headers_a):
        response = client.post("/api/notifications", json={"title": "only"}, headers=headers_a)
        assert response.status_code == 400
        assert "message_en" in response.json["errors"]

    def test_other_tenant_notification_is_not_found(self, client, db_session, headers_b, user_a):
        note = Notification(user_id=user_a.id, title_en="t", message_en="m", title_ar="t", message_ar="m")
        db_session.add(note)
        db_session.commit()

        assert client.get(f"/api/notifications/{note.id}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/notifications/{note.id}", headers=headers_b).status_code == 404
