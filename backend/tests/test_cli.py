# Overview: Pytest coverage for the flask CLI command groups.

from datetime import timedelta

from stockledger.models import Notification, SessionToken, User
from stockledger.services.session_service import create_session
from stockledger.time_utils import utcnow

from conftest import PASSWORD, make_product


class TestUsersCommands:

    def test_create_user(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--username", "cli_shop", "--email", "cli@shop.ma", "--password", PASSWORD,
        ])

        assert result.exit_code == 0
        assert "PASS Created user: cli_shop" in result.output
        assert db_session.query(User).filter_by(username="cli_shop").count() == 1

    def test_create_user_weak_password(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--username", "cli_shop", "--email", "cli@shop.ma", "--password", "weak",
        ])

        assert result.exit_code == 1
        assert "FAIL" in result.output
        assert db_session.query(User).count() == 0

    def test_list_users(self, app, db_session, user_a, user_b):
        result = app.test_cli_runner().invoke(args=["users", "list"])

        assert result.exit_code == 0
        assert "user_a" in result.output
        assert "user_b@beta.com" in result.output

    def test_list_users_empty(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "list"])
        assert "No users found." in result.output


class TestNotificationCommands:

    def test_scan_stock_all_tenants(self, app, db_session, user_a, user_b):
        make_product(user_a.id, "A-LOW", quantity=0, min_quantity=1)
        make_product(user_b.id, "B-LOW", quantity=0, min_quantity=1)

        result = app.test_cli_runner().invoke(args=["notifications", "scan-stock"])

        assert result.exit_code == 0
        assert "created=2" in result.output
        assert db_session.query(Notification).count() == 2

    def test_scan_stock_single_tenant(self, app, db_session, user_a, user_b):
        make_product(user_a.id, "A-LOW", quantity=0, min_quantity=1)
        make_product(user_b.id, "B-LOW", quantity=0, min_quantity=1)

        result = app.test_cli_runner().invoke(args=["notifications", "scan-stock", "--user-id", str(user_b.id)])

        assert "created=1" in result.output
        assert db_session.query(Notification).filter_by(user_id=user_a.id).count() == 0

    def test_scan_payments(self, app, db_session, user_a):
        result = app.test_cli_runner().invoke(args=["notifications", "scan-payments", "--window-days", "3"])

        assert result.exit_code == 0
        assert "PASS Payment scan: created=0" in result.output


class TestMaintenanceCommands:

    def test_cleanup_sessions(self, app, db_session, user_a):
        stale, _ = create_session(user_id=user_a.id)
        stale.created_at = utcnow() - timedelta(days=40)
        stale.is_revoked = True
        create_session(user_id=user_a.id)
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])

        assert result.exit_code == 0
        assert "Deleted 1 expired or revoked sessions." in result.output
        assert db_session.query(SessionToken).count() == 1
