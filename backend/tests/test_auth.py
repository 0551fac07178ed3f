# Overview: Pytest coverage for login, sessions, and admin-only user management.

import pytest
from sqlalchemy.exc import IntegrityError

from tillpoint.extensions import db
from tillpoint.models import Order, SessionToken, User
from tillpoint.services import session_service, user_service
from tillpoint.services.order_service import OrderTransactionManager
from tillpoint.services.referential_guard import ReferentialGuard
from tillpoint.services.auth_service import hash_password, verify_password
from tillpoint.validation import OrderLine

from tests.conftest import auth_headers, get_auth_token


@pytest.mark.auth
class TestLogin:

    def test_login_returns_token_and_user(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "cashier123"})

        assert resp.status_code == 200
        assert len(resp.json["token"]) == 64
        assert resp.json["user"]["role"] == "cashier"
        stored = db.session.query(SessionToken).one()
        assert stored.token_hash == session_service.hash_token(resp.json["token"])

    def test_wrong_password(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "nope-nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "cashier"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, cashier_user):
        cashier_user.is_active = False
        db.session.commit()

        assert get_auth_token(client, "cashier", "cashier123") is None

    def test_me_and_logout(self, client, cashier_headers):
        me = client.get("/api/auth/me", headers=cashier_headers)
        assert me.status_code == 200
        assert me.json["user"]["username"] == "cashier"

        logout = client.post("/api/auth/logout", headers=cashier_headers)
        assert logout.status_code == 200

        again = client.get("/api/auth/me", headers=cashier_headers)
        assert again.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            ["cashier", "cashier123"],
            {"username": 42, "password": "cashier123"},
            {"username": "cashier", "password": ["cashier123"]},
        ],
    )
    def test_malformed_login_body(self, client, cashier_user, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("deadbeef"))
        assert resp.status_code == 401


def test_password_hashing_roundtrip():
    hashed = hash_password("secret99", rounds=4)
    assert hashed != "secret99"
    assert verify_password("secret99", hashed)
    assert not verify_password("secret98", hashed)
    assert not verify_password("secret99", "not-a-hash")


@pytest.mark.auth
class TestUserManagement:

    def test_cashier_is_denied(self, client, cashier_headers):
        resp = client.get("/api/users", headers=cashier_headers)
        assert resp.status_code == 403

    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "jane", "password": "janepass", "name": "Jane", "role": "cashier"},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert "password_hash" not in resp.json["user"]
        assert get_auth_token(client, "jane", "janepass") is not None

    @pytest.mark.parametrize(
        "payload,status",
        [
            ({"username": "jane", "name": "Jane", "role": "cashier"}, 400),
            ({"username": "jane", "password": "janepass", "name": "Jane", "role": "manager"}, 400),
            ({"username": "jane", "password": "abc", "name": "Jane", "role": "cashier"}, 400),
            ({"username": "admin", "password": "janepass", "name": "Dup", "role": "cashier"}, 409),
        ],
    )
    def test_create_user_rejections(self, client, admin_headers, payload, status):
        resp = client.post("/api/users", json=payload, headers=admin_headers)
        assert resp.status_code == status

    def test_password_change_revokes_sessions(self, client, admin_headers, cashier_user):
        cashier_token = get_auth_token(client, "cashier", "cashier123")
        user_id = cashier_user.id

        resp = client.put(f"/api/users/{user_id}", json={"password": "brandnew1"}, headers=admin_headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(cashier_token)).status_code == 401
        assert verify_password("brandnew1", db.session.get(User, user_id).password_hash)

    def test_update_missing_user(self, client, admin_headers):
        resp = client.put("/api/users/9999", json={"name": "Ghost"}, headers=admin_headers)
        assert resp.status_code == 404

    def test_admin_cannot_delete_self(self, client, admin_headers, admin_user):
        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400

    def test_user_with_orders_cannot_be_deleted(self, client, admin_headers, cashier_user, products):
        first, _ = products
        user_id = cashier_user.id
        placed = client.post(
            "/api/orders",
            json={
                "user_id": user_id,
                "items": [{"product_id": first.id, "quantity": 1, "unit_price_cents": 1000}],
                "total_amount_cents": 1000,
                "payment_method": "card",
            },
            headers=admin_headers,
        )
        assert placed.status_code == 201

        resp = client.delete(f"/api/users/{user_id}", headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["entity"] == "user"
        assert db.session.query(User).filter_by(id=user_id).count() == 1

    def test_user_without_orders_is_deleted(self, client, admin_headers, cashier_user):
        user_id = cashier_user.id
        get_auth_token(client, "cashier", "cashier123")

        resp = client.delete(f"/api/users/{user_id}", headers=admin_headers)

        assert resp.status_code == 200
        assert db.session.query(User).filter_by(id=user_id).count() == 0
        assert db.session.query(SessionToken).filter_by(user_id=user_id).count() == 0

    def test_order_placed_after_guard_check_blocks_delete(self, db_session, cashier_user, products):
        first, _ = products
        user_id = cashier_user.id
        order_id = OrderTransactionManager(db_session).place_order(
            user_id, [OrderLine(first.id, 1, 1000)], 1000, "cash"
        )

        with pytest.raises(IntegrityError):
            user_service.delete_user(db_session, user_id)

        assert db_session.query(User).filter_by(id=user_id).count() == 1
        assert db_session.query(Order.user_id).filter_by(id=order_id).scalar() == user_id

    def test_delete_route_reports_late_orders_as_conflict(
        self, client, admin_headers, cashier_user, products, monkeypatch
    ):
        first, _ = products
        user_id = cashier_user.id
        OrderTransactionManager(db.session).place_order(
            user_id, [OrderLine(first.id, 1, 1000)], 1000, "cash"
        )
        monkeypatch.setattr(ReferentialGuard, "ensure_deletable", lambda self, kind, entity_id: None)

        resp = client.delete(f"/api/users/{user_id}", headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["error"] == "has dependents"
        assert db.session.query(User).filter_by(id=user_id).count() == 1

    @pytest.mark.parametrize("method", ["post", "put"])
    def test_non_object_body_is_rejected(self, client, admin_headers, cashier_user, method):
        url = "/api/users" if method == "post" else f"/api/users/{cashier_user.id}"
        resp = getattr(client, method)(url, json=["x"], headers=admin_headers)
        assert resp.status_code == 400

    def test_non_string_password_on_create(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "jane", "password": 12345678, "name": "Jane", "role": "cashier"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert db.session.query(User).filter_by(username="jane").count() == 0

    def test_non_string_password_on_update_changes_nothing(self, client, admin_headers, cashier_user):
        user_id = cashier_user.id

        resp = client.put(
            f"/api/users/{user_id}",
            json={"name": "Renamed", "password": 12345678},
            headers=admin_headers,
        )
        db.session.rollback()

        assert resp.status_code == 400
        assert db.session.query(User.name).filter_by(id=user_id).scalar() == "John Cashier"
