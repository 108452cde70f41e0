# Overview: Pytest coverage for registration, login, logout and sessions.

from datetime import timedelta

from sqlalchemy.exc import OperationalError

from bizledger.models import SessionToken, User
from bizledger.services import session_service
from bizledger.services.auth_service import authenticate, verify_password
from bizledger.time_utils import utcnow
from conftest import PASSWORD, auth_headers, get_auth_token


REGISTRATION = {
    "name": "Erin Example",
    "email": "Erin@Example.com",
    "username": "ErinE",
    "password": "longenough",
    "business_name": "Erin Goods",
}


class TestRegister:

    def test_register_returns_user_and_token(self, client, db_session):
        response = client.post('/api/auth/register', json=REGISTRATION)

        assert response.status_code == 201
        body = response.json
        assert body["success"] is True
        assert body["data"]["user"]["email"] == "erin@example.com"
        assert body["data"]["user"]["username"] == "erine"
        assert "password_hash" not in body["data"]["user"]

        me = client.get('/api/auth/me', headers=auth_headers(body["data"]["token"]))
        assert me.status_code == 200
        assert me.json["data"]["business_name"] == "Erin Goods"

    def test_password_is_hashed(self, client, db_session):
        client.post('/api/auth/register', json=REGISTRATION)
        user = db_session.query(User).filter_by(username="erine").one()
        assert user.password_hash != "longenough"
        assert verify_password("longenough", user.password_hash)

    def test_all_errors_reported_together(self, client, db_session):
        response = client.post('/api/auth/register', json={
            "name": "E",
            "email": "not-an-email",
            "username": "ab",
            "password": "short",
            "business_name": "",
        })

        assert response.status_code == 400
        assert response.json["success"] is False
        fields = {e["field"] for e in response.json["errors"]}
        assert fields == {"name", "email", "username", "password", "business_name"}

    def test_duplicate_is_case_insensitive(self, client, db_session, business_a):
        payload = dict(REGISTRATION, email="JOHN@example.com")
        response = client.post('/api/auth/register', json=payload)

        assert response.status_code == 400
        assert response.json["message"] == "Email or username already exists"

    def test_non_json_body(self, client, db_session):
        response = client.post('/api/auth/register', data="nope", content_type="text/plain")
        assert response.status_code == 400


class TestLogin:

    def test_login_with_username_or_email(self, client, db_session, business_a):
        assert get_auth_token(client, "johndoe")
        assert get_auth_token(client, "JOHN@example.com")

    def test_login_accepts_identifier_alias(self, client, db_session, business_a):
        response = client.post('/api/auth/login', json={"identifier": "johndoe", "password": PASSWORD})
        assert response.status_code == 200

    def test_wrong_password(self, client, db_session, business_a):
        response = client.post('/api/auth/login', json={"emailOrUsername": "johndoe", "password": "wrong-pass"})
        assert response.status_code == 401
        assert response.json == {"success": False, "message": "Invalid credentials"}

    def test_unknown_user_same_message(self, client, db_session):
        response = client.post('/api/auth/login', json={"emailOrUsername": "ghost", "password": PASSWORD})
        assert response.status_code == 401
        assert response.json["message"] == "Invalid credentials"

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={"emailOrUsername": "johndoe"})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, db_session, business_a):
        business_a.is_active = False
        db_session.commit()
        assert authenticate("johndoe", PASSWORD) is None

    def test_login_records_last_login(self, db_session, business_a):
        assert business_a.last_login_at is None
        authenticate("johndoe", PASSWORD)
        db_session.refresh(business_a)
        assert business_a.last_login_at is not None


class TestSessions:

    def test_missing_header(self, client, db_session):
        response = client.get('/api/contacts')
        assert response.status_code == 401
        assert response.json["success"] is False

    def test_malformed_header(self, client, db_session, token_a):
        response = client.get('/api/contacts', headers={"Authorization": token_a})
        assert response.status_code == 401

    def test_unknown_token(self, client, db_session):
        response = client.get('/api/contacts', headers=auth_headers("0" * 64))
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, db_session, token_a):
        response = client.post('/api/auth/logout', headers=auth_headers(token_a))
        assert response.status_code == 200

        response = client.get('/api/auth/me', headers=auth_headers(token_a))
        assert response.status_code == 401

    def test_logout_via_get(self, client, db_session, token_a):
        response = client.get('/api/auth/logout', headers=auth_headers(token_a))
        assert response.status_code == 200

    def test_expired_token_rejected(self, client, db_session, business_a, token_a):
        session = db_session.query(SessionToken).filter_by(user_id=business_a.id).one()
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        response = client.get('/api/auth/me', headers=auth_headers(token_a))
        assert response.status_code == 401

    def test_deactivated_user_session_revoked(self, client, db_session, business_a, token_a):
        business_a.is_active = False
        db_session.commit()

        response = client.get('/api/auth/me', headers=auth_headers(token_a))
        assert response.status_code == 401
        session = db_session.query(SessionToken).filter_by(user_id=business_a.id).one()
        assert session.is_revoked is True

    def test_token_stored_hashed(self, db_session, business_a, token_a):
        session = db_session.query(SessionToken).filter_by(user_id=business_a.id).one()
        assert session.token_hash == session_service.hash_token(token_a)
        assert session.token_hash != token_a

    def test_session_lifetime_is_seven_days(self, db_session, business_a, token_a):
        session = db_session.query(SessionToken).filter_by(user_id=business_a.id).one()
        assert session.expires_at - session.created_at == timedelta(days=7)

    def test_cleanup_removes_old_dead_sessions(self, db_session, business_a, token_a):
        session = db_session.query(SessionToken).filter_by(user_id=business_a.id).one()
        session.created_at = utcnow() - timedelta(days=40)
        session.expires_at = utcnow() - timedelta(days=33)
        db_session.commit()

        assert session_service.cleanup_expired_sessions() == 1
        assert db_session.query(SessionToken).count() == 0

    def test_cleanup_keeps_live_sessions(self, db_session, business_a, token_a):
        assert session_service.cleanup_expired_sessions() == 0
        assert db_session.query(SessionToken).count() == 1

    def test_session_touch_is_retried(self, db_session, monkeypatch, business_a, token_a):
        calls = []

        def flaky_utcnow():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE sessions", {}, Exception("database is locked"))
            return utcnow()

        monkeypatch.setattr(session_service, "utcnow", flaky_utcnow)

        context = session_service.validate_session(token_a)
        assert context is not None
        assert context.business_id == business_a.id
        assert len(calls) == 2

    def test_busy_store_during_auth_is_json_500(self, client, db_session, monkeypatch, token_a):
        def locked_utcnow():
            raise OperationalError("UPDATE sessions", {}, Exception("database is locked"))

        monkeypatch.setattr(session_service, "utcnow", locked_utcnow)

        response = client.get('/api/auth/me', headers=auth_headers(token_a))
        assert response.status_code == 500
        assert response.json == {"success": False, "message": "Internal server error", "retriable": True}
