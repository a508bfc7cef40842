"""HTTP-level tests of /api/auth: login, refresh, logout, me, rate limiting and audit."""
from datetime import timedelta

from models import storage
from models.audit_log import AuditEvent, AuditLog
from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils import audit as audit_module
from utils.security import create_access_token

API = "/api"


def audit_events():
    return [row.event_type for row in storage.get_session().query(AuditLog).order_by(AuditLog.id).all()]


# -- login -----------------------------------------------------------------

def test_login_returns_tokens_and_user(login):
    response = login()
    assert response.status_code == 200
    body = response.get_json()

    assert body["user"]["email"] == "admin@orbit.com"
    assert body["user"]["role"] == "admin"
    assert body["user"]["name"] == "Admin"
    assert isinstance(body["user"]["id"], int)
    assert "password_hash" not in body["user"]
    assert body["expiresIn"] == 900
    assert len(body["refreshToken"]) >= 64
    assert body["accessToken"].count(".") == 2
    assert body["accessToken"] != body["refreshToken"]


def test_login_email_is_case_insensitive(login):
    assert login(email="  ADMIN@Orbit.com ").status_code == 200


def test_wrong_password_and_unknown_email_look_the_same(login):
    wrong = login(password="wrong")
    unknown = login(email="nobody@orbit.com", password="wrong")

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json() == unknown.get_json()
    assert wrong.get_json()["error"] == "Invalid email or password"


def test_login_missing_fields_is_400(client):
    for body in ({}, {"email": "admin@orbit.com"}, {"password": "admin123"}, {"email": "", "password": ""}):
        response = client.post(f"{API}/auth/login", json=body)
        assert response.status_code == 400
        assert response.get_json()["error"] == "Email and password are required"


def test_login_non_json_body_is_400(client):
    response = client.post(f"{API}/auth/login", data="email=x", content_type="text/plain")
    assert response.status_code == 400


def test_new_login_revokes_previous_refresh_token(client, login):
    first = login().get_json()["refreshToken"]
    second = login().get_json()["refreshToken"]

    assert client.post(f"{API}/auth/refresh", json={"refreshToken": first}).status_code == 401
    assert client.post(f"{API}/auth/refresh", json={"refreshToken": second}).status_code == 200

    rows = storage.get_session().query(RefreshToken).all()
    assert len(rows) == 2
    assert sum(1 for r in rows if not r.revoked) == 1


# -- rate limiting ---------------------------------------------------------

def test_sixth_failed_attempt_is_rate_limited(login):
    for _ in range(5):
        assert login(password="wrong").status_code == 401

    response = login(password="wrong")

    assert response.status_code == 429
    body = response.get_json()
    assert body["retryAfter"] > 0
    assert body["error"] == "Too many login attempts. Please try again later."
    assert int(response.headers["Retry-After"]) == body["retryAfter"]


def test_rate_limit_applies_even_to_correct_password(login):
    for _ in range(5):
        login(password="wrong")
    assert login().status_code == 429


def test_rate_limit_is_per_ip(login):
    for _ in range(6):
        login(password="wrong", ip="10.0.0.1")
    assert login(password="wrong", ip="10.0.0.2").status_code == 401


def test_successful_login_resets_the_counter(login):
    for _ in range(4):
        login(password="wrong")
    assert login().status_code == 200

    for _ in range(5):
        assert login(password="wrong").status_code == 401
    assert login(password="wrong").status_code == 429


def test_client_ip_from_x_real_ip(client, app):
    for _ in range(5):
        client.post(f"{API}/auth/login", json={"email": "a@b.c", "password": "x"}, headers={"X-Real-IP": "7.7.7.7"})
    assert app.extensions["rate_limiter"].remaining("7.7.7.7") == 0


# -- refresh ---------------------------------------------------------------

def test_refresh_returns_new_access_token_for_same_identity(client, tokens, bearer):
    response = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 200
    body = response.get_json()

    assert body["expiresIn"] == 900
    assert body["accessToken"] != tokens["accessToken"]
    # not rotated by default
    assert "refreshToken" not in body

    me_old = client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"])).get_json()
    me_new = client.get(f"{API}/auth/me", headers=bearer(body["accessToken"])).get_json()
    assert me_old == me_new


def test_refresh_can_be_used_repeatedly(client, tokens):
    for _ in range(3):
        response = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert response.status_code == 200


def test_refresh_rereads_the_user(client, tokens):
    session = storage.get_session()
    user = session.query(RefreshToken).filter_by(token=tokens["refreshToken"]).one().user
    user.name = "Renamed Admin"
    storage.save()

    access = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).get_json()["accessToken"]
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {access}"}).get_json()
    assert me["user"]["name"] == "Renamed Admin"


def test_refresh_with_unknown_token_is_401(client):
    response = client.post(f"{API}/auth/refresh", json={"refreshToken": "never-issued"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid or expired refresh token"


def test_refresh_without_token_is_400(client):
    response = client.post(f"{API}/auth/refresh", json={})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Refresh token required"


def test_refresh_with_expired_token_is_401(client, tokens):
    row = storage.get_session().query(RefreshToken).filter_by(token=tokens["refreshToken"]).one()
    row.expires_at = utcnow() - timedelta(seconds=1)
    storage.save()

    response = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert response.status_code == 401


def test_refresh_token_expiry_is_seven_days(tokens):
    row = storage.get_session().query(RefreshToken).filter_by(token=tokens["refreshToken"]).one()
    remaining = row.expires_at - utcnow()
    assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)


def test_rotation_when_enabled(app, client, tokens):
    app.extensions["token_issuer"].rotate_refresh = True

    body = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).get_json()

    assert body["refreshToken"] != tokens["refreshToken"]
    assert client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).status_code == 401
    assert client.post(f"{API}/auth/refresh", json={"refreshToken": body["refreshToken"]}).status_code == 200


# -- logout ----------------------------------------------------------------

def test_logout_revokes_and_is_idempotent(client, tokens):
    payload = {"refreshToken": tokens["refreshToken"]}

    first = client.post(f"{API}/auth/logout", json=payload)
    assert first.status_code == 200
    assert first.get_json() == {"success": True}

    assert client.post(f"{API}/auth/refresh", json=payload).status_code == 401

    second = client.post(f"{API}/auth/logout", json=payload)
    assert second.status_code == 200
    assert second.get_json() == {"success": True}


def test_logout_with_unknown_or_missing_token_succeeds(client):
    assert client.post(f"{API}/auth/logout", json={"refreshToken": "nope"}).get_json() == {"success": True}
    assert client.post(f"{API}/auth/logout", json={}).get_json() == {"success": True}
    assert client.post(f"{API}/auth/logout").status_code == 200


def test_logout_keeps_the_row(client, tokens):
    client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]})
    row = storage.get_session().query(RefreshToken).filter_by(token=tokens["refreshToken"]).one()
    assert row.revoked is True


# -- middleware / me -------------------------------------------------------

def test_me_returns_token_identity(client, tokens, bearer):
    response = client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"]))
    assert response.status_code == 200
    assert response.get_json()["user"] == tokens["user"]


def test_me_without_token(client):
    response = client.get(f"{API}/auth/me")
    assert response.status_code == 401
    assert response.get_json()["error"] == "No token provided"


def test_me_with_non_bearer_header(client):
    response = client.get(f"{API}/auth/me", headers={"Authorization": "Basic abc"})
    assert response.get_json()["error"] == "No token provided"


def test_me_with_tampered_token(client, tokens, bearer):
    response = client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"] + "x"))
    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid token"


def test_me_with_token_signed_by_another_secret(client):
    token = create_access_token(
        {"sub": 1, "email": "dev@orbit.com", "name": "Developer", "role": "superadmin"},
        "some-other-secret-of-sufficient-length-xx",
        "HS256",
        timedelta(minutes=15),
    )
    response = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.get_json()["error"] == "Invalid token"


def test_me_with_expired_token(app, client):
    token = create_access_token(
        {"sub": 2, "email": "admin@orbit.com", "name": "Admin", "role": "admin"},
        app.config["JWT_SECRET"],
        "HS256",
        timedelta(seconds=-5),
    )
    response = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Token expired"


def test_access_token_survives_logout_until_expiry(client, tokens, bearer):
    client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]})
    assert client.get(f"{API}/auth/me", headers=bearer(tokens["accessToken"])).status_code == 200


# -- audit -----------------------------------------------------------------

def test_audit_trail_of_a_session(client, login):
    client.post(f"{API}/auth/login", json={})
    login(email="ghost@orbit.com", password="x")
    login(password="wrong")
    refresh_token = login().get_json()["refreshToken"]
    client.post(f"{API}/auth/refresh", json={"refreshToken": refresh_token})
    client.post(f"{API}/auth/refresh", json={"refreshToken": "bogus"})
    client.post(f"{API}/auth/logout", json={"refreshToken": refresh_token})
    client.post(f"{API}/auth/logout", json={"refreshToken": refresh_token})

    assert audit_events() == [
        AuditEvent.LOGIN_ATTEMPT,
        AuditEvent.LOGIN_FAILURE,
        AuditEvent.LOGIN_FAILURE,
        AuditEvent.LOGIN_SUCCESS,
        AuditEvent.TOKEN_REFRESH,
        AuditEvent.REFRESH_FAILED,
        AuditEvent.LOGOUT,
    ]


def test_audit_entry_fields(login):
    login(password="wrong", ip="192.168.1.9")
    entry = storage.get_session().query(AuditLog).one()

    assert entry.email == "admin@orbit.com"
    assert entry.user_id is not None
    assert entry.ip_address == "192.168.1.9"
    assert entry.user_agent == "pytest"
    assert entry.success is False
    assert entry.details == "Wrong password"


def test_logout_audit_entry_names_the_user(client, tokens):
    client.post(f"{API}/auth/logout", json={"refreshToken": tokens["refreshToken"]}, headers={"User-Agent": "pytest"})
    entry = storage.get_session().query(AuditLog).filter_by(event_type=AuditEvent.LOGOUT).one()

    assert entry.user_id == tokens["user"]["id"]
    assert entry.email == "admin@orbit.com"
    assert entry.success is True


def test_audit_failure_does_not_break_login(monkeypatch, login):
    class BrokenStorage:
        def new(self, obj):
            raise RuntimeError("disk full")

        def save(self):
            pass

        def rollback(self):
            pass

    monkeypatch.setattr(audit_module, "storage", BrokenStorage())

    assert login().status_code == 200
    assert login(password="wrong").status_code == 401


def test_unexpected_error_is_500_without_details(monkeypatch, app, login):
    def boom(*args, **kwargs):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(app.extensions["token_issuer"], "issue", boom)

    response = login()

    assert response.status_code == 500
    body = response.get_json()
    assert body["error"] == "An unexpected error occurred"
    assert "secret internals" not in response.get_data(as_text=True)
    assert audit_events()[-1] == AuditEvent.LOGIN_ERROR


def test_health(client):
    body = client.get(f"{API}/health").get_json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_health_reports_database_outage(monkeypatch, client):
    from api import health as health_module

    monkeypatch.setattr(health_module, "_database_ok", lambda: False)

    response = client.get(f"{API}/health")
    assert response.status_code == 503
    assert response.get_json()["database"] == "unavailable"
