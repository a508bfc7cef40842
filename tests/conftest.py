import pytest

from api import create_app
from api.cli import seed_default_users
from models import storage

API = "/api"


@pytest.fixture
def app():
    """Fresh app on its own in-memory database, seeded with the default accounts."""
    app = create_app("testing")
    with app.app_context():
        seed_default_users()
    yield app
    app.extensions["rate_limiter"].stop_sweeper()
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(email="admin@orbit.com", password="admin123", ip="10.0.0.1"):
        return client.post(
            f"{API}/auth/login",
            json={"email": email, "password": password},
            headers={"X-Forwarded-For": ip, "User-Agent": "pytest"},
        )

    return _login


@pytest.fixture
def tokens(login):
    """Token pair of a successful admin login."""
    response = login()
    assert response.status_code == 200
    return response.get_json()


@pytest.fixture
def bearer():
    def _bearer(access_token):
        return {"Authorization": f"Bearer {access_token}"}

    return _bearer
