import anyio
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.security import JWTAuthenticator
from app.main import create_app
from app.repositories import create_storage

JWT_SECRET = "test-secret"
ADMIN_API_TOKEN = "test-admin-token"


@pytest.fixture
def anyio_backend():
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture
def memory_settings():
    """Settings for the in-memory backend with JWT auth."""
    return Settings(
        storage_backend="memory",
        auth_backend="jwt",
        jwt_secret=JWT_SECRET,
        reward_threshold=6,
        public_base_url="https://coffee.example.com",
    )


@pytest.fixture
def sqlite_settings(tmp_path):
    """Settings for a throwaway SQLite database file."""
    return Settings(
        storage_backend="sqlite",
        database_path=str(tmp_path / "loyalty.db"),
        auth_backend="jwt",
        jwt_secret=JWT_SECRET,
        reward_threshold=6,
        public_base_url="https://coffee.example.com",
    )


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, memory_settings, sqlite_settings):
    """Return an initialized storage backend (runs every test on both)."""
    settings = memory_settings if request.param == "memory" else sqlite_settings
    backend = create_storage(settings)
    anyio.run(backend.init)
    return backend


@pytest.fixture
def sqlite_storage(sqlite_settings):
    """Return an initialized SQLite storage backend."""
    backend = create_storage(sqlite_settings)
    anyio.run(backend.init)
    return backend


@pytest.fixture(params=["memory", "sqlite"])
def app(request, memory_settings, sqlite_settings):
    """Return the API app on each storage backend."""
    settings = memory_settings if request.param == "memory" else sqlite_settings
    return create_app(settings)


@pytest.fixture
def client(app):
    """Return an unauthenticated API client."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def authenticator():
    return JWTAuthenticator(JWT_SECRET)


@pytest.fixture
def admin_headers(authenticator):
    """Authorization headers for a barista with the admin role."""
    token = authenticator.issue_token("barista-1", roles=["admin"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(authenticator):
    """Authorization headers for an authenticated non-admin user."""
    token = authenticator.issue_token("customer-1")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered_customer(client):
    """Register a customer through the API and return its id."""
    response = client.post("/api/register", json={"name": "Anna Petrova", "phone": "+7 (900) 111-22-33"})
    assert response.status_code == 200
    return response.json()["customerId"]
