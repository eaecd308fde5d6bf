from pathlib import Path
import os
import tempfile
import pytest

# Point the module-level settings at a throwaway location before the app is imported.
_TMP = Path(tempfile.mkdtemp(prefix="notenexus-tests-"))
os.environ.setdefault("DB_PATH", str(_TMP / "db.json"))
os.environ.setdefault("CATALOG_DIR", str(_TMP / "database"))

from fastapi.testclient import TestClient

from notenexus.config import Settings
from notenexus.database import JsonFileBackend
from notenexus.main import app
from notenexus.repositories import UserRepository
from notenexus.services import AuthService, SavedContentStore


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Fresh settings whose database and catalog live in `tmp_path`."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "db.json"))
    monkeypatch.setenv("CATALOG_DIR", str(tmp_path / "database"))
    monkeypatch.setenv("STORAGE_BACKEND", "json")
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    return Settings()


@pytest.fixture
def repo(settings):
    users = UserRepository(JsonFileBackend(settings.DB_PATH)).open()
    yield users
    users.close()


@pytest.fixture
def store(repo):
    return SavedContentStore(repo)


@pytest.fixture
def alice(repo, settings):
    return AuthService(repo, settings).register("Alice", "alice@example.com", "pw123")


@pytest.fixture
def client(settings):
    """A TestClient running the app lifespan against `settings`."""
    app.state.settings = settings
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user through the API and return its auth headers."""
    def _register(email, password="pw123", name="Test"):
        r = client.post('/api/auth/register', json={'name': name, 'email': email, 'password': password})
        assert r.status_code == 200, r.text
        return {'Authorization': f"Bearer {r.json()['token']}"}
    return _register
