import pytest
from fastapi.testclient import TestClient

from bookshare.api import create_app
from bookshare.catalog import Catalog
from bookshare.config import settings
from bookshare.services.http_client import ApiClient
from bookshare.session import SessionStore, create_auth_token
from bookshare.utils.ui_helpers import OUTPUT_MODE_ENV


@pytest.fixture(autouse=True)
def _plain_output(monkeypatch):
    # --output sets an env var; keep it from leaking between tests
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")


@pytest.fixture
def catalog(tmp_path, request):
    # A fresh database file for every test
    return Catalog(db_file=str(tmp_path / f"test_{request.node.name}.db"))


@pytest.fixture
def app(catalog):
    return create_app(catalog)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api_client(app):
    """ApiClient talking to the in-process app instead of the network."""
    with TestClient(app, base_url="http://testserver/api") as test_client:
        yield ApiClient(http_client=test_client)


@pytest.fixture
def session_store(tmp_path, monkeypatch):
    path = str(tmp_path / "session.json")
    monkeypatch.setattr(settings, "session_file", path)
    return SessionStore(path)


@pytest.fixture
def owner(catalog):
    return catalog.create_user(name="Olivia Owner", email="olivia@example.com", password="secret1",
                               role="owner", mobile_number="5551234567", address="12 Elm St")


@pytest.fixture
def seeker(catalog):
    return catalog.create_user(name="Sam Seeker", email="sam@example.com", password="secret2", role="seeker")


@pytest.fixture
def owner_auth():
    return {"Authorization": f"Basic {create_auth_token('olivia@example.com', 'secret1')}"}


@pytest.fixture
def seeker_auth():
    return {"Authorization": f"Basic {create_auth_token('sam@example.com', 'secret2')}"}


@pytest.fixture
def book(catalog, owner):
    return catalog.create_book(owner, title="Dune", author="Frank Herbert", genre="Science Fiction",
                               location="Portland", contact_info="5551234567")
