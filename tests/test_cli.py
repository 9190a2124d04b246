import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from bookshare import main
from bookshare.main import ClientContext, app
from bookshare.services.book_service import BookService
from bookshare.services.http_client import NetworkError
from bookshare.session import create_auth_token

runner = CliRunner()


@pytest.fixture(autouse=True)
def context(monkeypatch, session_store, api_client):
    """Point every page at the in-process API and a temporary session file."""
    monkeypatch.setattr(main, "get_context", lambda: ClientContext(store=session_store, client=api_client))


@pytest.fixture
def as_owner(session_store, owner):
    session_store.save(owner, create_auth_token("olivia@example.com", "secret1"))
    return owner


@pytest.fixture
def as_seeker(session_store, seeker):
    session_store.save(seeker, create_auth_token("sam@example.com", "secret2"))
    return seeker


# --- Account pages ---
def test_register_success(session_store):
    result = runner.invoke(app, [
        "register", "--name", "Nora", "--email", "nora@example.com", "--password", "secret",
        "--confirm-password", "secret", "--role", "Owner", "--mobile", "5550001111",
    ])
    assert result.exit_code == 0
    assert "Account created successfully. Welcome, Nora!" in result.stdout
    assert session_store.is_owner()


def test_register_rejects_short_password(session_store):
    result = runner.invoke(app, [
        "register", "--name", "Nora", "--email", "nora@example.com", "--password", "abc",
        "--confirm-password", "abc", "--role", "seeker",
    ])
    assert result.exit_code == 1
    assert "Invalid input: Password must be at least 6 characters" in result.stdout
    assert not session_store.is_authenticated()


def test_register_duplicate_email(owner):
    result = runner.invoke(app, [
        "register", "--name", "Olivia", "--email", "olivia@example.com", "--password", "secret",
        "--confirm-password", "secret", "--role", "seeker",
    ])
    assert result.exit_code == 1
    assert "Error: Email already registered" in result.stdout


def test_login_and_logout(owner, session_store):
    result = runner.invoke(app, ["login", "--email", "olivia@example.com", "--password", "secret1"])
    assert result.exit_code == 0
    assert "Logged in as Olivia Owner (owner)." in result.stdout
    assert session_store.is_authenticated()

    result = runner.invoke(app, ["logout"])
    assert result.exit_code == 0
    assert "Logged out." in result.stdout
    assert not session_store.is_authenticated()


def test_login_wrong_password(owner):
    result = runner.invoke(app, ["login", "--email", "olivia@example.com", "--password", "nope"])
    assert result.exit_code == 1
    assert "Error: Invalid credentials" in result.stdout


def test_whoami(as_owner):
    result = runner.invoke(app, ["whoami"])
    assert result.exit_code == 0
    assert "Name: Olivia Owner" in result.stdout
    assert "Mobile: (555) 123-4567" in result.stdout
    assert "Role: Book Owner" in result.stdout


def test_whoami_logged_out():
    result = runner.invoke(app, ["whoami"])
    assert result.exit_code == 0
    assert "Not logged in." in result.stdout


def test_profile_requires_login():
    result = runner.invoke(app, ["profile"])
    assert result.exit_code == 1
    assert "Please log in first." in result.stdout


def test_profile_update(as_seeker, session_store):
    result = runner.invoke(app, ["profile-update", "--name", "Samuel", "--address", "9 Oak Ave"])
    assert result.exit_code == 0
    assert "Profile updated successfully." in result.stdout
    assert "Address: 9 Oak Ave" in result.stdout
    assert session_store.load()[0].name == "Samuel"


def test_profile_update_invalid_mobile(as_seeker):
    result = runner.invoke(app, ["profile-update", "--mobile", "123"])
    assert result.exit_code == 1
    assert "Invalid input: Mobile number must be at least 10 digits" in result.stdout


# --- Catalog pages ---
def test_books_empty():
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "No books found. Try adjusting your search or filters." in result.stdout


def test_books_lists_and_filters(book, catalog, owner):
    catalog.create_book(owner, title="Emma", author="Jane Austen", genre="Classic", location="Bath",
                        contact_info="x")
    result = runner.invoke(app, ["books", "--filters"])
    assert result.exit_code == 0
    assert f"{book.id} - Dune by Frank Herbert [Science Fiction | Portland] Available" in result.stdout
    assert "Genres: Classic, Science Fiction" in result.stdout
    assert "Locations: Bath, Portland" in result.stdout

    result = runner.invoke(app, ["books", "--q", "austen"])
    assert "Emma" in result.stdout
    assert "Dune" not in result.stdout


def test_books_json_output(book):
    result = runner.invoke(app, ["--output", "json", "books"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data[0]["title"] == "Dune"
    assert data[0]["contactInfo"] == "5551234567"


def test_books_network_error(monkeypatch):
    monkeypatch.setattr(BookService, "list_books", MagicMock(side_effect=NetworkError("Network error: refused")))
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 1
    assert "Error: Network error: refused" in result.stdout


def test_book_detail(book):
    result = runner.invoke(app, ["book", book.id])
    assert result.exit_code == 0
    assert "Title: Dune" in result.stdout
    assert "Contact: (555) 123-4567" in result.stdout
    assert "Status: Available - Available for borrowing" in result.stdout
    assert f"bookshare request {book.id}" in result.stdout


def test_book_detail_owner_view(book, as_owner):
    result = runner.invoke(app, ["book", book.id])
    assert f"bookshare edit {book.id}" in result.stdout


def test_book_not_found():
    result = runner.invoke(app, ["book", "missing"])
    assert result.exit_code == 1
    assert "Error: Book not found" in result.stdout


def test_add_requires_owner(as_seeker):
    result = runner.invoke(app, ["add", "--title", "Emma", "--author", "Jane Austen", "--location", "Bath",
                                 "--contact", "x"])
    assert result.exit_code == 1
    assert "Only book owners can do this." in result.stdout


def test_add_book(as_owner, catalog):
    result = runner.invoke(app, ["add", "--title", "Emma", "--author", "Jane Austen", "--location", "Bath",
                                 "--contact", "olivia@example.com", "--genre", "Classic"])
    assert result.exit_code == 0
    assert "Book added: Emma (" in result.stdout
    assert [b.title for b in catalog.books_by_owner(as_owner.id)] == ["Emma"]


def test_add_book_bad_image_url(as_owner):
    result = runner.invoke(app, ["add", "--title", "Emma", "--author", "Jane Austen", "--location", "Bath",
                                 "--contact", "x", "--image-url", "cover.png"])
    assert result.exit_code == 1
    assert "Invalid input: Image URL must start with http:// or https://" in result.stdout


def test_edit_keeps_unchanged_fields(as_owner, book, catalog):
    result = runner.invoke(app, ["edit", book.id, "--title", "Dune Messiah", "--status", "rented"])
    assert result.exit_code == 0
    assert "Book updated: Dune Messiah" in result.stdout
    stored = catalog.get_book(book.id)
    assert stored.author == "Frank Herbert"
    assert stored.status == "rented"


def test_edit_someone_elses_book(book, catalog, session_store):
    other = catalog.create_user(name="Other Owner", email="other@example.com", password="secret3", role="owner")
    session_store.save(other, create_auth_token("other@example.com", "secret3"))
    result = runner.invoke(app, ["edit", book.id, "--title", "Mine now"])
    assert result.exit_code == 1
    assert "You can only edit your own books." in result.stdout


def test_delete_asks_for_confirmation(as_owner, book, catalog):
    result = runner.invoke(app, ["delete", book.id], input="n\n")
    assert result.exit_code == 0
    assert "Cancelled." in result.stdout
    assert catalog.get_book(book.id) is not None

    result = runner.invoke(app, ["delete", book.id, "--yes"])
    assert result.exit_code == 0
    assert "Book deleted successfully." in result.stdout
    assert catalog.get_book(book.id) is None


def test_request_book(as_seeker, book):
    result = runner.invoke(app, ["request", book.id])
    assert result.exit_code == 0
    assert "Book request sent successfully." in result.stdout
    assert "Status: Rented" in result.stdout

    result = runner.invoke(app, ["request", book.id])
    assert result.exit_code == 1
    assert "This book is not available right now." in result.stdout


def test_request_own_book(as_owner, book):
    result = runner.invoke(app, ["request", book.id])
    assert result.exit_code == 1
    assert "You cannot request your own book." in result.stdout


def test_request_requires_login(book):
    result = runner.invoke(app, ["request", book.id])
    assert result.exit_code == 1
    assert "Please log in first." in result.stdout


def test_dashboard_owner(as_owner, book):
    result = runner.invoke(app, ["dashboard"])
    assert result.exit_code == 0
    assert "== All (1) ==" in result.stdout
    assert "== Available (1) ==" in result.stdout
    assert "== Rented (0) ==" in result.stdout
    assert "Add some books to your collection" in result.stdout


def test_dashboard_seeker(as_seeker, book, catalog, seeker):
    catalog.request_book(book.id, seeker)
    result = runner.invoke(app, ["dashboard"])
    assert result.exit_code == 0
    assert "== All (1) ==" in result.stdout
    assert "== Rented (1) ==" in result.stdout
    assert "Browse available books to rent" in result.stdout


# --- Backend ---
def test_import_legacy(tmp_path, catalog):
    data_dir = tmp_path / "legacy"
    data_dir.mkdir()
    (data_dir / "users.json").write_text(json.dumps({
        "u1": {"id": "u1", "name": "Legacy", "email": "legacy@example.com", "password": "pw", "role": "owner"},
    }))
    result = runner.invoke(app, ["import-legacy", str(data_dir), "--db", catalog.db_file])
    assert result.exit_code == 0
    assert "Imported 1 users and 0 books." in result.stdout


def test_import_legacy_corrupt_file(tmp_path, catalog):
    (tmp_path / "books.json").write_text("[1, 2")
    result = runner.invoke(app, ["import-legacy", str(tmp_path), "--db", catalog.db_file])
    assert result.exit_code == 1
    assert "Could not parse" in result.stdout


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--port", "9001"])
    assert result.exit_code == 0
    assert "Starting BookShare API on" in result.stdout
    args = mock_subprocess_run.call_args[0][0]
    assert args[1:5] == ["-m", "uvicorn", "bookshare.api:create_app", "--factory"]
    assert args[-1] == "9001"


def test_whoami_when_server_unreachable_keeps_login(as_owner, session_store, monkeypatch):
    monkeypatch.setattr(main.ApiClient, "get", MagicMock(side_effect=NetworkError("Network error: refused")))
    result = runner.invoke(app, ["whoami"])
    assert result.exit_code == 1
    assert "Error: Network error: refused" in result.stdout
    assert session_store.is_authenticated()


def test_rich_output_with_markup_in_titles(as_owner, catalog):
    listed = catalog.create_book(as_owner, title="Notes [/] and more", author="[bold]Anon",
                                 location="Bath [x]", contact_info="x")
    result = runner.invoke(app, ["--output", "rich", "books"])
    assert result.exit_code == 0
    assert "Notes" in result.stdout

    result = runner.invoke(app, ["--output", "rich", "book", listed.id])
    assert result.exit_code == 0
    assert "Notes [/] and more" in result.stdout
    assert "[bold]Anon" in result.stdout


def test_book_detail_shows_listing_date(book):
    result = runner.invoke(app, ["book", book.id])
    assert result.exit_code == 0
    assert "Listed: " in result.stdout


def test_logout_when_logged_out_closes_client(monkeypatch):
    close_mock = MagicMock()
    monkeypatch.setattr(ClientContext, "close", close_mock)
    result = runner.invoke(app, ["logout"])
    assert result.exit_code == 0
    assert "Not logged in." in result.stdout
    close_mock.assert_called_once()


def test_profile_update_invalid_input_closes_client(as_seeker, monkeypatch):
    close_mock = MagicMock()
    monkeypatch.setattr(ClientContext, "close", close_mock)
    result = runner.invoke(app, ["profile-update", "--name", "S"])
    assert result.exit_code == 1
    assert "Invalid input: Name must be at least 2 characters" in result.stdout
    close_mock.assert_called_once()
