import logging
import subprocess
import sys
from functools import wraps
from typing import Optional

import typer

from bookshare.catalog import Catalog
from bookshare.config import settings
from bookshare.models import STATUS_AVAILABLE, STATUS_RENTED, User
from bookshare.services.auth_service import AuthService
from bookshare.services.book_service import BookService
from bookshare.services.http_client import ApiClient, ApiError
from bookshare.session import Session, SessionStore
from bookshare.utils.formatting import filter_books_by_status, is_book_owner
from bookshare.utils.ui_helpers import (
    print_book_detail,
    print_book_list,
    print_dashboard,
    print_filters,
    print_user,
    set_output_mode,
)
from bookshare.utils.validators import FormValidator, ValidationError

logger = logging.getLogger(__name__)


class ClientContext:
    """Everything a page needs: the stored session and the services bound to it."""

    def __init__(self, store: Optional[SessionStore] = None, client: Optional[ApiClient] = None):
        self.store = store or SessionStore()
        self.session: Session = self.store.current()
        self.client = client or ApiClient()
        self.client.set_auth_token(self.session.token)
        self.auth = AuthService(self.client, self.store)
        self.books = BookService(self.client)

    def require_login(self) -> User:
        if not self.session.is_authenticated:
            print("Please log in first.")
            raise typer.Exit(code=1)
        return self.session.user

    def require_owner(self) -> User:
        user = self.require_login()
        if not user.is_owner:
            print("Only book owners can do this.")
            raise typer.Exit(code=1)
        return user

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def get_context() -> ClientContext:
    return ClientContext()


def handle_errors(func):
    """Turn API and validation failures into one message and exit code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            for message in e.errors.values():
                print(f"Invalid input: {message}")
            raise typer.Exit(code=1)
        except ApiError as e:
            print(f"Error: {e.message}")
            raise typer.Exit(code=1)
    return wrapper


# --- Typer CLI application ---
app = typer.Typer(help="BookShare - share books with your community")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (output mode)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)


# --- Account pages ---
@app.command("register")
@handle_errors
def cli_register(
    name: str = typer.Option(..., prompt=True),
    email: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    confirm_password: str = typer.Option(..., "--confirm-password", prompt="Confirm password", hide_input=True),
    role: str = typer.Option(..., prompt="Role (owner/seeker)", help="owner lists books, seeker borrows them"),
    mobile_number: str = typer.Option("", "--mobile", help="Mobile number"),
    address: str = typer.Option("", "--address"),
):
    """Create an account and log in."""
    payload = FormValidator.registration(name, email, password, confirm_password, role.strip().lower(),
                                         mobile_number, address)
    with get_context() as ctx:
        user = ctx.auth.register(
            name=payload["name"],
            email=payload["email"],
            password=payload["password"],
            role=payload["role"],
            mobile_number=payload["mobileNumber"],
            address=payload["address"],
        )
    print(f"Account created successfully. Welcome, {user.name}!")


@app.command("login")
@handle_errors
def cli_login(
    email: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Log in with email and password."""
    payload = FormValidator.login(email, password)
    with get_context() as ctx:
        user = ctx.auth.login(payload["email"], payload["password"])
    print(f"Logged in as {user.name} ({user.role}).")


@app.command("logout")
@handle_errors
def cli_logout():
    """Log out and forget the stored session."""
    with get_context() as ctx:
        if not ctx.session.is_authenticated:
            print("Not logged in.")
            return
        ctx.auth.logout()
    print("Logged out.")


@app.command("whoami")
@handle_errors
def cli_whoami():
    """Show the logged-in user."""
    with get_context() as ctx:
        user = ctx.auth.current_user()
    print_user(user)


@app.command("profile")
@handle_errors
def cli_profile():
    """Show your profile."""
    with get_context() as ctx:
        ctx.require_login()
        user = ctx.auth.get_profile()
    print_user(user)


@app.command("profile-update")
@handle_errors
def cli_profile_update(
    name: Optional[str] = typer.Option(None, "--name"),
    email: Optional[str] = typer.Option(None, "--email"),
    mobile_number: Optional[str] = typer.Option(None, "--mobile"),
    address: Optional[str] = typer.Option(None, "--address"),
    password: Optional[str] = typer.Option(None, "--password", hide_input=True),
    confirm_password: Optional[str] = typer.Option(None, "--confirm-password", hide_input=True),
):
    """Update your name, email, mobile number, address or password."""
    with get_context() as ctx:
        ctx.require_login()
        payload = FormValidator.profile(name=name, email=email, mobile_number=mobile_number, address=address,
                                        password=password, confirm_password=confirm_password)
        if not payload:
            print("Nothing to update.")
            return
        user = ctx.auth.update_profile(**payload)
    print("Profile updated successfully.")
    print_user(user)


# --- Catalog pages ---
@app.command("books")
@handle_errors
def cli_books(
    q: Optional[str] = typer.Option(None, "--q", "-q", help="Search by title or author"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g"),
    show_filters: bool = typer.Option(False, "--filters", help="List the genres and locations found"),
):
    """Browse and search the catalog."""
    with get_context() as ctx:
        books = ctx.books.list_books(q=q, location=location, genre=genre)
    print_book_list(books, empty_message="No books found. Try adjusting your search or filters.")
    if show_filters:
        print_filters(BookService.available_filters(books))


@app.command("book")
@handle_errors
def cli_book(book_id: str):
    """Show a book's details."""
    with get_context() as ctx:
        book = ctx.books.get_book(book_id)
        user = ctx.session.user
    print_book_detail(book, owner_view=is_book_owner(book.owner_id, user.id if user else None))


@app.command("add")
@handle_errors
def cli_add(
    title: str = typer.Option(..., prompt=True),
    author: str = typer.Option(..., prompt=True),
    genre: str = typer.Option("", "--genre"),
    location: str = typer.Option(..., prompt=True),
    contact_info: str = typer.Option(..., "--contact", prompt="Contact info (email or phone)"),
    image_url: str = typer.Option("", "--image-url"),
):
    """List a new book (owners only)."""
    with get_context() as ctx:
        ctx.require_owner()
        payload = FormValidator.book(title=title, author=author, location=location, contact_info=contact_info,
                                     genre=genre, image_url=image_url)
        book = ctx.books.create_book(payload)
    print(f"Book added: {book.title} ({book.id})")


@app.command("edit")
@handle_errors
def cli_edit(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    location: Optional[str] = typer.Option(None, "--location"),
    contact_info: Optional[str] = typer.Option(None, "--contact"),
    status: Optional[str] = typer.Option(None, "--status", help="available | rented"),
    image_url: Optional[str] = typer.Option(None, "--image-url"),
):
    """Edit one of your books; unspecified fields keep their value."""
    with get_context() as ctx:
        user = ctx.require_owner()
        book = ctx.books.get_book(book_id)
        if not is_book_owner(book.owner_id, user.id):
            print("You can only edit your own books.")
            raise typer.Exit(code=1)
        payload = FormValidator.book(
            title=book.title if title is None else title,
            author=book.author if author is None else author,
            genre=book.genre if genre is None else genre,
            location=book.location if location is None else location,
            contact_info=book.contact_info if contact_info is None else contact_info,
            status=book.status if status is None else status,
            image_url=book.image_url if image_url is None else image_url,
        )
        if book.cover_color:
            payload["coverColor"] = book.cover_color
        updated = ctx.books.update_book(book_id, payload)
    print(f"Book updated: {updated.title}")


@app.command("delete")
@handle_errors
def cli_delete(book_id: str, yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation")):
    """Delete one of your books."""
    with get_context() as ctx:
        ctx.require_owner()
        book = ctx.books.get_book(book_id)
        if not yes and not typer.confirm(f"Are you sure you want to delete {book.title}? This cannot be undone."):
            print("Cancelled.")
            return
        ctx.books.delete_book(book_id)
    print("Book deleted successfully.")


@app.command("request")
@handle_errors
def cli_request(book_id: str):
    """Ask to borrow a book (seekers only)."""
    with get_context() as ctx:
        user = ctx.require_login()
        book = ctx.books.get_book(book_id)
        if is_book_owner(book.owner_id, user.id):
            print("You cannot request your own book.")
            raise typer.Exit(code=1)
        if user.is_owner:
            print("Only book seekers can request books.")
            raise typer.Exit(code=1)
        if not book.is_available:
            print("This book is not available right now.")
            raise typer.Exit(code=1)
        book = ctx.books.request_book(book_id)
    print("Book request sent successfully.")
    print_book_detail(book)


@app.command("dashboard")
@handle_errors
def cli_dashboard():
    """Your books: listed ones for owners, rented ones for seekers."""
    with get_context() as ctx:
        user = ctx.require_login()
        books = ctx.books.dashboard_books(user)
    print_dashboard(user, {
        "all": books,
        STATUS_AVAILABLE: filter_books_by_status(books, STATUS_AVAILABLE),
        STATUS_RENTED: filter_books_by_status(books, STATUS_RENTED),
    })


# --- Backend ---
@app.command("import-legacy")
def cli_import_legacy(data_dir: str, db_file: Optional[str] = typer.Option(None, "--db")):
    """Import users.json and books.json from an old data directory into the database."""
    try:
        users, books = Catalog(db_file).import_legacy_data(data_dir)
    except ValueError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f"Imported {users} users and {books} books.")


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the BookShare API with uvicorn."""
    host = host or settings.api_host
    port = port or settings.api_port
    print(f"Starting BookShare API on http://{host}:{port}/api")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "bookshare.api:create_app",
        "--factory",
        "--host", host,
        "--port", str(port),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=True)
    except FileNotFoundError:
        print("Error: uvicorn could not be started. Make sure it is installed.")
        raise typer.Exit(code=1)
    except subprocess.CalledProcessError as e:
        raise typer.Exit(code=e.returncode)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
