import json
import os
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from bookshare.models import Book, User
from bookshare.utils.formatting import cover_color, format_date, format_phone_number, status_label, truncate_text

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "BOOKSHARE_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _role_label(role: str) -> str:
    return "Book Owner" if role == "owner" else "Book Seeker"


def print_book_list(books: List[Book], empty_message: str = "No books found.") -> None:
    """Print books in the current output mode.
    - plain: 'id - Title by Author [genre | location] Status' lines
    - json: JSON array of book records
    - rich: Rich table
    """
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
        return

    if not books:
        print(empty_message)
        return

    if mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Location", style="white")
        table.add_column("Status")
        for b in books:
            style = "green" if b.is_available else "yellow"
            table.add_row(
                f"[{cover_color(b)}]■[/] {b.id}",
                escape(b.title),
                escape(b.author),
                escape(truncate_text(b.genre, 30)),
                escape(truncate_text(b.location, 20)),
                f"[{style}]{status_label(b.status)}[/]",
            )
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [{truncate_text(b.genre, 30)} | "
                  f"{truncate_text(b.location, 20)}] {status_label(b.status)}")


def print_book_detail(book: Book, owner_view: bool = False) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
        return

    availability = "Available for borrowing" if book.is_available else "Currently being borrowed"
    lines = [
        ("Title", book.title),
        ("Author", book.author),
        ("Genre", book.genre or "Unknown"),
        ("Location", book.location),
        ("Contact", format_phone_number(book.contact_info)),
        ("Status", f"{status_label(book.status)} - {availability}"),
        ("Cover", cover_color(book)),
    ]
    if book.image_url:
        lines.append(("Image", book.image_url))
    if book.created_at:
        lines.append(("Listed", format_date(book.created_at)))

    if mode == "rich":
        body = "\n".join(f"[bold]{label}:[/] {escape(str(value))}" for label, value in lines)
        _console.print(Panel.fit(body, title=escape(book.title), border_style=cover_color(book)))
    else:
        for label, value in lines:
            print(f"{label}: {value}")

    if owner_view:
        print(f"You own this book. Edit with 'bookshare edit {book.id}' or remove with 'bookshare delete {book.id}'.")
    elif book.is_available:
        print(f"Request it with 'bookshare request {book.id}'.")


def print_user(user: Optional[User]) -> None:
    mode = get_output_mode()

    if user is None:
        print("Not logged in.")
        return

    if mode == "json":
        print(json.dumps(user.to_dict(), ensure_ascii=False))
        return

    lines = [
        ("Name", user.name),
        ("Email", user.email),
        ("Mobile", format_phone_number(user.mobile_number) if user.mobile_number else "-"),
        ("Address", user.address or "-"),
        ("Role", _role_label(user.role)),
    ]
    if mode == "rich":
        body = "\n".join(f"[bold]{label}:[/] {escape(str(value))}" for label, value in lines)
        _console.print(Panel.fit(body, title="Profile", border_style="blue"))
    else:
        for label, value in lines:
            print(f"{label}: {value}")


def print_dashboard(user: User, sections: Dict[str, List[Book]]) -> None:
    """Print the dashboard tabs (all / available / rented) for a user."""
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps({name: [b.to_dict() for b in books] for name, books in sections.items()},
                         ensure_ascii=False))
        return

    if user.is_owner:
        empty = "No books yet. Add some books to your collection with 'bookshare add'."
    else:
        empty = "No books yet. Browse available books to rent with 'bookshare books'."

    for name, books in sections.items():
        heading = f"{name.title()} ({len(books)})"
        if mode == "rich":
            _console.rule(f"[bold]{heading}[/]")
        else:
            print(f"== {heading} ==")
        print_book_list(books, empty_message=empty)


def print_filters(filters: Dict[str, List[str]]) -> None:
    if get_output_mode() == "json":
        return
    if filters.get("genres"):
        print(f"Genres: {', '.join(filters['genres'])}")
    if filters.get("locations"):
        print(f"Locations: {', '.join(filters['locations'])}")
