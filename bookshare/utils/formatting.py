"""Pure display helpers shared by the client pages.

Every function here is stateless. Book helpers accept either ``Book``
instances or the plain dicts returned by the API.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, TypeVar, Union

from bookshare.models import COVER_COLOR_PATTERN

T = TypeVar("T")

_NON_DIGITS = re.compile(r"\D", re.ASCII)
_PHONE_PATTERN = re.compile(r"^(\d{3})(\d{3})(\d{4})$", re.ASCII)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _book_field(book: Any, attr: str, key: str) -> Any:
    if isinstance(book, dict):
        return book.get(key)
    return getattr(book, attr, None)


def string_to_color(text: str) -> str:
    """Return a stable ``#rrggbb`` color derived from ``text``.

    Uses the classic ``hash * 31 + char`` string hash over UTF-16 code
    units with 32-bit shifts, so the same title always gets the same
    cover color in every client.
    """
    units = text.encode("utf-16-le")
    hash_value = 0
    for i in range(0, len(units), 2):
        code_unit = units[i] | (units[i + 1] << 8)
        shifted = _to_int32(_to_int32(hash_value) << 5)
        hash_value = code_unit + (shifted - hash_value)

    hash_value = _to_int32(hash_value)
    color = "#"
    for i in range(3):
        value = (hash_value >> (i * 8)) & 0xFF
        color += f"{value:02x}"
    return color


def format_phone_number(phone_number: str) -> str:
    """Format a 10 digit number as ``(XXX) XXX-XXXX``; return anything else unchanged."""
    cleaned = _NON_DIGITS.sub("", phone_number)
    match = _PHONE_PATTERN.match(cleaned)
    if match:
        return f"({match.group(1)}) {match.group(2)}-{match.group(3)}"
    return phone_number


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_date(value: Union[str, date, datetime]) -> str:
    """Long US style date, e.g. ``January 5, 2025``."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def filter_books_by_status(books: Iterable[T], status: str) -> List[T]:
    return [book for book in books if _book_field(book, "status", "status") == status]


def group_books_by_genre(books: Iterable[T]) -> Dict[str, List[T]]:
    groups: Dict[str, List[T]] = {}
    for book in books:
        genre = _book_field(book, "genre", "genre") or "Unknown"
        groups.setdefault(genre, []).append(book)
    return groups


def is_book_owner(book_owner_id: str, user_id: Optional[str] = None) -> bool:
    return bool(user_id and book_owner_id == user_id)


def status_label(status: str) -> str:
    return "Available" if status == "available" else "Rented"


def cover_color(book: Any) -> str:
    """The book's own cover color when it is a valid ``#rrggbb``, else one derived from its title."""
    color = _book_field(book, "cover_color", "coverColor")
    if color and COVER_COLOR_PATTERN.match(color):
        return color
    return string_to_color(_book_field(book, "title", "title") or "")
