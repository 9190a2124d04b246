import hashlib
import hmac
import logging
import secrets
import sqlite3
from typing import List, Optional, Tuple

from bookshare.config import settings
from bookshare.database import get_db_connection, initialize_database, load_legacy_json
from bookshare.models import COVER_COLOR_PATTERN, Book, ROLE_OWNER, ROLE_SEEKER, ROLES, STATUS_AVAILABLE, STATUS_RENTED, User

logger = logging.getLogger(__name__)

_HASH_ITERATIONS = 100_000

_BOOK_COLUMNS = """
    id, title, author, genre, location, contact_info, owner_id, status, image_url, cover_color, created_at
"""
_USER_COLUMNS = "id, name, email, mobile_number, address, role"


class BookUnavailableError(Exception):
    """The book is already rented."""
    pass


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), _HASH_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, sep, _ = stored.partition("$")
    if not sep:
        return False
    return hmac.compare_digest(hash_password(password, salt), stored)


def generate_id() -> str:
    return secrets.token_hex(16)


def _user_from_row(row: sqlite3.Row) -> User:
    return User.from_dict(dict(row))


def _book_from_row(row: sqlite3.Row) -> Book:
    return Book.from_dict(dict(row))


class Catalog:
    """Users and book listings, persisted in SQLite."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or settings.database_file
        initialize_database(self.db_file)

    # ------------------------- Users ------------------------- #
    def create_user(self, name: str, email: str, password: str, role: str,
                    mobile_number: str = "", address: str = "") -> User:
        if role not in ROLES:
            raise ValueError("Role must be either owner or seeker")
        if self.get_user_by_email(email):
            raise ValueError("Email already registered")
        user = User(id=generate_id(), name=name, email=email, role=role,
                    mobile_number=mobile_number, address=address)
        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                """
                INSERT INTO users (id, name, email, password_hash, mobile_number, address, role)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (user.id, user.name, user.email, hash_password(password),
                 user.mobile_number, user.address, user.role),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError("Email already registered") from e
        finally:
            conn.close()
        logger.info(f"Registered {role} {user.id}")
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
            return _user_from_row(row) if row else None
        finally:
            conn.close()

    def get_user_by_email(self, email: str) -> Optional[User]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE email = ? COLLATE NOCASE", (email.strip(),)
            ).fetchone()
            return _user_from_row(row) if row else None
        finally:
            conn.close()

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the user when the email and password match, else None."""
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS}, password_hash FROM users WHERE email = ? COLLATE NOCASE",
                (email.strip(),),
            ).fetchone()
        finally:
            conn.close()
        if not row or not verify_password(password, row["password_hash"]):
            return None
        return _user_from_row(row)

    def update_user(self, user_id: str, name: Optional[str] = None, email: Optional[str] = None,
                    password: Optional[str] = None, mobile_number: Optional[str] = None,
                    address: Optional[str] = None) -> Optional[User]:
        """Update the given fields; empty values leave a field unchanged."""
        user = self.get_user(user_id)
        if not user:
            return None
        if email and email.strip().lower() != user.email.lower():
            if self.get_user_by_email(email):
                raise ValueError("Email already registered")
            user.email = email.strip()
        if name:
            user.name = name.strip()
        if mobile_number:
            user.mobile_number = mobile_number.strip()
        if address:
            user.address = address.strip()

        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                "UPDATE users SET name = ?, email = ?, mobile_number = ?, address = ? WHERE id = ?",
                (user.name, user.email, user.mobile_number, user.address, user.id),
            )
            if password:
                conn.execute("UPDATE users SET password_hash = ? WHERE id = ?", (hash_password(password), user.id))
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValueError("Email already registered") from e
        finally:
            conn.close()
        return user

    # ------------------------- Books ------------------------- #
    def create_book(self, owner: User, title: str, author: str, location: str, contact_info: str,
                    genre: str = "", status: str = STATUS_AVAILABLE, image_url: Optional[str] = None,
                    cover_color: Optional[str] = None) -> Book:
        if owner.role != ROLE_OWNER:
            raise PermissionError("Only book owners can create listings")
        book = Book(id=generate_id(), title=title, author=author, genre=genre, location=location,
                    contact_info=contact_info, owner_id=owner.id, status=status,
                    image_url=image_url, cover_color=cover_color)
        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                """
                INSERT INTO books (id, title, author, genre, location, contact_info, owner_id,
                                   status, image_url, cover_color)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (book.id, book.title, book.author, book.genre, book.location, book.contact_info,
                 book.owner_id, book.status, book.image_url, book.cover_color),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Owner {owner.id} listed book {book.id}")
        return self.get_book(book.id)

    def get_book(self, book_id: str) -> Optional[Book]:
        conn = get_db_connection(self.db_file)
        try:
            row = conn.execute(f"SELECT {_BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,)).fetchone()
            return _book_from_row(row) if row else None
        finally:
            conn.close()

    def list_books(self, q: Optional[str] = None, title: Optional[str] = None,
                   location: Optional[str] = None, genre: Optional[str] = None) -> List[Book]:
        """All books in listing order, narrowed by case-insensitive substring filters.

        ``q`` matches title or author, ``title`` matches the title only.
        Empty filters are ignored.
        """
        clauses: List[str] = []
        params: List[str] = []
        if q:
            clauses.append("(LOWER(title) LIKE ? ESCAPE '\\' OR LOWER(author) LIKE ? ESCAPE '\\')")
            params.extend([_like(q), _like(q)])
        if title:
            clauses.append("LOWER(title) LIKE ? ESCAPE '\\'")
            params.append(_like(title))
        if location:
            clauses.append("LOWER(location) LIKE ? ESCAPE '\\'")
            params.append(_like(location))
        if genre:
            clauses.append("LOWER(genre) LIKE ? ESCAPE '\\'")
            params.append(_like(genre))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return self._select_books(f"SELECT {_BOOK_COLUMNS} FROM books {where} ORDER BY rowid", params)

    def books_by_owner(self, owner_id: str) -> List[Book]:
        return self._select_books(
            f"SELECT {_BOOK_COLUMNS} FROM books WHERE owner_id = ? ORDER BY rowid", [owner_id]
        )

    def books_rented_by(self, user_id: str) -> List[Book]:
        return self._select_books(
            f"SELECT {_BOOK_COLUMNS} FROM books WHERE renter_id = ? AND status = ? ORDER BY rowid",
            [user_id, STATUS_RENTED],
        )

    def update_book(self, book_id: str, user: User, **fields) -> Book:
        """Replace the editable fields of a book owned by ``user``.

        Raises LookupError if the book does not exist and PermissionError
        if it belongs to someone else.
        """
        book = self._owned_book(book_id, user, "You can only update your own books")
        for attr in ("title", "author", "genre", "location", "contact_info", "status", "image_url", "cover_color"):
            if attr in fields and fields[attr] is not None:
                setattr(book, attr, fields[attr].strip() if isinstance(fields[attr], str) else fields[attr])

        conn = get_db_connection(self.db_file)
        try:
            conn.execute(
                """
                UPDATE books SET title = ?, author = ?, genre = ?, location = ?, contact_info = ?,
                                 status = ?, image_url = ?, cover_color = ?
                WHERE id = ?
                """,
                (book.title, book.author, book.genre, book.location, book.contact_info,
                 book.status, book.image_url or None, book.cover_color or None, book.id),
            )
            if book.status == STATUS_AVAILABLE:
                # Returned books no longer count as rented by anyone
                conn.execute("UPDATE books SET renter_id = NULL WHERE id = ?", (book.id,))
            conn.commit()
        finally:
            conn.close()
        return book

    def delete_book(self, book_id: str, user: User) -> None:
        self._owned_book(book_id, user, "You can only delete your own books")
        conn = get_db_connection(self.db_file)
        try:
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Owner {user.id} removed book {book_id}")

    def request_book(self, book_id: str, seeker: User) -> Book:
        """Mark an available book as rented by ``seeker``."""
        if seeker.role != ROLE_SEEKER:
            raise PermissionError("Seeker access required")
        book = self.get_book(book_id)
        if not book:
            raise LookupError("Book not found")
        if book.owner_id == seeker.id:
            raise PermissionError("You cannot request your own book")
        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.execute(
                "UPDATE books SET status = ?, renter_id = ? WHERE id = ? AND status = ?",
                (STATUS_RENTED, seeker.id, book_id, STATUS_AVAILABLE),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise BookUnavailableError("Book is not available")
        finally:
            conn.close()
        logger.info(f"Seeker {seeker.id} rented book {book_id}")
        book.status = STATUS_RENTED
        return book

    def counts(self) -> Tuple[int, int]:
        conn = get_db_connection(self.db_file)
        try:
            users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            books = conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
            return users, books
        finally:
            conn.close()

    def import_legacy_data(self, data_dir: str) -> Tuple[int, int]:
        """Copy users and books from an old JSON data directory.

        Records whose id already exists are skipped. Plain-text passwords
        from the old store are hashed on the way in. Returns the number of
        users and books inserted.
        """
        users, books = load_legacy_json(data_dir)
        added_users = added_books = 0
        conn = get_db_connection(self.db_file)
        try:
            for user_id, item in users.items():
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO users (id, name, email, password_hash, mobile_number, address, role)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (item.get("id") or user_id, item.get("name", ""), item.get("email", ""),
                     hash_password(item.get("password", "")), item.get("mobileNumber", ""),
                     item.get("address", ""), item.get("role", ROLE_SEEKER)),
                )
                added_users += cursor.rowcount
            for book_id, item in books.items():
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO books (id, title, author, genre, location, contact_info, owner_id,
                                                 status, image_url, cover_color)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (item.get("id") or book_id, item.get("title", ""), item.get("author", ""),
                     item.get("genre", ""), item.get("location", ""), item.get("contactInfo", ""),
                     item.get("ownerId", ""), item.get("status") or STATUS_AVAILABLE,
                     item.get("imageUrl") or None, _legacy_cover_color(item.get("coverColor"))),
                )
                added_books += cursor.rowcount
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise ValueError(f"Legacy data is inconsistent: {e}") from e
        finally:
            conn.close()
        return added_users, added_books

    # ------------------------- Helpers ------------------------- #
    def _owned_book(self, book_id: str, user: User, message: str) -> Book:
        book = self.get_book(book_id)
        if not book:
            raise LookupError("Book not found")
        if book.owner_id != user.id:
            raise PermissionError(message)
        return book

    def _select_books(self, sql: str, params: List[str]) -> List[Book]:
        conn = get_db_connection(self.db_file)
        try:
            return [_book_from_row(row) for row in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()


def _legacy_cover_color(value) -> Optional[str]:
    # The old store accepted any string here
    if isinstance(value, str) and COVER_COLOR_PATTERN.match(value):
        return value
    return None


def _like(term: str) -> str:
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
