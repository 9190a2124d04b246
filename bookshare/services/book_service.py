import logging
from typing import Dict, List, Optional

from bookshare.models import Book, User
from bookshare.services.http_client import ApiClient

logger = logging.getLogger(__name__)


class BookService:
    """Catalog operations. The server is authoritative; nothing is cached."""

    def __init__(self, client: ApiClient):
        self.client = client

    def list_books(self, q: Optional[str] = None, location: Optional[str] = None,
                   genre: Optional[str] = None, title: Optional[str] = None) -> List[Book]:
        response = self.client.get("/books", {"q": q, "title": title, "location": location, "genre": genre})
        return [Book.from_dict(item) for item in response.get("books") or []]

    def get_book(self, book_id: str) -> Book:
        response = self.client.get(f"/books/{book_id}")
        return Book.from_dict(response["book"])

    def create_book(self, data: dict) -> Book:
        response = self.client.post("/books", data)
        book = Book.from_dict(response["book"])
        logger.info(f"Created book {book.id}")
        return book

    def update_book(self, book_id: str, data: dict) -> Book:
        response = self.client.put(f"/books/{book_id}", data)
        return Book.from_dict(response["book"])

    def delete_book(self, book_id: str) -> None:
        self.client.delete(f"/books/{book_id}")
        logger.info(f"Deleted book {book_id}")

    def request_book(self, book_id: str) -> Book:
        """Ask to borrow a book, then re-fetch it to show the new status."""
        self.client.post(f"/books/{book_id}/request", {})
        return self.get_book(book_id)

    def owned_books(self) -> List[Book]:
        response = self.client.get("/books/owned")
        return [Book.from_dict(item) for item in response.get("books") or []]

    def rented_books(self) -> List[Book]:
        response = self.client.get("/rented-books")
        return [Book.from_dict(item) for item in response.get("books") or []]

    def dashboard_books(self, user: User) -> List[Book]:
        return self.owned_books() if user.is_owner else self.rented_books()

    @staticmethod
    def available_filters(books: List[Book]) -> Dict[str, List[str]]:
        """Unique genres and locations for the browse filters."""
        return {
            "genres": sorted({b.genre for b in books if b.genre}),
            "locations": sorted({b.location for b in books if b.location}),
        }
