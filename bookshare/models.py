from __future__ import annotations

import re

ROLE_OWNER = "owner"
ROLE_SEEKER = "seeker"
ROLES = (ROLE_OWNER, ROLE_SEEKER)

STATUS_AVAILABLE = "available"
STATUS_RENTED = "rented"
STATUSES = (STATUS_AVAILABLE, STATUS_RENTED)

COVER_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


class User:
    """A registered member, either a book owner or a book seeker."""

    def __init__(self, id: str, name: str, email: str, role: str, mobile_number: str | None = None,
                 address: str | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = email.strip()
        self.role = role
        self.mobile_number = mobile_number or ""
        self.address = address or ""

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}> ({self.role})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_owner(self) -> bool:
        return self.role == ROLE_OWNER

    def to_dict(self) -> dict:
        # Password is write-only and never part of the record
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "mobileNumber": self.mobile_number,
            "address": self.address,
            "role": self.role,
        }

    @staticmethod
    def from_dict(data: dict) -> "User":
        return User(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            email=data.get("email") or "",
            role=data.get("role") or ROLE_SEEKER,
            mobile_number=data.get("mobileNumber", data.get("mobile_number")),
            address=data.get("address"),
        )


class Book:
    """A book listed by an owner for others to borrow."""

    def __init__(self, id: str, title: str, author: str, location: str, contact_info: str, owner_id: str,
                 genre: str | None = None, status: str = STATUS_AVAILABLE, image_url: str | None = None,
                 cover_color: str | None = None, created_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.genre = (genre or "").strip()
        self.location = location.strip()
        self.contact_info = contact_info.strip()
        self.owner_id = owner_id
        self.status = status or STATUS_AVAILABLE
        self.image_url = image_url or None
        self.cover_color = cover_color or None
        self.created_at = created_at or None

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.status})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_available(self) -> bool:
        return self.status == STATUS_AVAILABLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "location": self.location,
            "contactInfo": self.contact_info,
            "ownerId": self.owner_id,
            "status": self.status,
            "imageUrl": self.image_url,
            "coverColor": self.cover_color,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # Accepts both the API's camelCase keys and SQLite column names
        return Book(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            author=data.get("author") or "",
            genre=data.get("genre"),
            location=data.get("location") or "",
            contact_info=data.get("contactInfo", data.get("contact_info")) or "",
            owner_id=str(data.get("ownerId", data.get("owner_id")) or ""),
            status=data.get("status") or STATUS_AVAILABLE,
            image_url=data.get("imageUrl", data.get("image_url")),
            cover_color=data.get("coverColor", data.get("cover_color")),
            created_at=data.get("createdAt", data.get("created_at")),
        )
