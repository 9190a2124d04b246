import re
from typing import Dict, Optional

from bookshare.models import ROLES, STATUSES, STATUS_AVAILABLE

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """Form input rejected before any request is sent."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(errors.values()))


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _digit_count(value: str) -> int:
    return sum(1 for ch in value if ch.isdigit())


class TextValidator:
    """Basic field checks shared by the forms."""

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        return bool(email) and bool(_EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def is_valid_name(name: Optional[str]) -> bool:
        return len(_clean(name)) >= 2

    @staticmethod
    def is_valid_mobile(mobile: Optional[str]) -> bool:
        return _digit_count(_clean(mobile)) >= 10

    @staticmethod
    def is_valid_url(url: Optional[str]) -> bool:
        return _clean(url).lower().startswith(("http://", "https://"))


class FormValidator:
    """Validates the register, login, book and profile forms.

    Each method returns the payload to send (camelCase keys, stripped
    strings) or raises ValidationError with one message per bad field.
    """

    @staticmethod
    def registration(name: str, email: str, password: str, confirm_password: str, role: str,
                     mobile_number: Optional[str] = None, address: Optional[str] = None) -> dict:
        errors: Dict[str, str] = {}
        if not TextValidator.is_valid_name(name):
            errors["name"] = "Name must be at least 2 characters"
        if not TextValidator.is_valid_email(email):
            errors["email"] = "Please enter a valid email address"
        if len(password or "") < 6:
            errors["password"] = "Password must be at least 6 characters"
        elif password != confirm_password:
            errors["confirmPassword"] = "Passwords do not match"
        if role not in ROLES:
            errors["role"] = "Role must be either owner or seeker"
        if _clean(mobile_number) and not TextValidator.is_valid_mobile(mobile_number):
            errors["mobileNumber"] = "Mobile number must be at least 10 digits"
        if errors:
            raise ValidationError(errors)
        return {
            "name": _clean(name),
            "email": _clean(email),
            "password": password,
            "role": role,
            "mobileNumber": _clean(mobile_number),
            "address": _clean(address),
        }

    @staticmethod
    def login(email: str, password: str) -> dict:
        errors: Dict[str, str] = {}
        if not _clean(email):
            errors["email"] = "Email is required"
        if not password:
            errors["password"] = "Password is required"
        if errors:
            raise ValidationError(errors)
        return {"email": _clean(email), "password": password}

    @staticmethod
    def book(title: str, author: str, location: str, contact_info: str, genre: Optional[str] = None,
             status: Optional[str] = None, image_url: Optional[str] = None) -> dict:
        errors: Dict[str, str] = {}
        if not _clean(title):
            errors["title"] = "Title is required"
        if not _clean(author):
            errors["author"] = "Author is required"
        if not _clean(location):
            errors["location"] = "Location is required"
        if not _clean(contact_info):
            errors["contactInfo"] = "Contact information is required"
        status = status or STATUS_AVAILABLE
        if status not in STATUSES:
            errors["status"] = "Status must be either available or rented"
        if _clean(image_url) and not TextValidator.is_valid_url(image_url):
            errors["imageUrl"] = "Image URL must start with http:// or https://"
        if errors:
            raise ValidationError(errors)
        payload = {
            "title": _clean(title),
            "author": _clean(author),
            "genre": _clean(genre),
            "location": _clean(location),
            "contactInfo": _clean(contact_info),
            "status": status,
        }
        if _clean(image_url):
            payload["imageUrl"] = _clean(image_url)
        return payload

    @staticmethod
    def profile(name: Optional[str] = None, email: Optional[str] = None, mobile_number: Optional[str] = None,
                address: Optional[str] = None, password: Optional[str] = None,
                confirm_password: Optional[str] = None) -> dict:
        """Only the fields that were given end up in the payload."""
        errors: Dict[str, str] = {}
        payload: dict = {}
        if name is not None:
            if not TextValidator.is_valid_name(name):
                errors["name"] = "Name must be at least 2 characters"
            payload["name"] = _clean(name)
        if email is not None:
            if not TextValidator.is_valid_email(email):
                errors["email"] = "Please enter a valid email address"
            payload["email"] = _clean(email)
        if mobile_number is not None:
            if not TextValidator.is_valid_mobile(mobile_number):
                errors["mobileNumber"] = "Mobile number must be at least 10 digits"
            payload["mobileNumber"] = _clean(mobile_number)
        if address is not None:
            payload["address"] = _clean(address)
        if password:
            if len(password) < 6:
                errors["password"] = "Password must be at least 6 characters"
            elif password != confirm_password:
                errors["confirmPassword"] = "Passwords do not match"
            payload["password"] = password
        if errors:
            raise ValidationError(errors)
        return payload
