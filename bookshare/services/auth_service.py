import logging
from typing import Optional

from bookshare.models import User
from bookshare.services.http_client import ApiClient, ApiError, NetworkError
from bookshare.session import SessionStore, create_auth_token, decode_auth_token

logger = logging.getLogger(__name__)


class AuthService:
    """Account operations; keeps the session store in step with the server."""

    def __init__(self, client: ApiClient, store: SessionStore):
        self.client = client
        self.store = store

    def _start_session(self, user: User, email: str, password: str) -> None:
        token = create_auth_token(email, password)
        self.store.save(user, token)
        self.client.set_auth_token(token)

    def register(self, name: str, email: str, password: str, role: str,
                 mobile_number: str = "", address: str = "") -> User:
        response = self.client.post("/register", {
            "name": name,
            "email": email,
            "password": password,
            "role": role,
            "mobileNumber": mobile_number,
            "address": address,
        })
        user = User.from_dict(response["user"])
        self._start_session(user, email, password)
        logger.info(f"Registered {user.role} {user.id}")
        return user

    def login(self, email: str, password: str) -> User:
        response = self.client.post("/login", {"email": email, "password": password})
        user = User.from_dict(response["user"])
        self._start_session(user, email, password)
        return user

    def logout(self) -> None:
        try:
            self.client.post("/logout", {})
        finally:
            self.store.clear()
            self.client.set_auth_token(None)

    def current_user(self) -> Optional[User]:
        """Refresh the stored user from ``GET /me``; None when not logged in."""
        _, token = self.store.load()
        if not token:
            return None
        self.client.set_auth_token(token)
        try:
            response = self.client.get("/me")
        except NetworkError:
            # Server unreachable; the stored login is kept
            raise
        except ApiError as e:
            logger.warning(f"Failed to fetch current user: {e}")
            self.store.clear()
            return None
        user = User.from_dict(response["user"])
        self.store.save(user, token)
        return user

    def update_profile(self, **fields) -> User:
        """``PUT /me`` with camelCase fields; the session follows email/password changes."""
        response = self.client.put("/me", fields)
        return self._replace_session(response, fields)

    def get_profile(self) -> User:
        response = self.client.get("/users/profile")
        return User.from_dict(response["user"])

    def update_user_profile(self, name: Optional[str] = None, mobile_number: Optional[str] = None) -> User:
        fields = {}
        if name is not None:
            fields["name"] = name
        if mobile_number is not None:
            fields["mobileNumber"] = mobile_number
        response = self.client.put("/users/profile", fields)
        return self._replace_session(response, fields)

    def _replace_session(self, response: dict, fields: dict) -> User:
        user = User.from_dict(response["user"])
        _, token = self.store.load()
        if token and ("email" in fields or "password" in fields):
            email, password = decode_auth_token(token)
            token = create_auth_token(fields.get("email", email), fields.get("password", password))
            self.client.set_auth_token(token)
        if token:
            self.store.save(user, token)
        return user
