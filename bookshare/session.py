"""
Session persistence for the BookShare client.

The logged-in user's profile snapshot and Basic auth token live in a JSON
file (``~/.bookshare/session.json`` by default) so a login survives
between CLI invocations. A session is created at login or registration,
replaced when the profile changes and removed at logout.
"""

import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from bookshare.config import settings
from bookshare.models import User

logger = logging.getLogger(__name__)


def create_auth_token(email: str, password: str) -> str:
    """Basic auth credentials for ``email:password``."""
    return base64.b64encode(f"{email}:{password}".encode("utf-8")).decode("ascii")


def decode_auth_token(token: str) -> Tuple[str, str]:
    """Inverse of create_auth_token. Raises ValueError on a malformed token."""
    try:
        raw = base64.b64decode(token.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError) as e:
        raise ValueError("Malformed auth token") from e
    email, sep, password = raw.partition(":")
    if not sep:
        raise ValueError("Malformed auth token")
    return email, password


@dataclass
class Session:
    """The logged-in user and the credentials used for requests."""
    user: Optional[User] = None
    token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.token)

    @property
    def is_owner(self) -> bool:
        return self.is_authenticated and self.user.is_owner


class SessionStore:
    """Stores the current session in a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.session_file).expanduser()

    def save(self, user: User, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # The token is the user's credentials: owner read/write only
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"user": user.to_dict(), "token": token}, f, indent=2, ensure_ascii=False)
        # os.open's mode only applies to newly created files
        os.chmod(self.path, 0o600)
        logger.debug(f"Session saved for user {user.id}")

    def load(self) -> Tuple[Optional[User], Optional[str]]:
        if not self.path.exists():
            return None, None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read session file {self.path}: {e}")
            return None, None
        if not isinstance(data, dict) or not isinstance(data.get("user"), dict):
            return None, None
        return User.from_dict(data["user"]), data.get("token") or None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
        logger.debug("Session cleared")

    def current(self) -> Session:
        user, token = self.load()
        return Session(user=user, token=token)

    def is_authenticated(self) -> bool:
        return self.current().is_authenticated

    def is_owner(self) -> bool:
        return self.current().is_owner
