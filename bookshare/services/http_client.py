import logging
from typing import Any, Dict, Optional

import httpx

from bookshare.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the BookShare API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkError(ApiError):
    """The request never produced a response (refused, DNS, protocol error)."""
    pass


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
    return f"Request failed with status code {response.status_code}"


class ApiClient:
    """JSON over HTTP client for the BookShare API.

    Failures surface immediately: no retries, no timeout, no backoff.
    """

    def __init__(self, base_url: Optional[str] = None, auth_token: Optional[str] = None,
                 http_client: Optional[httpx.Client] = None):
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.auth_token = auth_token
        # An injected client (e.g. FastAPI's TestClient) brings its own base URL
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=None,
        )

    def set_auth_token(self, token: Optional[str]) -> None:
        self.auth_token = token

    def _headers(self) -> Dict[str, str]:
        if self.auth_token:
            return {"Authorization": f"Basic {self.auth_token}"}
        return {}

    def request(self, method: str, path: str, data: Any = None, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body ({} when empty)."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug(f"{method} {path}")
        try:
            response = self._client.request(
                method,
                path,
                json=data,
                params=params or None,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise NetworkError(f"Network error: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ApiError("Invalid JSON in response", status_code=response.status_code) from e

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("GET", path, params=params)

    def post(self, path: str, data: Any = None) -> Dict[str, Any]:
        return self.request("POST", path, data=data)

    def put(self, path: str, data: Any = None) -> Dict[str, Any]:
        return self.request("PUT", path, data=data)

    def patch(self, path: str, data: Any = None) -> Dict[str, Any]:
        return self.request("PATCH", path, data=data)

    def delete(self, path: str) -> Dict[str, Any]:
        return self.request("DELETE", path)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
