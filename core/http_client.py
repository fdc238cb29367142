"""
Single request pipeline for every backend call.

Handles:
- Base URL joining
- Bearer token on everything outside the auth namespace
- Request/response/error logging
- Translating transport failures and non-2xx statuses into core.errors types
- Logging out centrally when a protected call comes back unauthorized

Usage Example:
    from core.http_client import HttpClient
    from core.session_store import KeyValueStore, TokenStore

    tokens = TokenStore(KeyValueStore())
    client = HttpClient("http://localhost:8080", tokens)
    skus = client.request_json("GET", "/api/sku")
"""

import logging
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import requests

from config import seller_profit as config
from core.errors import AuthError, ConnectivityError, ServerError, error_for_status
from core.session_store import TokenStore

logger = logging.getLogger(__name__)


def is_auth_path(path: str) -> bool:
    """True for login/register/health, which must never carry a token."""
    clean = "/" + urlsplit(path).path.lstrip("/")
    clean = clean.rstrip("/") or "/"
    if clean == config.HEALTH_PATH:
        return True
    return clean == config.AUTH_PATH_PREFIX or clean.startswith(config.AUTH_PATH_PREFIX + "/")


def _backend_message(response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return None


class HttpClient:
    """Configured request pipeline shared by all service clients."""

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        session: Optional[requests.Session] = None,
        timeout: float = config.DEFAULT_TIMEOUT,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.session = session or requests.Session()
        self.timeout = timeout
        self.on_unauthorized = on_unauthorized

    def build_headers(self, path: str) -> dict:
        headers = {"Accept": "application/json"}
        if not is_auth_path(path):
            token = self.token_store.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        files: Optional[dict] = None,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ):
        """Send one request and return the response, raising ApiError on failure."""
        method = method.upper()
        url = self.base_url + "/" + path.lstrip("/")
        headers = self.build_headers(path)
        logger.info("API request: %s %s", method, path)

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                json=body,
                files=files,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.Timeout as exc:
            logger.warning("API timeout: %s %s (%s)", method, path, exc)
            raise ConnectivityError(
                f"Request timeout. Is the backend running on {self.base_url}?",
                raw_message=str(exc),
            ) from exc
        except requests.RequestException as exc:
            logger.warning("API connection error: %s %s (%s)", method, path, exc)
            raise ConnectivityError(
                f"Cannot connect to backend at {self.base_url}.",
                raw_message=str(exc),
            ) from exc

        status = response.status_code
        if 200 <= status < 300:
            logger.info("API response: %s %s -> %s", method, path, status)
            return response

        backend_message = _backend_message(response)
        logger.warning(
            "API error: %s %s -> %s %s", method, path, status, backend_message or ""
        )
        error = error_for_status(status, backend_message, raw_message=response.text)
        if isinstance(error, AuthError) and not is_auth_path(path):
            self._handle_unauthorized()
        raise error

    def request_json(self, method: str, path: str, body: Any = None, **kwargs) -> Any:
        """Like request() but returns the decoded JSON body (None when empty)."""
        response = self.request(method, path, body, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(
                "Invalid response from server",
                status=response.status_code,
                raw_message=response.text,
            ) from exc

    def _handle_unauthorized(self) -> None:
        logger.info("Unauthorized response, logging out")
        self.token_store.logout()
        if self.on_unauthorized is not None:
            self.on_unauthorized()
