"""
Register / login / health calls.

These endpoints never carry a token; a successful login is what creates one.
"""

import logging
from dataclasses import dataclass
from typing import Any

from config import seller_profit as config
from core.errors import ApiError, AuthError, ConnectivityError, ServerError, ValidationError
from core.http_client import HttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    token: str
    email: str


def validate_registration(email: str, password: str, confirm_password: str) -> None:
    """Local checks run before the register call."""
    if not email or not password or not confirm_password:
        raise ValidationError("Please fill in all fields")
    if password != confirm_password:
        raise ValidationError("Passwords do not match")
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters"
        )


class AuthService:
    def __init__(self, client: HttpClient):
        self.client = client

    def register(self, email: str, password: str) -> Any:
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        return self.client.request_json(
            "POST",
            config.ENDPOINTS["register"],
            {"email": email, "password": password},
        )

    def login(self, email: str, password: str) -> LoginResult:
        """Exchange credentials for a token and remember it."""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Please fill in all fields")

        try:
            payload = self.client.request_json(
                "POST",
                config.ENDPOINTS["login"],
                {"email": email, "password": password},
            )
        except AuthError as exc:
            raise AuthError(
                "Invalid email or password", status=exc.status, raw_message=exc.raw_message
            ) from exc

        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise ServerError("Invalid response from server", raw_message=str(payload))

        store = self.client.token_store
        previous = store.get_email()
        if previous and previous.lower() != email.lower():
            # Saved report belongs to the previous account
            store.storage.delete(config.REPORT_KEY)
        store.set_token(token)
        store.set_email(email)
        logger.info("Logged in as %s", email)
        return LoginResult(token=token, email=email)

    def check_health(self) -> Any:
        """Liveness probe for the login page. Any failure reads as unreachable."""
        try:
            return self.client.request_json(
                "GET", config.ENDPOINTS["health"], timeout=config.HEALTH_TIMEOUT
            )
        except ConnectivityError:
            raise
        except ApiError as exc:
            raise ConnectivityError(
                f"Backend unhealthy: {exc.message}", status=exc.status, raw_message=exc.raw_message
            ) from exc
