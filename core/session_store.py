"""Durable client-side session storage.

A tiny SQLite key/value table stands in for browser local storage: it keeps the
bearer token, the display email and the last finished profit report across
restarts. `TokenStore` is the only thing the rest of the app talks to for auth
state; it is passed around explicitly instead of being read from globals.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

from config import seller_profit as config

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String key/value pairs in a single SQLite table."""

    def __init__(self, db_path: Path = config.SESSION_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv")

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable stored value for %s", key)
            self.delete(key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))


class TokenStore:
    """Bearer token and display email for the signed-in user."""

    def __init__(self, storage: KeyValueStore):
        self.storage = storage

    def set_token(self, token: str) -> None:
        self.storage.set(config.TOKEN_KEY, token)

    def get_token(self) -> Optional[str]:
        return self.storage.get(config.TOKEN_KEY) or None

    def is_logged_in(self) -> bool:
        return self.get_token() is not None

    def set_email(self, email: str) -> None:
        self.storage.set(config.EMAIL_KEY, email)

    def get_email(self) -> Optional[str]:
        return self.storage.get(config.EMAIL_KEY)

    def display_name(self) -> str:
        email = self.get_email() or ""
        return email.split("@")[0]

    def logout(self) -> None:
        """Forget the token, email and the last profit report."""
        self.storage.delete(config.TOKEN_KEY)
        self.storage.delete(config.EMAIL_KEY)
        self.storage.delete(config.REPORT_KEY)
        logger.info("Session cleared")
