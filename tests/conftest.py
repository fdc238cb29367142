# tests/conftest.py
import json

import pytest

from core.http_client import HttpClient
from core.resources import Services
from core.session_store import KeyValueStore, TokenStore

BASE_URL = "http://backend.test"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text
        self.content = text.encode()

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Stands in for requests.Session; routes keyed by (METHOD, path)."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def request(self, method, url, headers=None, json=None, files=None, params=None, timeout=None):
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        call = {
            "method": method,
            "path": path,
            "headers": dict(headers or {}),
            "json": json,
            "files": files,
            "params": params,
            "timeout": timeout,
        }
        self.calls.append(call)
        route = self.routes.get((method, path))
        if route is None:
            return FakeResponse(404, {"message": f"no route {method} {path}"})
        if callable(route):
            route = route(call)
        if isinstance(route, Exception):
            raise route
        return route

    def calls_to(self, method, path):
        return [c for c in self.calls if c["method"] == method and c["path"] == path]


@pytest.fixture
def storage(tmp_path):
    return KeyValueStore(tmp_path / "session.db")


@pytest.fixture
def token_store(storage):
    return TokenStore(storage)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client(token_store, fake_session):
    return HttpClient(BASE_URL, token_store, session=fake_session)


@pytest.fixture
def services(client):
    return Services.build(client)
