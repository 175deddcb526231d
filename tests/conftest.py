import io
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from PIL import Image

from reviewdesk.api_client import ApiClient, UploadedFile
from reviewdesk.config import settings
from reviewdesk.main import app, get_http


class FakeUpstream:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, body=None, status=200, handler=None):
        if handler is None:
            def handler(request, body=body, status=status):
                return httpx.Response(status, json=body)
        self.routes[(method.upper(), path)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        return route(request)

    def http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url="http://upstream", transport=httpx.MockTransport(self.handle))

    def sent(self, method, path):
        return [r for r in self.calls if r.method == method and r.url.path == path]

    def json_sent(self, method, path, index=-1):
        return json.loads(self.sent(method, path)[index].content)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def api(upstream):
    return ApiClient(upstream.http(), token="test-token")


def make_token(role="admin", user_id="u1"):
    claims = {"sub": user_id, "role": role, "email": f"{user_id}@example.com"}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token(role='user', user_id='u2')}"}


@pytest.fixture
def client(upstream):
    http = upstream.http()
    app.dependency_overrides[get_http] = lambda: http
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def png(width, height, name="shot.png"):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, "PNG")
    return UploadedFile(filename=name, content_type="image/png", content=buf.getvalue())
