"""Shared fixtures: an in-memory StorageGRID management API."""

import json
from typing import Callable, Optional, Union

import httpx
import pytest

from storagegrid_provider.client import StorageGridClient

ENDPOINT = "https://grid.example.com:9443"
TOKEN = "token-123"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeGrid:
    """Routes requests by (method, path) and records every request."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.requests: list[httpx.Request] = []
        self.add("POST", "/api/v4/authorize", json_body={"data": TOKEN})

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json_body: Optional[object] = None,
        text: Optional[str] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is not None:
            self.routes[(method, path)] = handler
        elif text is not None:
            self.routes[(method, path)] = httpx.Response(status_code, text=text)
        else:
            self.routes[(method, path)] = httpx.Response(status_code, json=json_body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")
        if callable(route):
            return route(request)
        return route

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def grid() -> FakeGrid:
    return FakeGrid()


@pytest.fixture
def client(grid: FakeGrid) -> StorageGridClient:
    """A signed-in client talking to the fake grid."""
    api = StorageGridClient(
        endpoint=ENDPOINT,
        account_id="12345678901234567890",
        username="root",
        password="secret",
        transport=httpx.MockTransport(grid),
    )
    yield api
    api._http.close()


def bucket(name: str, region: str = "us-east-1", object_lock: bool = False) -> dict:
    data = {"name": name, "creationTime": "2024-01-01T00:00:00.000Z", "region": region}
    if object_lock:
        data["s3ObjectLock"] = {"enabled": True}
    return data


@pytest.fixture
def make_bucket():
    return bucket
