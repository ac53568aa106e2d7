from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from api_forward import main, router_resolve
from api_forward.config_store import ConfigStore
from api_forward.models import RoutingTable
from api_forward.upstream_client import UpstreamClient


class MemoryBackend:
    """In-memory table backend with switchable failures."""

    def __init__(
        self,
        name: str = "memory",
        payload: dict[str, Any] | None = None,
        *,
        fail_read: bool = False,
        fail_write: bool = False,
    ):
        self.name = name
        self.payload = payload
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.writes = 0
        self.reads = 0

    def describe(self) -> str:
        return self.name

    async def read_table(self) -> dict[str, Any] | None:
        self.reads += 1
        if self.fail_read:
            raise ConnectionError(f"{self.name} unreachable")
        return self.payload

    async def write_table(self, payload: dict[str, Any]) -> None:
        if self.fail_write:
            raise OSError(f"{self.name} is read-only")
        self.payload = payload
        self.writes += 1


def _unexpected_upstream(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected upstream call: {request.url}")


@pytest.fixture
def install_store(monkeypatch):
    def _install(table: dict[str, Any] | None = None, **backends) -> ConfigStore:
        store = ConfigStore(**backends)
        if table is not None:
            store.swap(RoutingTable.model_validate(table))
        monkeypatch.setattr(main, "_config_store", store)
        return store

    return _install


@pytest.fixture
def install_upstream(monkeypatch):
    def _install(handler=_unexpected_upstream, timeout: float = 15.0) -> UpstreamClient:
        upstream = UpstreamClient(timeout=timeout)
        asyncio.run(upstream.start(transport=httpx.MockTransport(handler)))
        monkeypatch.setattr(router_resolve, "client", upstream)
        return upstream

    return _install


@pytest.fixture
def make_client(install_store, install_upstream):
    """TestClient over the app with a given routing table and upstream handler."""

    def _make(table: dict[str, Any] | None = None, handler=_unexpected_upstream, **backends) -> TestClient:
        install_store(table, **backends)
        install_upstream(handler)
        return TestClient(main.app, follow_redirects=False)

    return _make
