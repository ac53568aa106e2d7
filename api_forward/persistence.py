"""Routing table persistence backends.

Each backend exposes ``read_table()`` returning the stored table payload (or
None when nothing is stored) and ``write_table(payload)``. Both raise on I/O
failure; ConfigStore decides how failures degrade.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles
import yaml

YAML_SUFFIXES = {".yaml", ".yml"}


def mask_url_credentials(url: str) -> str:
    """Hide ``user:password@`` in a connection URL before it reaches the logs."""
    scheme_end = url.find("://")
    at = url.rfind("@")
    if scheme_end == -1 or at == -1 or at < scheme_end:
        return url
    return f"{url[:scheme_end + 3]}[CREDENTIALS_HIDDEN]{url[at:]}"


class FileTableBackend:
    """JSON (or YAML, by suffix) file holding the routing table."""

    name = "file"

    def __init__(self, path: str):
        self._path = Path(path)

    def describe(self) -> str:
        return str(self._path)

    def _is_yaml(self) -> bool:
        return self._path.suffix.lower() in YAML_SUFFIXES

    async def read_table(self) -> dict[str, Any] | None:
        if not self._path.exists():
            return None
        async with aiofiles.open(self._path, "r", encoding="utf-8") as f:
            raw = await f.read()
        data = yaml.safe_load(raw) if self._is_yaml() else json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return data

    async def write_table(self, payload: dict[str, Any]) -> None:
        if self._is_yaml():
            text = yaml.safe_dump(payload, allow_unicode=True, sort_keys=False)
        else:
            text = json.dumps(payload, ensure_ascii=False, indent=2)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(text)
        temp_path.replace(self._path)


class RedisTableBackend:
    """Routing table stored as one JSON document under a Redis key."""

    name = "redis"

    def __init__(self, *, redis_url: str, key: str, connect_timeout_seconds: float = 5.0):
        self._redis_url = redis_url
        self._key = key
        self._connect_timeout_seconds = connect_timeout_seconds

    def describe(self) -> str:
        return f"{mask_url_credentials(self._redis_url)} key={self._key}"

    def _connect(self):
        try:
            import redis.asyncio as redis_async
        except Exception as e:
            raise RuntimeError("redis-py is required when API_FORWARD_REDIS_URL is set") from e

        return redis_async.from_url(
            self._redis_url,
            decode_responses=True,
            socket_connect_timeout=self._connect_timeout_seconds,
            socket_timeout=self._connect_timeout_seconds,
        )

    async def read_table(self) -> dict[str, Any] | None:
        client = self._connect()
        try:
            raw = await client.get(self._key)
        finally:
            await client.aclose()
        if raw is None:
            return None
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Redis key {self._key} does not hold a JSON object")
        return data

    async def write_table(self, payload: dict[str, Any]) -> None:
        client = self._connect()
        try:
            await client.set(self._key, json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        finally:
            await client.aclose()
