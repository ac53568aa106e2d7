"""In-memory routing table with best-effort durable persistence."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from .config import Settings
from .models import RouteDefinition, RoutingTable, has_routes_mapping
from .persistence import FileTableBackend, RedisTableBackend

logger = logging.getLogger(__name__)


class TableBackend(Protocol):
    name: str

    def describe(self) -> str: ...

    async def read_table(self) -> dict[str, Any] | None: ...

    async def write_table(self, payload: dict[str, Any]) -> None: ...


class ConfigFormatError(ValueError):
    """Admin payload is not a usable routing table."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


@dataclass
class SaveResult:
    """Outcome of a replace: memory is always updated, durability may not be."""

    status: str  # saved | partial | failed | memory_only
    message: str
    backends: dict[str, bool] = field(default_factory=dict)
    memory_updated: bool = True

    @property
    def persistent(self) -> bool:
        return any(self.backends.values())


def _validation_details(exc: ValidationError) -> list[str]:
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        details.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else str(err.get("msg", "invalid")))
    return details


def _error_text(exc: Exception) -> str:
    details = getattr(exc, "details", None)
    return f"{exc} {'; '.join(details)}" if details else str(exc)


def parse_table(payload: Any) -> RoutingTable:
    """Validate a raw payload into a RoutingTable or raise ConfigFormatError."""
    if not has_routes_mapping(payload):
        raise ConfigFormatError("Invalid configuration format.")
    try:
        return RoutingTable.model_validate(payload)
    except ValidationError as e:
        raise ConfigFormatError("Invalid configuration format.", _validation_details(e)) from e


def parse_stored_table(payload: Any, source: str) -> RoutingTable:
    """Validate a stored table route by route.

    Routes that do not validate are skipped with a warning. Only a payload
    without any routes mapping is rejected as a whole.
    """
    if not has_routes_mapping(payload):
        raise ConfigFormatError("Invalid configuration format.")
    raw_routes = next(payload[key] for key in ("apiUrls", "routes") if isinstance(payload.get(key), dict))

    routes: dict[str, RouteDefinition] = {}
    for key, raw in raw_routes.items():
        try:
            routes[str(key)] = RouteDefinition.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Skipping invalid route '%s' from %s: %s", key, source, "; ".join(_validation_details(e))
            )

    base_tag = payload.get("baseTag")
    if base_tag is not None and not isinstance(base_tag, str):
        logger.warning("Ignoring non-string baseTag from %s: %r", source, base_tag)
        base_tag = None
    return RoutingTable(routes=routes, base_tag=base_tag or "")


class ConfigStore:
    """Holds the live routing table.

    Readers call ``get()`` without locking and keep whatever snapshot they
    got; ``replace()`` swaps the reference in one assignment before any
    persistence is attempted. Backends are consulted in priority order:
    ``primary`` (networked) then ``secondary`` (local file); either may be
    absent.
    """

    def __init__(
        self,
        primary: TableBackend | None = None,
        secondary: TableBackend | None = None,
    ):
        self._primary = primary
        self._secondary = secondary
        self._table = RoutingTable()
        self._persist_lock = asyncio.Lock()

    @property
    def backends(self) -> list[TableBackend]:
        return [b for b in (self._primary, self._secondary) if b is not None]

    def get(self) -> RoutingTable:
        return self._table

    def swap(self, table: RoutingTable) -> None:
        self._table = table

    async def _read(self, backend: TableBackend) -> RoutingTable | None:
        payload = await backend.read_table()
        if payload is None:
            return None
        return parse_stored_table(payload, backend.name)

    async def _write(self, backend: TableBackend, table: RoutingTable) -> bool:
        try:
            await backend.write_table(table.to_wire())
        except Exception as e:
            logger.error("Error saving configuration to %s (%s): %s", backend.name, backend.describe(), e)
            return False
        logger.info("Configuration saved to %s", backend.name)
        return True

    async def load(self) -> RoutingTable:
        """Load the table at startup; never raises, degrades to an empty table."""
        table: RoutingTable | None = None
        secondary_tried = False

        if self._primary is not None:
            try:
                table = await self._read(self._primary)
            except Exception as e:
                logger.error("Error loading configuration from %s: %s", self._primary.name, _error_text(e))
            else:
                if table is not None:
                    logger.info("Configuration loaded from %s", self._primary.name)
                    if self._secondary is not None:
                        await self._write(self._secondary, table)
                else:
                    logger.info("No configuration found in %s", self._primary.name)
                    table = await self._load_secondary()
                    secondary_tried = True
                    if table is not None:
                        await self._write(self._primary, table)

        if table is None and not secondary_tried:
            table = await self._load_secondary()

        if table is None:
            logger.info("No configuration found. Using default empty configuration.")
            table = RoutingTable()

        self._table = table
        return table

    async def _load_secondary(self) -> RoutingTable | None:
        if self._secondary is None:
            return None
        try:
            table = await self._read(self._secondary)
        except Exception as e:
            logger.error("Error loading configuration from %s: %s", self._secondary.name, _error_text(e))
            return None
        if table is not None:
            logger.info("Configuration loaded from %s", self._secondary.name)
        return table

    async def replace(self, payload: Any) -> SaveResult:
        """Make ``payload`` the live table, then persist it to every backend.

        Raises ConfigFormatError before touching the live table when the
        payload has no routes mapping or does not validate.
        """
        table = payload if isinstance(payload, RoutingTable) else parse_table(payload)
        self._table = table
        logger.info("Configuration replaced in memory (%d routes)", len(table.routes))

        backends = self.backends
        if not backends:
            logger.warning("No persistent storage configured; configuration is memory-only")
            return SaveResult(
                status="memory_only",
                message=(
                    "No persistent storage available. Configuration only updated in memory "
                    "and will be lost on server restart."
                ),
            )

        async with self._persist_lock:
            outcome = {backend.name: await self._write(backend, table) for backend in backends}

        saved = [name for name, ok in outcome.items() if ok]
        failed = [name for name, ok in outcome.items() if not ok]
        if not failed:
            return SaveResult(
                status="saved",
                message=f"Configuration saved to {' and '.join(saved)}. Changes are now live.",
                backends=outcome,
            )
        if saved:
            return SaveResult(
                status="partial",
                message=(
                    f"Configuration saved to {' and '.join(saved)} but saving to "
                    f"{' and '.join(failed)} failed. Changes are now live."
                ),
                backends=outcome,
            )
        return SaveResult(
            status="failed",
            message=(
                f"Failed to save configuration to {' and '.join(failed)}, "
                "but in-memory config updated."
            ),
            backends=outcome,
        )


def build_config_store(settings: Settings) -> ConfigStore:
    primary = None
    secondary = None
    if settings.redis_url.strip():
        primary = RedisTableBackend(
            redis_url=settings.redis_url.strip(),
            key=settings.redis_config_key,
            connect_timeout_seconds=settings.redis_connect_timeout_seconds,
        )
        logger.info("Redis configuration backend: %s", primary.describe())
    else:
        logger.warning("API_FORWARD_REDIS_URL not set; Redis configuration storage is unavailable")
    if settings.enable_file_operations:
        secondary = FileTableBackend(settings.config_path)
        logger.info("File configuration backend: %s", secondary.describe())
    else:
        logger.info("File operations disabled; configuration file will not be read or written")
    return ConfigStore(primary=primary, secondary=secondary)
