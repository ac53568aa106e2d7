"""API Forward: configurable redirector/proxy for image APIs."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .config_store import ConfigStore, build_config_store
from .upstream_client import client

logger = logging.getLogger(__name__)

# Shared state populated at startup
_config_store: ConfigStore = ConfigStore()


def get_config_store() -> ConfigStore:
    return _config_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load routing table, init httpx pool."""
    global _config_store

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    _config_store = build_config_store(settings)
    table = await _config_store.load()
    logger.info("Loaded %d routes", len(table.routes))

    await client.start()
    logger.info("API Forward started")

    yield

    await client.stop()
    logger.info("API Forward stopped")


app = FastAPI(title="API Forward", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error handling ---


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    import httpx as _httpx

    if isinstance(exc, _httpx.ConnectError):
        return JSONResponse(status_code=503, content={"error": "Upstream unavailable", "detail": str(exc)})
    if isinstance(exc, _httpx.TimeoutException):
        return JSONResponse(status_code=504, content={"error": "Upstream timeout", "detail": str(exc)})
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --- Health and route listing ---


@app.get("/health")
async def health():
    table = get_config_store().get()
    return {
        "status": "ok",
        "routes": len(table.routes),
        "persistence": [backend.name for backend in get_config_store().backends],
    }


def group_routes(routes: dict) -> list[dict]:
    """Group routes for display; groups sorted by name with 'ungrouped' last."""
    groups: dict[str, list[dict]] = {}
    for key in sorted(routes):
        route = routes[key]
        groups.setdefault(route.group, []).append(
            {
                "key": key,
                "path": f"/{key}",
                "description": route.description,
                "method": route.resolution_mode.value if route.resolution_mode else None,
                "params": [
                    {
                        "name": spec.name,
                        "required": spec.required,
                        "defaultValue": spec.default_value,
                        "description": spec.description,
                    }
                    for spec in route.parameter_schema
                ],
            }
        )
    ordered = sorted(groups, key=lambda name: (name == "ungrouped", name))
    return [{"group": name, "routes": groups[name]} for name in ordered]


@app.get("/")
async def list_routes():
    """Configured endpoints grouped by their display group."""
    return {"groups": group_routes(get_config_store().get().routes)}


# --- Mount routers ---

from .router_config import router as config_router  # noqa: E402
from .router_resolve import router as resolve_router  # noqa: E402

app.include_router(config_router)
# Catch-all /{route_key}; must stay last.
app.include_router(resolve_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
