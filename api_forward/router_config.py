"""Configuration admin routes.

Endpoints:
  GET  /config  Current routing table
  POST /config  Replace the routing table; changes are live before persistence
"""

import hmac
import json
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import settings
from .config_store import ConfigFormatError

router = APIRouter(tags=["config"])
logger = logging.getLogger(__name__)


def _get_store():
    from .main import get_config_store
    return get_config_store()


def _require_admin(request: Request) -> None:
    """Check the admin token when one is configured."""
    expected = settings.admin_token
    if not expected:
        return
    supplied = request.headers.get("x-admin-token", "")
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        supplied = auth[7:].strip()
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Admin token required")


@router.get("/config")
async def get_config(request: Request):
    _require_admin(request)
    return _get_store().get().to_wire()


@router.post("/config")
async def post_config(request: Request):
    _require_admin(request)
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(status_code=400, content={"error": "Invalid configuration format."})

    try:
        result = await _get_store().replace(payload)
    except ConfigFormatError as e:
        content = {"error": str(e)}
        if e.details:
            content["details"] = e.details
        return JSONResponse(status_code=400, content=content)

    body = {"status": result.status, "backends": result.backends}
    if result.persistent:
        return {"message": result.message, **body}
    return JSONResponse(status_code=500, content={"error": result.message, **body})
