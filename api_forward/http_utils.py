"""HTTP helpers for route handlers."""

import httpx
from fastapi.responses import JSONResponse, Response


def json_or_error_response(resp: httpx.Response, error_label: str) -> JSONResponse:
    """Return upstream JSON with its status, or a stable error envelope."""
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if payload is None:
        payload = {
            "error": error_label,
            "detail": resp.text[:1000],
        }
    return JSONResponse(status_code=resp.status_code, content=payload)


def passthrough_response(resp: httpx.Response) -> Response:
    """Return upstream bytes while preserving content-type and status."""
    return Response(
        content=resp.content,
        status_code=resp.status_code,
        headers={"Content-Type": resp.headers.get("content-type", "application/json")},
    )


def error_response(status_code: int, error: str, **context) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **context})
