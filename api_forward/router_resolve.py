"""Dynamic route resolution: GET /{route_key} redirected or proxied per the routing table.

Per request: route lookup, special construction (if any), parameter
validation, target URL construction, then dispatch as a redirect or an
upstream proxy call with media URL extraction.
"""

import logging
from collections.abc import Mapping
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from .config import settings
from .http_utils import error_response, json_or_error_response, passthrough_response
from .media import extract_media_url
from .models import FallbackAction, ProxySettings, ResolutionMode, RouteDefinition
from .params import validate_params
from .special import CONSTRUCTIONS, ConstructionContext, Proxy, Reject
from .upstream_client import client
from .url_builder import build_target_url

router = APIRouter(tags=["routes"])
logger = logging.getLogger(__name__)

# Served by dedicated handlers, never looked up in the routing table.
RESERVED_KEYS = {"config", "admin", "health", "favicon.ico"}


def _get_store():
    from .main import get_config_store
    return get_config_store()


def is_reserved_key(route_key: str) -> bool:
    return "." in route_key or route_key in RESERVED_KEYS


def is_http_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def redirect_to(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=302)


async def proxy_request(target_url: str, proxy_settings: ProxySettings) -> Response:
    """Fetch ``target_url`` and redirect to the image it points at, or fall back."""
    if not is_http_url(target_url):
        logger.error("[Proxy] Request setup failed, unsupported URL: %s", target_url)
        return error_response(500, "Proxy request setup failed", message=f"Unsupported URL: {target_url}")
    try:
        resp = await client.get(target_url)
    except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
        logger.error("[Proxy] Request setup failed for %s: %s", target_url, e)
        return error_response(500, "Proxy request setup failed", message=str(e))
    except httpx.RequestError as e:
        logger.error("[Proxy] Request failed for %s: %s", target_url, e)
        return error_response(504, "Proxy request timed out or failed", targetUrl=target_url)

    if resp.status_code >= 400:
        logger.warning("[Proxy] Target API returned status %d for %s", resp.status_code, target_url)
        return json_or_error_response(resp, f"Target API error (Status {resp.status_code})")

    try:
        payload = resp.json()
    except ValueError:
        payload = None

    field_path = proxy_settings.image_url_field
    image_url = extract_media_url(
        payload,
        field_path,
        container_keys=settings.media_container_keys,
        candidate_fields=settings.media_candidate_fields,
    )
    if image_url:
        logger.info("[Proxy] Redirecting to image URL: %s", image_url)
        return redirect_to(image_url)

    logger.info(
        "[Proxy] Image URL not found (field=%r). Fallback: %s",
        field_path,
        proxy_settings.fallback_action.value,
    )
    if proxy_settings.fallback_action == FallbackAction.ERROR:
        return error_response(
            404, "Could not extract image URL from target API response.", targetUrl=target_url
        )
    return passthrough_response(resp)


async def resolve(
    route_key: str,
    route: RouteDefinition,
    query: Mapping[str, str],
    base_tag: str = "",
) -> Response:
    """Produce the response for one configured route."""
    construction = CONSTRUCTIONS.get(route.special_construction)
    if construction is not None:
        logger.info("[Handler /%s] Using %s construction", route_key, route.special_construction.value)
        context = ConstructionContext(
            base_tag=base_tag,
            forward_allowed_hosts=settings.forward_allowed_hosts,
        )
        outcome = construction(route_key, route, query, context)
        if isinstance(outcome, Reject):
            return JSONResponse(status_code=outcome.status_code, content=outcome.body)
        if isinstance(outcome, Proxy):
            return await proxy_request(outcome.url, outcome.settings)
        logger.info("[Handler /%s] Redirecting to: %s", route_key, outcome.url)
        return redirect_to(outcome.url)

    validated, errors = validate_params(route.parameter_schema, query)
    if errors:
        return error_response(400, "Invalid query parameters.", details=errors)

    if not route.base_url:
        logger.error("[Handler /%s] Configuration URL is missing", route_key)
        return error_response(500, "Internal server error: API configuration URL is missing.")

    target_url = build_target_url(route.base_url, validated)
    logger.info("[Handler /%s] Constructed target URL: %s", route_key, target_url)

    if route.resolution_mode == ResolutionMode.PROXY:
        return await proxy_request(target_url, route.proxy_settings or ProxySettings())

    try:
        return redirect_to(target_url)
    except Exception as e:
        logger.error("[Handler /%s] Error during redirect: %s", route_key, e)
        return error_response(500, f"Failed to redirect for {route_key}")


@router.get("/{route_key}")
async def resolve_route(route_key: str, request: Request):
    """Resolve a configured route key; unknown and reserved keys are declined with 404."""
    if is_reserved_key(route_key):
        raise HTTPException(status_code=404, detail="Not Found")

    table = _get_store().get()
    route = table.routes.get(route_key)
    if route is None or route.resolution_mode is None:
        logger.info("[Router] No valid configuration found for /%s", route_key)
        raise HTTPException(status_code=404, detail=f"No route configured for /{route_key}")

    return await resolve(route_key, route, dict(request.query_params), table.base_tag)
