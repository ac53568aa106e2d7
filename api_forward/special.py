"""Per-route URL constructions that bypass generic parameter merging.

Each construction is a pure function of (route key, route, query, context)
returning one of ``Redirect``, ``Proxy`` or ``Reject``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union
from urllib.parse import quote, urlsplit

from .models import ProxySettings, RouteDefinition, SpecialConstruction

logger = logging.getLogger(__name__)

DEFAULT_DRAW_MODELS = ["flux", "turbo"]
DEFAULT_DRAW_MODEL = "flux"


@dataclass(frozen=True)
class Redirect:
    url: str


@dataclass(frozen=True)
class Proxy:
    url: str
    settings: ProxySettings


@dataclass(frozen=True)
class Reject:
    status_code: int
    body: dict[str, Any]


Construction = Union[Redirect, Proxy, Reject]


@dataclass(frozen=True)
class ConstructionContext:
    base_tag: str = ""
    forward_allowed_hosts: list[str] = field(default_factory=list)


def encode_uri_component(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe="-_.!~*'()")


def _missing(name: str) -> Reject:
    return Reject(400, {"error": f"Missing required query parameter: {name}"})


def build_forward(
    route_key: str, route: RouteDefinition, query: Mapping[str, str], context: ConstructionContext
) -> Construction:
    target = query.get("url")
    if not target:
        return _missing("url")

    if context.forward_allowed_hosts:
        try:
            host = (urlsplit(target).hostname or "").lower()
        except ValueError:
            host = ""
        allowed = {h.strip().lower() for h in context.forward_allowed_hosts if h.strip()}
        if host not in allowed:
            logger.warning("[Handler /%s] Forward target host not allowed: %r", route_key, host)
            return Reject(403, {"error": "Forward target host is not allowed", "host": host})

    base_settings = route.proxy_settings or ProxySettings()
    field_name = query.get("field") or base_settings.field_param_default or "url"
    return Proxy(target, base_settings.model_copy(update={"image_url_field": field_name}))


def build_pollinations(
    route_key: str, route: RouteDefinition, query: Mapping[str, str], context: ConstructionContext
) -> Construction:
    tags = query.get("tags")
    if not tags:
        return _missing("tags")
    model_name = route.model_name or route_key
    # The %2c separator is already encoded so it survives next to the encoded tags.
    return Redirect(
        f"{route.base_url}{encode_uri_component(tags)}%2c{context.base_tag}"
        f"?&model={model_name}&nologo=true"
    )


def build_draw_redirect(
    route_key: str, route: RouteDefinition, query: Mapping[str, str], context: ConstructionContext
) -> Construction:
    tags = query.get("tags")
    model_spec = route.find_parameter("model")
    model = query.get("model") or (model_spec.default_value if model_spec else None) or DEFAULT_DRAW_MODEL
    if not tags:
        return _missing("tags")
    valid_models = (model_spec.allowed_values if model_spec else None) or DEFAULT_DRAW_MODELS
    if model not in valid_models:
        return Reject(400, {"error": f"Invalid model parameter. Valid options: {', '.join(valid_models)}"})
    return Redirect(f"/{model}?tags={encode_uri_component(tags)}")


CONSTRUCTIONS: dict[SpecialConstruction, Callable[..., Construction]] = {
    SpecialConstruction.FORWARD: build_forward,
    SpecialConstruction.POLLINATIONS: build_pollinations,
    SpecialConstruction.DRAW_REDIRECT: build_draw_redirect,
}
