from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


class ResolutionMode(str, Enum):
    REDIRECT = "redirect"
    PROXY = "proxy"


class SpecialConstruction(str, Enum):
    NONE = "none"
    FORWARD = "special_forward"
    POLLINATIONS = "special_pollinations"
    DRAW_REDIRECT = "special_draw_redirect"


class FallbackAction(str, Enum):
    RETURN_JSON = "returnJson"
    ERROR = "error"


# Descriptive spellings accepted from admin payloads.
SPECIAL_CONSTRUCTION_ALIASES = {
    "": SpecialConstruction.NONE,
    "forward": SpecialConstruction.FORWARD,
    "pollinations-style-draw": SpecialConstruction.POLLINATIONS,
    "draw-alias-redirect": SpecialConstruction.DRAW_REDIRECT,
}


def _stringify(value: Any) -> Any:
    """Config files written by hand often carry numbers where strings are meant."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return value


# --- Route configuration ---


class ParameterSpec(BaseModel):
    name: str = Field(..., min_length=1)
    required: bool = False
    default_value: str | None = Field(default=None, alias="defaultValue")
    allowed_values: list[str] | None = Field(default=None, alias="validValues")
    description: str = ""

    model_config = {"populate_by_name": True}

    @field_validator("default_value", mode="before")
    @classmethod
    def coerce_default(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("allowed_values", mode="before")
    @classmethod
    def coerce_allowed(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_stringify(v) for v in value]
        return value


class ProxySettings(BaseModel):
    image_url_field: str | None = Field(default=None, alias="imageUrlField")
    fallback_action: FallbackAction = Field(default=FallbackAction.RETURN_JSON, alias="fallbackAction")
    field_param_default: str | None = Field(default=None, alias="imageUrlFieldFromParamDefault")

    model_config = {"populate_by_name": True}

    @field_validator("image_url_field", "field_param_default", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("fallback_action", mode="before")
    @classmethod
    def default_fallback(cls, value: Any) -> Any:
        if value is None or value == "":
            return FallbackAction.RETURN_JSON
        return value


class RouteDefinition(BaseModel):
    group: str = "ungrouped"
    description: str = ""
    base_url: str = Field(default="", alias="url")
    resolution_mode: ResolutionMode | None = Field(default=None, alias="method")
    special_construction: SpecialConstruction = Field(
        default=SpecialConstruction.NONE, alias="urlConstruction"
    )
    model_name: str | None = Field(default=None, alias="modelName")
    parameter_schema: list[ParameterSpec] = Field(default_factory=list, alias="queryParams")
    proxy_settings: ProxySettings | None = Field(default=None, alias="proxySettings")

    model_config = {"populate_by_name": True}

    @field_validator("group", mode="before")
    @classmethod
    def default_group(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "ungrouped"
        return value

    @field_validator("base_url", "description", mode="before")
    @classmethod
    def none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("resolution_mode", mode="before")
    @classmethod
    def blank_mode(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("special_construction", mode="before")
    @classmethod
    def normalize_construction(cls, value: Any) -> Any:
        if value is None:
            return SpecialConstruction.NONE
        if isinstance(value, str) and value in SPECIAL_CONSTRUCTION_ALIASES:
            return SPECIAL_CONSTRUCTION_ALIASES[value]
        return value

    @field_validator("parameter_schema", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def unique_parameter_names(self):
        seen: set[str] = set()
        for spec in self.parameter_schema:
            if spec.name in seen:
                raise ValueError(f"Duplicate query parameter name: {spec.name}")
            seen.add(spec.name)
        return self

    def find_parameter(self, name: str) -> ParameterSpec | None:
        for spec in self.parameter_schema:
            if spec.name == name:
                return spec
        return None


class RoutingTable(BaseModel):
    """The whole routing configuration; replaced as one value, never edited in place."""

    routes: dict[str, RouteDefinition] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("apiUrls", "routes"),
        serialization_alias="apiUrls",
    )
    base_tag: str = Field(default="", alias="baseTag")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("base_tag", mode="before")
    @classmethod
    def none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def has_routes_mapping(payload: Any) -> bool:
    """True when an admin payload carries a routes mapping under a known key."""
    if not isinstance(payload, dict):
        return False
    return any(isinstance(payload.get(key), dict) for key in ("apiUrls", "routes"))
