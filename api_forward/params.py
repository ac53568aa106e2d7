"""Query parameter validation against a route's declared parameter schema."""

from collections.abc import Iterable, Mapping

from .models import ParameterSpec


def validate_params(
    specs: Iterable[ParameterSpec], query: Mapping[str, str]
) -> tuple[dict[str, str], list[str]]:
    """Validate and default query parameters in declaration order.

    Every parameter is checked so that one response can report all problems at
    once. Returns ``(validated, errors)``; ``validated`` is only meaningful
    when ``errors`` is empty. Query parameters not declared in the schema are
    dropped.
    """
    validated: dict[str, str] = {}
    errors: list[str] = []

    for spec in specs:
        value = query.get(spec.name)
        if value is not None:
            if spec.allowed_values is not None and value not in spec.allowed_values:
                errors.append(
                    f"Invalid value for parameter '{spec.name}'. "
                    f"Valid: {', '.join(spec.allowed_values)}."
                )
            else:
                validated[spec.name] = value
        elif spec.required:
            errors.append(f"Missing required query parameter: {spec.name}.")
        elif spec.default_value is not None:
            validated[spec.name] = spec.default_value

    return validated, errors
