"""Schema validation helpers.

Schemas are pydantic models; this module turns their failures into the
ordered violation list carried by ``ValidationFailed``.
"""
from typing import Any, Iterable, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from app.errors import ValidationFailed
from app.models.common import PageParams


M = TypeVar("M", bound=BaseModel)

# Request locations FastAPI prefixes onto error locations
LOCATION_PREFIXES = frozenset({"body", "query", "path", "header", "cookie"})


def violations_from_errors(errors: Iterable[dict]) -> list[dict]:
    """
    Convert pydantic error dicts into violations, preserving order.

    Args:
        errors: Output of ``ValidationError.errors()`` or
            ``RequestValidationError.errors()``

    Returns:
        List of ``{"field", "message", "type"}`` dicts
    """
    violations = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in LOCATION_PREFIXES:
            loc = loc[1:]
        violations.append({
            "field": ".".join(str(part) for part in loc),
            "message": error.get("msg", ""),
            "type": error.get("type", "value_error"),
        })
    return violations


def validate_input(schema: type[M], raw: Any) -> M:
    """
    Validate raw input against a schema.

    Pure: the same input against the same schema always produces the same
    model or the same violations. Unknown extra fields are ignored.

    Args:
        schema: Pydantic model class
        raw: Decoded JSON body, query mapping, or any other raw value

    Returns:
        Validated model instance

    Raises:
        ValidationFailed: With the ordered violation list
    """
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise ValidationFailed(violations_from_errors(e.errors()))


async def get_page_params(request: Request) -> PageParams:
    """Dependency that validates ``page``/``limit`` from the query string."""
    return validate_input(PageParams, dict(request.query_params))
