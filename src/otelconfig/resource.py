# src/otelconfig/resource.py
"""Build the SDK Resource shared by every provider.

The declared attributes are merged over the process defaults produced by
``Resource.create()`` (which honours OTEL_SERVICE_NAME and
OTEL_RESOURCE_ATTRIBUTES). Declared keys win over defaults, and within the
declaration structured ``attributes`` win over ``attributes_list``.
"""

from __future__ import annotations

from typing import Any

import structlog
from opentelemetry.sdk.resources import Resource

from otelconfig.errors import ConfigurationError, InvalidAttributeError, SchemaConflictError, join_errors
from otelconfig.keyvalue import parse_key_value_list
from otelconfig.model import AttributeNameValue, ResourceDeclaration

logger = structlog.get_logger(__name__)

AttributeValue = str | bool | int | float | tuple[str, ...] | tuple[bool, ...] | tuple[int, ...] | tuple[float, ...]


def _as_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"{value!r} is not a bool")


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not an int")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        return int(value.strip(), 0)
    raise ValueError(f"{value!r} is not an int")


def _as_double(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a double")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value.strip())
    raise ValueError(f"{value!r} is not a double")


_SCALAR_COERCIONS = {
    "string": _as_string,
    "bool": _as_bool,
    "int": _as_int,
    "double": _as_double,
}


def _infer(value: Any) -> AttributeValue:
    """Keep natively supported values; render anything else as a string."""
    if isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, list) and value:
        first = type(value[0])
        if first in (str, bool, int, float) and all(type(item) is first for item in value):
            return tuple(value)
    return _as_string(value)


def coerce_attribute(attribute: AttributeNameValue) -> AttributeValue:
    """Convert a declared attribute value to its declared type.

    Raises:
        InvalidAttributeError: The value cannot be represented as the type
    """
    if attribute.type is None:
        return _infer(attribute.value)

    scalar_type, _, array = attribute.type.partition("_")
    coerce = _SCALAR_COERCIONS[scalar_type]
    try:
        if array:
            if not isinstance(attribute.value, list):
                raise ValueError(f"{attribute.value!r} is not a list")
            return tuple(coerce(item) for item in attribute.value)
        return coerce(attribute.value)
    except ValueError as e:
        raise InvalidAttributeError(f"invalid value for attribute {attribute.name!r} of type {attribute.type}: {e}") from e


def declared_attributes(declaration: ResourceDeclaration) -> dict[str, AttributeValue]:
    """Collect the attributes of a declaration, structured entries last.

    Raises:
        ConfigurationErrors: One or more attributes could not be converted
    """
    attributes: dict[str, AttributeValue] = {}
    errors: list[ConfigurationError] = []

    if declaration.attributes_list:
        try:
            attributes.update(parse_key_value_list(declaration.attributes_list))
        except ValueError as e:
            errors.append(InvalidAttributeError(f"invalid attributes list: {e}"))

    for attribute in declaration.attributes or ():
        try:
            attributes[attribute.name] = coerce_attribute(attribute)
        except InvalidAttributeError as e:
            errors.append(e)

    aggregate = join_errors(errors)
    if aggregate is not None:
        raise aggregate
    return attributes


def build_resource(declaration: ResourceDeclaration | None, *, defaults: Resource | None = None) -> Resource:
    """Merge a resource declaration over the process defaults.

    Args:
        declaration: Parsed ``resource`` block, or None
        defaults: Resource to merge over; ``Resource.create()`` when omitted

    Returns:
        The merged resource. With no declaration this is the defaults.

    Raises:
        SchemaConflictError: Both sides carry different non-empty schema URLs
        ConfigurationErrors: Attribute conversion failed
    """
    base = defaults if defaults is not None else Resource.create()
    if declaration is None:
        return base

    declared = Resource(declared_attributes(declaration), declaration.schema_url or "")
    if base.schema_url and declared.schema_url and base.schema_url != declared.schema_url:
        raise SchemaConflictError(base.schema_url, declared.schema_url)

    merged = base.merge(declared)
    logger.debug("resource_built", attributes=len(merged.attributes), schema_url=merged.schema_url)
    return merged

