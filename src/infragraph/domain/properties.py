"""Property values -- a tagged union of scalar, array, and map kinds.

Node and edge property bags accept anything JSON can carry and nothing
else.  Values are checked (and deep-copied) when a model is built, so a
stored node never shares mutable state with the caller's input.

Examples:
    >>> property_kind("api-gateway")
    <PropertyKind.SCALAR: 'scalar'>
    >>> property_kind(["eu-west-1", "us-east-1"])
    <PropertyKind.ARRAY: 'array'>
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator

from infragraph.domain.types import PropertyKind

type Scalar = str | int | float | bool | None
type PropertyValue = Scalar | list[PropertyValue] | dict[str, PropertyValue]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def property_kind(value: Any) -> PropertyKind:
    """Return the kind tag for *value*.

    Raises:
        TypeError: If *value* is not a scalar, list, or str-keyed dict.
    """
    if isinstance(value, _SCALAR_TYPES):
        return PropertyKind.SCALAR
    if isinstance(value, list):
        return PropertyKind.ARRAY
    if isinstance(value, dict):
        return PropertyKind.MAP
    msg = f"Unsupported property value type: {type(value).__name__}"
    raise TypeError(msg)


def _clean(value: Any, path: str) -> Any:
    try:
        kind = property_kind(value)
    except TypeError as exc:
        msg = f"{exc} at '{path}'"
        raise ValueError(msg) from exc

    match kind:
        case PropertyKind.SCALAR:
            return value
        case PropertyKind.ARRAY:
            return [_clean(item, f"{path}[{i}]") for i, item in enumerate(value)]
        case PropertyKind.MAP:
            cleaned: dict[str, Any] = {}
            for key, item in value.items():
                if not isinstance(key, str):
                    msg = f"Property map keys must be strings at '{path}'"
                    raise ValueError(msg)
                cleaned[key] = _clean(item, f"{path}.{key}")
            return cleaned


def validate_properties(props: dict[str, Any]) -> dict[str, Any]:
    """Validate a property bag and return a detached copy."""
    cleaned: dict[str, Any] = {}
    for key, value in props.items():
        cleaned[key] = _clean(value, key)
    return cleaned


Properties = Annotated[dict[str, Any], AfterValidator(validate_properties)]
