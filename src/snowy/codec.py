"""JSON encoding and typed decoding backed by pydantic."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional, TypeVar

import pydantic_core
from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")

_ERROR_BODY_ADAPTER: TypeAdapter[Optional[dict[str, Any]]] = TypeAdapter(
    Optional[dict[str, Any]]
)


@lru_cache(maxsize=256)
def _adapter_for(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


def encode_json(value: Any) -> bytes:
    """Serialize ``value`` to JSON bytes.

    Dataclasses, pydantic models and plain containers are supported.
    Raises pydantic_core.PydanticSerializationError for unsupported values.
    """
    return pydantic_core.to_json(value)


def is_empty_body(raw: bytes) -> bool:
    return not raw.strip()


def decode_json(raw: bytes, response_type: type[T]) -> T:
    """Validate a JSON document against ``response_type``.

    Raises pydantic.ValidationError when the document is malformed or does
    not fit the declared shape.
    """
    try:
        adapter = _adapter_for(response_type)
    except TypeError:
        # unhashable type hints cannot be cached
        adapter = TypeAdapter(response_type)
    return adapter.validate_json(raw)


def decode_error_body(raw: bytes) -> Any:
    """Return the body as a JSON object, or as text when it is not one.

    A literal ``null`` body decodes to None.
    """
    try:
        return _ERROR_BODY_ADAPTER.validate_json(raw)
    except ValidationError:
        return raw.decode("utf-8", errors="replace")
