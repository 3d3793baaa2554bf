"""Request payload description and its resolution to wire form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlencode

from pydantic_core import PydanticSerializationError

from .codec import encode_json
from .errors import BodyEncodingError

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class RequestData:
    """Optional query parameters and body for one call.

    ``json_data`` takes precedence over ``form_data`` when both are set.
    Query parameters are appended to the URL for every verb; the body is
    only sent by write verbs.
    """

    query_params: Mapping[str, str] = field(default_factory=dict)
    json_data: Any | None = None
    form_data: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedBody:
    content: bytes | None = None
    content_type: str | None = None


def resolve_body(data: RequestData) -> ResolvedBody:
    """Encode the request body and pick its content type.

    Raises:
        BodyEncodingError: The JSON value could not be serialized.
    """
    if data.json_data is not None:
        try:
            content = encode_json(data.json_data)
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            raise BodyEncodingError(
                f"encoding JSON body: {exc}", cause=exc
            ) from exc
        return ResolvedBody(content=content, content_type=JSON_CONTENT_TYPE)

    if data.form_data:
        content = urlencode(list(data.form_data.items())).encode("ascii")
        return ResolvedBody(content=content, content_type=FORM_CONTENT_TYPE)

    return ResolvedBody()


def apply_query_params(url: str, params: Mapping[str, str] | None) -> str:
    """Append percent-encoded query parameters in mapping order."""
    if not params:
        return url
    query = urlencode(list(params.items()))
    separator = "&" if "?" in url else "?"
    if url.endswith(("?", "&")):
        separator = ""
    return f"{url}{separator}{query}"
