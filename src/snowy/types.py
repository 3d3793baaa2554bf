"""Result and response envelopes shared by the client surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Generic, Mapping, NoReturn, TypeVar, Union

from requests.structures import CaseInsensitiveDict

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


def _empty_meta() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value plus request metadata."""

    value: T
    meta: Mapping[str, Any] = field(default_factory=_empty_meta)

    @property
    def ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying an error plus request metadata."""

    error: E
    meta: Mapping[str, Any] = field(default_factory=_empty_meta)

    @property
    def ok(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class TypedResponse(Generic[T]):
    """Decoded response of an acceptable call.

    ``data`` is None when the server sent an empty body. ``headers`` is a
    read-only view; lookups are case-insensitive.
    """

    status_code: int
    data: T | None
    headers: Mapping[str, str] = field(default_factory=_empty_meta)

    def __post_init__(self) -> None:
        # Copy so later changes to the source mapping are not visible.
        object.__setattr__(
            self,
            "headers",
            MappingProxyType(CaseInsensitiveDict(self.headers)),
        )
