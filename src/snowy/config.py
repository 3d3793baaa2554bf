"""Per-call configuration for JsonClient requests."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from .cancel import CancelToken

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_IDLE_CONNECTIONS = 100
DEFAULT_IDLE_CONNECTION_TIMEOUT_SECONDS = 90.0
DEFAULT_TLS_HANDSHAKE_TIMEOUT_SECONDS = 10.0


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _status_codes_env(name: str) -> tuple[int, ...]:
    value = os.getenv(name)
    if not value:
        return ()
    codes: list[int] = []
    for item in value.split(","):
        item = item.strip()
        if item.isdigit():
            codes.append(int(item))
    return tuple(codes)


def _millis(seconds: float) -> int:
    return int(round(seconds * 1000))


@dataclass(frozen=True)
class Config:
    """Configuration for one request.

    Zero numeric fields mean "use the default" and are substituted by
    ``with_defaults()`` when the request executes. Only the four transport
    fields take part in the pool fingerprint; ``cancel_token`` and
    ``acceptable_status_codes`` do not.
    """

    cancel_token: CancelToken | None = None
    timeout_seconds: float = 0.0
    max_idle_connections: int = 0
    idle_connection_timeout_seconds: float = 0.0
    tls_handshake_timeout_seconds: float = 0.0
    acceptable_status_codes: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must be >= 0")
        if self.max_idle_connections < 0:
            raise ValueError("max_idle_connections must be >= 0")
        if self.idle_connection_timeout_seconds < 0:
            raise ValueError("idle_connection_timeout_seconds must be >= 0")
        if self.tls_handshake_timeout_seconds < 0:
            raise ValueError("tls_handshake_timeout_seconds must be >= 0")

        # Accept any iterable of codes but store an immutable tuple.
        object.__setattr__(
            self,
            "acceptable_status_codes",
            tuple(int(code) for code in self.acceptable_status_codes),
        )

    def with_defaults(self) -> Config:
        """Return a copy with zero-valued fields replaced by defaults."""
        return replace(
            self,
            timeout_seconds=self.timeout_seconds or DEFAULT_TIMEOUT_SECONDS,
            max_idle_connections=(
                self.max_idle_connections or DEFAULT_MAX_IDLE_CONNECTIONS
            ),
            idle_connection_timeout_seconds=(
                self.idle_connection_timeout_seconds
                or DEFAULT_IDLE_CONNECTION_TIMEOUT_SECONDS
            ),
            tls_handshake_timeout_seconds=(
                self.tls_handshake_timeout_seconds
                or DEFAULT_TLS_HANDSHAKE_TIMEOUT_SECONDS
            ),
        )

    def fingerprint(self) -> str:
        """Pool cache key derived from the transport-affecting fields."""
        return "{}-{}-{}-{}".format(
            _millis(self.timeout_seconds),
            self.max_idle_connections,
            _millis(self.idle_connection_timeout_seconds),
            _millis(self.tls_handshake_timeout_seconds),
        )

    def is_acceptable(self, status_code: int) -> bool:
        """Return True for 2xx or an explicitly accepted status."""
        if 200 <= status_code < 300:
            return True
        return status_code in self.acceptable_status_codes

    @classmethod
    def from_env(cls, cancel_token: CancelToken | None = None) -> Config:
        """Create a config from SNOWY_HTTP_* environment variables."""
        return cls(
            cancel_token=cancel_token,
            timeout_seconds=max(0.0, _float_env("SNOWY_HTTP_TIMEOUT", 0.0)),
            max_idle_connections=max(
                0, _int_env("SNOWY_HTTP_MAX_IDLE_CONNS", 0)
            ),
            idle_connection_timeout_seconds=max(
                0.0, _float_env("SNOWY_HTTP_IDLE_CONN_TIMEOUT", 0.0)
            ),
            tls_handshake_timeout_seconds=max(
                0.0, _float_env("SNOWY_HTTP_TLS_HANDSHAKE_TIMEOUT", 0.0)
            ),
            acceptable_status_codes=_status_codes_env(
                "SNOWY_HTTP_ACCEPTABLE_STATUS"
            ),
        )
