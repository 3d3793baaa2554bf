"""Typed JSON-over-HTTP client with pooled sessions."""

from __future__ import annotations

import logging

from .cancel import CancelToken
from .client import JsonClient
from .config import Config
from .errors import (
    BodyEncodingError,
    DecodeError,
    ErrorKind,
    HttpClientError,
    RequestCancelledError,
    RequestConstructionError,
    RequestTimeoutError,
    ResponseReadError,
    StatusError,
    TransportError,
)
from .headers import Headers
from .log import setup_logging
from .payload import RequestData
from .pool import ClientPool, PooledClient
from .types import Err, Ok, Result, TypedResponse

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "BodyEncodingError",
    "CancelToken",
    "ClientPool",
    "Config",
    "DecodeError",
    "Err",
    "ErrorKind",
    "Headers",
    "HttpClientError",
    "JsonClient",
    "Ok",
    "PooledClient",
    "RequestCancelledError",
    "RequestConstructionError",
    "RequestData",
    "RequestTimeoutError",
    "ResponseReadError",
    "Result",
    "StatusError",
    "TransportError",
    "TypedResponse",
    "setup_logging",
]
